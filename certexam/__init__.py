"""Certification exam engine: timed attempts, weighted scoring, certificates."""

__version__ = "0.1.0"
