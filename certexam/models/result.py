from sqlalchemy import Column, String, Integer, Float, Boolean, DateTime, ForeignKey, JSON, Text
from sqlalchemy.orm import relationship
from certexam.database import Base
from certexam.utils.clock import utcnow


class Result(Base):
    """Scored outcome of a finished attempt. Written once, never updated."""
    __tablename__ = "results"

    id = Column(Integer, primary_key=True)
    # unique: a second insert for the same attempt fails at the database
    attempt_id = Column(String, ForeignKey("attempts.id"), unique=True, nullable=False)

    total_score = Column(Float, nullable=False)
    section_scores = Column(JSON, nullable=False)
    passed = Column(Boolean, nullable=False)
    performance_grade = Column(String, nullable=False)
    duration_used_seconds = Column(Integer, nullable=False)
    feedback = Column(Text, nullable=False, default="")

    certificate_id = Column(Integer, ForeignKey("certificates.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    attempt = relationship("Attempt", back_populates="result")
    certificate = relationship("Certificate", foreign_keys=[certificate_id])
