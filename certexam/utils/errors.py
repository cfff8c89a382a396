# certexam/utils/errors.py
from __future__ import annotations


class ExamError(Exception):
    """Base of every user-facing error raised by the exam engine."""
    status_code = 400
    message = "Exam request could not be processed"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)


class CertificationNotFound(ExamError):
    status_code = 404
    message = "Certification not found"


class InvalidCertification(ExamError):
    status_code = 422
    message = "Certification definition is invalid"


class AttemptNotFound(ExamError):
    status_code = 404
    message = "Exam attempt not found"


class AttemptLimitExceeded(ExamError):
    status_code = 409
    message = "Maximum number of attempts reached for this certification"


class AttemptAlreadyActive(ExamError):
    status_code = 409
    message = "An exam attempt for this certification is already in progress"


class AttemptNotActive(ExamError):
    status_code = 409
    message = "Exam attempt is no longer in progress"


class AlreadySubmitted(AttemptNotActive):
    message = "Exam attempt was already submitted"


class ResultNotReady(ExamError):
    status_code = 409
    message = "Exam attempt has no result"


class CertificateNotFound(ExamError):
    status_code = 404
    # must not echo the searched value or hint at near matches
    message = "No certificate matches the given code"


class DuplicateCodeRetryExhausted(ExamError):
    status_code = 503
    message = "Could not allocate a unique certificate code, please retry"


class AlreadyCertified(ExamError):
    status_code = 409
    message = "You already hold a valid certificate for this certification"


class PrerequisiteNotMet(ExamError):
    status_code = 409
    message = "Prerequisite certification missing"
