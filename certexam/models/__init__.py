from certexam.models.user import User
from certexam.models.certification import Certification, CertificationSection, Question
from certexam.models.attempt import Attempt, ATTEMPT_STATUSES
from certexam.models.result import Result
from certexam.models.certificate import Certificate

__all__ = [
    "User",
    "Certification",
    "CertificationSection",
    "Question",
    "Attempt",
    "ATTEMPT_STATUSES",
    "Result",
    "Certificate",
]
