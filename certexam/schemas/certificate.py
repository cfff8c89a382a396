from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel

ValidityStatus = Literal["valid", "expiring_soon", "expired"]


class CertificateOut(BaseModel):
    id: int
    certification_id: int
    certification_name: str
    certificate_number: str
    verification_code: str
    score: float
    performance_grade: str
    skills_validated: List[str]
    issued_at: datetime
    expires_at: Optional[datetime] = None
    is_public: bool
    status: ValidityStatus

class VerificationOut(BaseModel):
    """Public view: no verification code, no owner contact data."""
    status: ValidityStatus
    certificate_number: str
    holder_name: str
    certification_name: str
    category: str
    level: str
    score: float
    performance_grade: str
    skills_validated: List[str]
    issued_at: datetime
    expires_at: Optional[datetime] = None

class VisibilityRequest(BaseModel):
    # omitted -> flip the current value
    is_public: Optional[bool] = None
