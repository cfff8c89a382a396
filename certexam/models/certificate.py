from datetime import datetime

from sqlalchemy import Column, String, Integer, Float, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from certexam.database import Base
from certexam.utils.clock import utcnow

class Certificate(Base):
    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    certification_id = Column(Integer, ForeignKey("certifications.id"), nullable=False, index=True)
    # result that earned it; later passes reusing it link back via Result.certificate_id
    result_id = Column(Integer, nullable=False)

    certificate_number = Column(String, unique=True, index=True, nullable=False)
    verification_code = Column(String, unique=True, index=True, nullable=False)

    score = Column(Float, nullable=False)
    performance_grade = Column(String, nullable=False)
    skills_validated = Column(JSON, nullable=False, default=list)

    issued_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=True)    # NULL -> never expires
    is_public = Column(Boolean, nullable=False, default=True)

    user = relationship("User", back_populates="certificates")
    certification = relationship("Certification")

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now
