from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from certexam.database import Base
from certexam.utils.clock import utcnow


ATTEMPT_STATUSES = ("in_progress", "submitted", "expired", "abandoned")


class Attempt(Base):
    __tablename__ = "attempts"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    certification_id = Column(Integer, ForeignKey("certifications.id"), nullable=False, index=True)
    attempt_number = Column(Integer, nullable=False)

    status = Column(String, nullable=False, default="in_progress", index=True)
    # bumped by every conditional UPDATE on this row
    version = Column(Integer, nullable=False, default=1)

    started_at = Column(DateTime, default=utcnow, nullable=False)
    deadline_at = Column(DateTime, nullable=False)
    finished_at = Column(DateTime, nullable=True)
    time_remaining_seconds = Column(Integer, nullable=False)
    current_question_index = Column(Integer, nullable=False, default=0)

    # ordered question paper drawn at start
    question_ids = Column(JSON, nullable=False, default=list)
    # {"<question_id>": {"answer": {"type", "value"}, "is_flagged", "time_spent_seconds"}}
    answers = Column(JSON, nullable=False, default=dict)

    user = relationship("User", back_populates="attempts")
    certification = relationship("Certification", back_populates="attempts")
    result = relationship("Result", back_populates="attempt", uselist=False)

    # two concurrent starts compute the same number; only one insert survives
    __table_args__ = (
        UniqueConstraint("user_id", "certification_id", "attempt_number", name="uq_attempt_number"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == "in_progress"
