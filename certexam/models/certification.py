# certexam/models/certification.py
from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, ForeignKey, JSON, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from certexam.database import Base
from certexam.utils.clock import utcnow


class Certification(Base):
    """
    Certification and its exam structure.
    Never edited once attempts reference it: a new version is a new row.
    """
    __tablename__ = "certifications"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    category = Column(String, nullable=False, index=True)            # programming | web_development | ...
    level = Column(String, nullable=False, default="intermediate")    # beginner | intermediate | advanced | expert

    passing_score = Column(Integer, nullable=False, default=70)       # 0..100
    max_attempts = Column(Integer, nullable=False, default=3)
    duration_minutes = Column(Integer, nullable=False)
    validity_months = Column(Integer, nullable=True)      # NULL -> certificate never expires

    skills_covered = Column(JSON, nullable=False, default=list)
    # [{"type": "certification", "name": "..."}]
    prerequisites = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    sections = relationship(
        "CertificationSection",
        back_populates="certification",
        cascade="all, delete-orphan",
        order_by="CertificationSection.position",
    )
    questions = relationship("Question", back_populates="certification", cascade="all, delete-orphan")
    attempts = relationship("Attempt", back_populates="certification")

    @property
    def total_questions(self) -> int:
        return sum(s.question_count for s in self.sections)


class CertificationSection(Base):
    __tablename__ = "certification_sections"

    id = Column(Integer, primary_key=True)
    certification_id = Column(Integer, ForeignKey("certifications.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    question_count = Column(Integer, nullable=False)
    weight = Column(Integer, nullable=False)        # percent, all sections sum to 100
    description = Column(Text, nullable=True)

    certification = relationship("Certification", back_populates="sections")

    __table_args__ = (
        UniqueConstraint("certification_id", "name", name="uq_section_name"),
    )


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    certification_id = Column(Integer, ForeignKey("certifications.id", ondelete="CASCADE"), nullable=False, index=True)
    section = Column(String, nullable=False)
    type = Column(String, nullable=False)           # single_choice | multi_select | true_false | short_answer
    prompt = Column(Text, nullable=False)
    options = Column(JSON, nullable=True)
    correct_answers = Column(JSON, nullable=False)  # list of strings
    point_value = Column(Integer, nullable=False, default=1)
    difficulty = Column(String, nullable=False, default="medium")
    explanation = Column(Text, nullable=True)

    certification = relationship("Certification", back_populates="questions")
