from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional

QuestionType = Literal["single_choice", "multi_select", "true_false", "short_answer"]
Level = Literal["beginner", "intermediate", "advanced", "expert"]
Difficulty = Literal["easy", "medium", "hard"]


class SectionIn(BaseModel):
    name: str = Field(min_length=1)
    question_count: int = Field(ge=0)
    weight: int = Field(ge=0, le=100)
    description: Optional[str] = None

class QuestionIn(BaseModel):
    section: str
    type: QuestionType
    prompt: str = Field(min_length=1)
    options: Optional[List[str]] = None
    correct_answers: List[str] = Field(min_length=1)
    points: int = Field(1, ge=1)
    difficulty: Difficulty = "medium"
    explanation: Optional[str] = None

class PrerequisiteIn(BaseModel):
    type: Literal["certification"] = "certification"
    name: str = Field(min_length=1)

class CertificationCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    category: str = Field(min_length=1)
    level: Level = "intermediate"
    passing_score: int = Field(70, ge=0, le=100)
    max_attempts: int = Field(3, ge=1)
    duration_minutes: int = Field(ge=1)
    validity_months: Optional[int] = Field(24, ge=1)
    skills_covered: List[str] = []
    prerequisites: List[PrerequisiteIn] = []
    is_active: bool = True
    sections: List[SectionIn] = Field(min_length=1)
    questions: List[QuestionIn] = Field(min_length=1)


class SectionOut(BaseModel):
    name: str
    question_count: int
    weight: int
    description: Optional[str] = None
    class Config:
        from_attributes = True

class QuestionOut(BaseModel):
    """Question as shown during the exam: no answer key, no explanation."""
    id: int
    section: str
    type: QuestionType
    prompt: str
    options: Optional[List[str]] = None
    point_value: int
    difficulty: str
    class Config:
        from_attributes = True

class CertificationOut(BaseModel):
    id: int
    name: str
    description: str
    category: str
    level: str
    passing_score: int
    max_attempts: int
    duration_minutes: int
    validity_months: Optional[int] = None
    skills_covered: List[str]
    prerequisites: List[Dict[str, str]] = []
    is_active: bool
    total_questions: int
    sections: List[SectionOut]
    class Config:
        from_attributes = True
