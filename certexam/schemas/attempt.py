from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from certexam.schemas.certificate import CertificateOut
from certexam.schemas.certification import QuestionOut


# --------------------- Answers (tagged by question type) ---------------------

class SingleChoiceAnswer(BaseModel):
    type: Literal["single_choice"]
    value: str

class MultiSelectAnswer(BaseModel):
    type: Literal["multi_select"]
    value: List[str]

class TrueFalseAnswer(BaseModel):
    type: Literal["true_false"]
    value: bool

class ShortAnswer(BaseModel):
    type: Literal["short_answer"]
    value: str

AnswerValue = Annotated[
    Union[SingleChoiceAnswer, MultiSelectAnswer, TrueFalseAnswer, ShortAnswer],
    Field(discriminator="type"),
]

class AnswerItem(BaseModel):
    question_id: int
    answer: Optional[AnswerValue] = None
    is_flagged: bool = False
    time_spent_seconds: int = Field(0, ge=0)


# --------------------- Requests ---------------------

class SaveProgressRequest(BaseModel):
    current_question_index: int = Field(0, ge=0)
    answers: List[AnswerItem] = []
    # client countdown, only ever used to shorten the server value
    time_remaining_seconds: Optional[int] = Field(None, ge=0)

class SubmitAttemptRequest(BaseModel):
    answers: List[AnswerItem] = []


# --------------------- Responses ---------------------

class AttemptOut(BaseModel):
    id: str
    certification_id: int
    attempt_number: int
    status: str
    started_at: datetime
    deadline_at: datetime
    finished_at: Optional[datetime] = None
    time_remaining_seconds: int
    current_question_index: int
    answers: Dict[str, Any] = {}
    questions: List[QuestionOut] = []

class SectionScoreOut(BaseModel):
    name: str
    weight: int
    correct_count: int
    total_count: int
    points_earned: int
    points_possible: int
    percentage: float

class ResultOut(BaseModel):
    attempt_id: str
    status: str
    total_score: float
    passed: bool
    performance_grade: str
    passing_score: int
    section_scores: List[SectionScoreOut]
    duration_used_seconds: int
    feedback: str
    certificate: Optional[CertificateOut] = None
    time_analysis: Dict[str, Any] = {}
    performance_insights: List[str] = []
    improvement_suggestions: List[str] = []

class ProgressOut(BaseModel):
    certification_id: int
    attempts_used: int
    attempts_remaining: int
    best_score: float
    is_certified: bool
    can_retake: bool
    missing_prerequisites: List[str] = []
    certificate: Optional[CertificateOut] = None
    last_attempt_id: Optional[str] = None
    last_attempt_status: Optional[str] = None
