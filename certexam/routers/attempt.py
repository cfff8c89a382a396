from __future__ import annotations
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from certexam.database import get_db
from certexam.models.attempt import Attempt
from certexam.models.result import Result
from certexam.models.user import User
from certexam.routers.certificate import to_certificate_out
from certexam.schemas.attempt import (
    AttemptOut,
    ResultOut,
    SaveProgressRequest,
    SectionScoreOut,
    SubmitAttemptRequest,
)
from certexam.schemas.certification import QuestionOut
from certexam.utils.attempt_engine import (
    abandon_attempt,
    get_attempt,
    get_result,
    paper_questions,
    save_progress,
    server_remaining_seconds,
    submit_attempt,
)
from certexam.utils.auth import get_current_user
from certexam.utils.clock import utcnow
from certexam.utils.feedback import analyze_time, improvement_suggestions, performance_insights

router = APIRouter(prefix="/attempts", tags=["Attempts"])


def to_attempt_out(db: Session, attempt: Attempt, now: datetime | None = None) -> AttemptOut:
    now = now or utcnow()
    remaining = attempt.time_remaining_seconds
    if attempt.status == "in_progress":
        remaining = min(remaining, server_remaining_seconds(attempt, now))
    return AttemptOut(
        id=attempt.id,
        certification_id=attempt.certification_id,
        attempt_number=attempt.attempt_number,
        status=attempt.status,
        started_at=attempt.started_at,
        deadline_at=attempt.deadline_at,
        finished_at=attempt.finished_at,
        time_remaining_seconds=remaining,
        current_question_index=attempt.current_question_index,
        answers=attempt.answers or {},
        questions=[QuestionOut.model_validate(q) for q in paper_questions(db, attempt)],
    )


def to_result_out(attempt: Attempt, result: Result, now: datetime | None = None) -> ResultOut:
    now = now or utcnow()
    certification = attempt.certification
    sections = result.section_scores or []
    return ResultOut(
        attempt_id=attempt.id,
        status=attempt.status,
        total_score=result.total_score,
        passed=result.passed,
        performance_grade=result.performance_grade,
        passing_score=certification.passing_score,
        section_scores=[SectionScoreOut(**s) for s in sections],
        duration_used_seconds=result.duration_used_seconds,
        feedback=result.feedback,
        certificate=to_certificate_out(result.certificate, now) if result.certificate else None,
        time_analysis=analyze_time(attempt.answers or {}),
        performance_insights=performance_insights(result.total_score, sections),
        improvement_suggestions=improvement_suggestions(
            result.total_score, certification.passing_score, sections
        ),
    )


@router.get("/{attempt_id}", response_model=AttemptOut)
def get_one(attempt_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return to_attempt_out(db, get_attempt(db, attempt_id, user.id))


@router.put("/{attempt_id}/progress", response_model=AttemptOut)
def autosave(
    attempt_id: str,
    payload: SaveProgressRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Autosave. When the server clock says time is up the attempt comes back
    with status "expired" and its result is available under /result.
    """
    attempt = get_attempt(db, attempt_id, user.id)
    attempt = save_progress(
        db,
        attempt,
        payload.current_question_index,
        [a.model_dump() for a in payload.answers],
        payload.time_remaining_seconds,
    )
    return to_attempt_out(db, attempt)


@router.post("/{attempt_id}/submit", response_model=ResultOut)
def submit(
    attempt_id: str,
    payload: SubmitAttemptRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    attempt = get_attempt(db, attempt_id, user.id)
    result = submit_attempt(db, attempt, [a.model_dump() for a in payload.answers])
    return to_result_out(attempt, result)


@router.post("/{attempt_id}/abandon", response_model=AttemptOut)
def abandon(attempt_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    attempt = get_attempt(db, attempt_id, user.id)
    return to_attempt_out(db, abandon_attempt(db, attempt))


@router.get("/{attempt_id}/result", response_model=ResultOut)
def result(attempt_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    attempt = get_attempt(db, attempt_id, user.id)
    res = get_result(db, attempt)
    db.refresh(attempt)
    return to_result_out(attempt, res)
