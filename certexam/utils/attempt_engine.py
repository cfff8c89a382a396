from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional
from uuid import uuid4

from sqlalchemy import case, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from certexam.models.attempt import Attempt
from certexam.models.certificate import Certificate
from certexam.models.certification import Certification, Question
from certexam.models.result import Result
from certexam.utils.certificates import issue_certificate, live_certificate
from certexam.utils.clock import utcnow
from certexam.utils.errors import (
    AlreadyCertified,
    AlreadySubmitted,
    AttemptAlreadyActive,
    AttemptLimitExceeded,
    AttemptNotActive,
    AttemptNotFound,
    CertificationNotFound,
    InvalidCertification,
    PrerequisiteNotMet,
    ResultNotReady,
)
from certexam.utils.feedback import build_feedback
from certexam.utils.scoring import score_attempt

logger = logging.getLogger(__name__)


# --------------------- Lookups ---------------------

def get_certification(db: Session, certification_id: int, active_only: bool = False) -> Certification:
    certification = db.get(Certification, certification_id)
    if certification is None or (active_only and not certification.is_active):
        raise CertificationNotFound()
    return certification


def get_attempt(db: Session, attempt_id: str, user_id: str | None = None) -> Attempt:
    attempt = db.get(Attempt, attempt_id)
    # another user's attempt is reported as missing
    if attempt is None or (user_id is not None and attempt.user_id != user_id):
        raise AttemptNotFound()
    return attempt


def attempts_used(db: Session, user_id: str, certification_id: int) -> int:
    return (
        db.query(func.count(Attempt.id))
        .filter(Attempt.user_id == user_id, Attempt.certification_id == certification_id)
        .scalar()
        or 0
    )


def server_remaining_seconds(attempt: Attempt, now: datetime) -> int:
    return max(0, int((attempt.deadline_at - now).total_seconds()))


def paper_questions(db: Session, attempt: Attempt) -> List[Question]:
    """The attempt's questions in paper order."""
    ids = [int(q) for q in (attempt.question_ids or [])]
    if not ids:
        return []
    by_id = {q.id: q for q in db.query(Question).filter(Question.id.in_(ids)).all()}
    return [by_id[i] for i in ids if i in by_id]


def missing_prerequisites(db: Session, user_id: str, certification: Certification, now: datetime) -> List[str]:
    """Names of prerequisite certifications the user holds no unexpired certificate for."""
    names = [p.get("name") for p in (certification.prerequisites or []) if isinstance(p, Mapping)]
    missing: List[str] = []
    for name in names:
        held = (
            db.query(Certificate.id)
            .join(Certification, Certificate.certification_id == Certification.id)
            .filter(
                Certificate.user_id == user_id,
                Certification.name == name,
                or_(Certificate.expires_at.is_(None), Certificate.expires_at > now),
            )
            .first()
        )
        if held is None:
            missing.append(name)
    return missing


def _not_above_stored(remaining: int):
    # evaluated against the row, not the copy loaded by this request
    return case(
        (Attempt.time_remaining_seconds < remaining, Attempt.time_remaining_seconds),
        else_=remaining,
    )


# --------------------- Question paper ---------------------

def draw_question_paper(certification: Certification, rng: random.Random | None = None) -> List[int]:
    """
    Per section: the whole bank when it is small enough,
    otherwise a random sample of question_count questions.
    """
    rng = rng or random.Random()
    by_section: Dict[str, List[Question]] = {}
    for q in certification.questions:
        by_section.setdefault(q.section, []).append(q)

    paper: List[int] = []
    for section in certification.sections:
        pool = sorted(by_section.get(section.name, []), key=lambda q: q.id)
        if section.question_count and len(pool) > section.question_count:
            pool = sorted(rng.sample(pool, section.question_count), key=lambda q: q.id)
        paper.extend(q.id for q in pool)

    if not paper:
        raise InvalidCertification("Certification has no questions in its bank")
    return paper


# --------------------- Transitions ---------------------

def start_attempt(db: Session, user_id: str, certification: Certification, now: datetime | None = None) -> Attempt:
    now = now or utcnow()
    if not certification.is_active:
        raise CertificationNotFound()

    # overdue attempts are closed (and scored) before anything else is decided
    open_attempts = (
        db.query(Attempt)
        .filter(
            Attempt.user_id == user_id,
            Attempt.certification_id == certification.id,
            Attempt.status == "in_progress",
        )
        .all()
    )
    for open_attempt in open_attempts:
        if server_remaining_seconds(open_attempt, now) == 0:
            try:
                _force_expire(db, open_attempt, now)
            except AlreadySubmitted:
                db.refresh(open_attempt)
    if any(a.status == "in_progress" for a in open_attempts):
        raise AttemptAlreadyActive()

    # renewal is a new start once the held certificate has expired
    if live_certificate(db, user_id, certification.id, now) is not None:
        raise AlreadyCertified()
    missing = missing_prerequisites(db, user_id, certification, now)
    if missing:
        raise PrerequisiteNotMet(f"Prerequisite certification missing: {', '.join(missing)}")

    used = attempts_used(db, user_id, certification.id)
    if used >= certification.max_attempts:
        raise AttemptLimitExceeded()

    duration = certification.duration_minutes * 60
    attempt = Attempt(
        id=str(uuid4()),
        user_id=user_id,
        certification_id=certification.id,
        attempt_number=used + 1,
        status="in_progress",
        version=1,
        started_at=now,
        deadline_at=now + timedelta(seconds=duration),
        time_remaining_seconds=duration,
        current_question_index=0,
        question_ids=draw_question_paper(certification),
        answers={},
    )
    db.add(attempt)
    try:
        db.commit()
    except IntegrityError as e:
        # (user, certification, attempt_number) is unique: a concurrent start won
        db.rollback()
        raise AttemptAlreadyActive() from e
    db.refresh(attempt)

    logger.info(
        f"Attempt {attempt.id} started: user={user_id} certification={certification.id} "
        f"number={attempt.attempt_number}/{certification.max_attempts}"
    )
    return attempt


def _normalize_entry(item: Mapping[str, Any]) -> Dict[str, Any]:
    answer = item.get("answer")
    try:
        spent = max(0, int(item.get("time_spent_seconds") or 0))
    except (TypeError, ValueError):
        spent = 0
    return {
        "answer": dict(answer) if isinstance(answer, Mapping) else None,
        "is_flagged": bool(item.get("is_flagged", False)),
        "time_spent_seconds": spent,
    }


def merge_answers(attempt: Attempt, answers: Optional[Iterable[Mapping[str, Any]]]) -> Dict[str, Any]:
    """
    Last write wins per question. Questions that are not on the
    attempt's paper are dropped.
    """
    on_paper = {str(q) for q in (attempt.question_ids or [])}
    merged: Dict[str, Any] = dict(attempt.answers or {})
    for item in answers or []:
        qid = str(item.get("question_id"))
        if qid not in on_paper:
            logger.warning(f"Attempt {attempt.id}: ignoring answer for question {qid} not on the paper")
            continue
        merged[qid] = _normalize_entry(item)
    return merged


def save_progress(
    db: Session,
    attempt: Attempt,
    current_index: int,
    answers: Optional[Iterable[Mapping[str, Any]]],
    time_remaining: int | None = None,
    now: datetime | None = None,
) -> Attempt:
    """
    Autosave. Remaining time is min(client hint, server clock, stored value),
    so it never goes up. At zero the attempt is force-submitted with what
    was saved before this call.
    """
    now = now or utcnow()
    if attempt.status != "in_progress":
        raise AttemptNotActive()

    server_left = server_remaining_seconds(attempt, now)
    if server_left == 0:
        logger.info(f"Attempt {attempt.id}: time is up, autosave triggers forced submission")
        _force_expire(db, attempt, now)
        return attempt

    remaining = min(server_left, attempt.time_remaining_seconds)
    if time_remaining is not None:
        remaining = min(remaining, max(0, int(time_remaining)))

    last_index = max(len(attempt.question_ids or []) - 1, 0)
    index = min(max(int(current_index or 0), 0), last_index)

    rows = (
        db.query(Attempt)
        .filter(Attempt.id == attempt.id, Attempt.status == "in_progress")
        .update(
            {
                Attempt.answers: merge_answers(attempt, answers),
                Attempt.time_remaining_seconds: _not_above_stored(remaining),
                Attempt.current_question_index: index,
                Attempt.version: Attempt.version + 1,
            },
            synchronize_session=False,
        )
    )
    if rows != 1:
        db.rollback()
        raise AttemptNotActive()
    db.commit()
    db.refresh(attempt)
    return attempt


def submit_attempt(
    db: Session,
    attempt: Attempt,
    answers: Optional[Iterable[Mapping[str, Any]]] = None,
    now: datetime | None = None,
) -> Result:
    now = now or utcnow()
    if attempt.status != "in_progress":
        raise AttemptNotActive()

    if server_remaining_seconds(attempt, now) == 0:
        # answers sent after the deadline do not count
        logger.info(f"Attempt {attempt.id}: submitted after the deadline, scoring the saved snapshot")
        return _force_expire(db, attempt, now)

    return _finalize(db, attempt, "submitted", merge_answers(attempt, answers), now)


def abandon_attempt(db: Session, attempt: Attempt, now: datetime | None = None) -> Attempt:
    now = now or utcnow()
    if attempt.status != "in_progress":
        raise AttemptNotActive()

    if server_remaining_seconds(attempt, now) == 0:
        _force_expire(db, attempt, now)
        return attempt

    rows = (
        db.query(Attempt)
        .filter(Attempt.id == attempt.id, Attempt.status == "in_progress")
        .update(
            {
                Attempt.status: "abandoned",
                Attempt.finished_at: now,
                Attempt.version: Attempt.version + 1,
            },
            synchronize_session=False,
        )
    )
    if rows != 1:
        db.rollback()
        raise AttemptNotActive()
    db.commit()
    db.refresh(attempt)
    logger.info(f"Attempt {attempt.id} abandoned by user {attempt.user_id}")
    return attempt


def get_result(db: Session, attempt: Attempt, now: datetime | None = None) -> Result:
    now = now or utcnow()
    if attempt.status == "in_progress":
        if server_remaining_seconds(attempt, now) > 0:
            raise ResultNotReady()
        return _force_expire(db, attempt, now)

    result = db.query(Result).filter(Result.attempt_id == attempt.id).first()
    if result is None:
        raise ResultNotReady()
    return result


def _force_expire(db: Session, attempt: Attempt, now: datetime) -> Result:
    return _finalize(db, attempt, "expired", dict(attempt.answers or {}), now)


def _finalize(db: Session, attempt: Attempt, status: str, answers: Dict[str, Any], now: datetime) -> Result:
    """
    in_progress -> submitted | expired, scoring and certificate issuance
    in one transaction. Only the request whose conditional UPDATE hits the
    row goes on to score; everyone else gets AlreadySubmitted.
    """
    certification = attempt.certification
    duration = certification.duration_minutes * 60
    remaining = 0 if status == "expired" else server_remaining_seconds(attempt, now)

    try:
        rows = (
            db.query(Attempt)
            .filter(Attempt.id == attempt.id, Attempt.status == "in_progress")
            .update(
                {
                    Attempt.status: status,
                    Attempt.answers: answers,
                    Attempt.finished_at: now,
                    Attempt.time_remaining_seconds: _not_above_stored(remaining),
                    Attempt.version: Attempt.version + 1,
                },
                synchronize_session=False,
            )
        )
        if rows != 1:
            raise AlreadySubmitted()

        scored = score_attempt(
            certification.sections,
            paper_questions(db, attempt),
            answers,
            certification.passing_score,
        )
        elapsed = int((now - attempt.started_at).total_seconds())

        result = Result(
            attempt_id=attempt.id,
            total_score=scored["total_score"],
            section_scores=scored["section_scores"],
            passed=scored["passed"],
            performance_grade=scored["performance_grade"],
            duration_used_seconds=min(max(elapsed, 0), duration),
            feedback=build_feedback(scored, certification.name, certification.passing_score),
            created_at=now,
        )
        db.add(result)
        db.flush()

        if result.passed:
            cert = issue_certificate(db, result, attempt.user_id, certification, now)
            result.certificate_id = cert.id
            db.flush()

        db.commit()
    except IntegrityError as e:
        # results.attempt_id is unique: somebody else scored this attempt
        db.rollback()
        raise AlreadySubmitted() from e
    except Exception:
        db.rollback()
        raise

    db.refresh(attempt)
    logger.info(
        f"Attempt {attempt.id} {status}: score={result.total_score} "
        f"passed={result.passed} grade={result.performance_grade}"
    )
    return result


# --------------------- Progress ---------------------

def get_user_progress(db: Session, user_id: str, certification: Certification, now: datetime | None = None) -> Dict[str, Any]:
    now = now or utcnow()
    attempts = (
        db.query(Attempt)
        .filter(Attempt.user_id == user_id, Attempt.certification_id == certification.id)
        .order_by(Attempt.started_at.desc(), Attempt.attempt_number.desc())
        .all()
    )
    best_score = (
        db.query(func.max(Result.total_score))
        .join(Attempt, Result.attempt_id == Attempt.id)
        .filter(Attempt.user_id == user_id, Attempt.certification_id == certification.id)
        .scalar()
    )
    certificate: Certificate | None = live_certificate(db, user_id, certification.id, now)

    missing = missing_prerequisites(db, user_id, certification, now)

    used = len(attempts)
    remaining = max(0, certification.max_attempts - used)
    has_active = any(a.status == "in_progress" for a in attempts)
    return {
        "attempts_used": used,
        "attempts_remaining": remaining,
        "best_score": float(best_score or 0.0),
        "is_certified": certificate is not None,
        "certificate": certificate,
        "last_attempt": attempts[0] if attempts else None,
        "missing_prerequisites": missing,
        "can_retake": remaining > 0 and certificate is None and not has_active and not missing,
    }
