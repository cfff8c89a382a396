# certexam/routers/stats.py
from datetime import timedelta

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from certexam import config
from certexam.database import get_db
from certexam.models import Attempt, Certificate, Certification, Result, User
from certexam.utils.attempt_engine import server_remaining_seconds
from certexam.utils.auth import get_current_user
from certexam.utils.clock import utcnow

router = APIRouter(prefix="/stats", tags=["Stats"])

RECENT_ACTIVITY_LIMIT = 10
RECOMMENDED_LIMIT = 5
POPULAR_CATEGORIES_LIMIT = 5


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------
def _current_exam(db: Session, user: User, now):
    """The in-progress attempt with its time left and answered share (%)."""
    attempt = (
        db.query(Attempt)
        .filter(Attempt.user_id == user.id, Attempt.status == "in_progress")
        .order_by(Attempt.started_at.desc())
        .first()
    )
    if attempt is None:
        return None

    total = len(attempt.question_ids or [])
    answered = sum(1 for e in (attempt.answers or {}).values() if isinstance(e, dict) and e.get("answer"))
    return {
        "attempt_id": attempt.id,
        "certification": attempt.certification.name,
        "time_remaining_seconds": min(attempt.time_remaining_seconds, server_remaining_seconds(attempt, now)),
        "progress": round(answered * 100.0 / total, 1) if total else 0.0,
    }


def _recent_activity(db: Session, user: User):
    rows = (
        db.query(Attempt, Result)
        .outerjoin(Result, Result.attempt_id == Attempt.id)
        .filter(Attempt.user_id == user.id)
        .order_by(Attempt.started_at.desc())
        .limit(RECENT_ACTIVITY_LIMIT)
        .all()
    )
    activity = []
    for attempt, result in rows:
        if result is None:
            kind = attempt.status        # in_progress | abandoned
        else:
            kind = "earned" if result.passed else "failed"
        activity.append({
            "certification": attempt.certification.name,
            "type": kind,
            "date": attempt.finished_at or attempt.started_at,
            "score": result.total_score if result else None,
        })
    return activity


def _recommended(db: Session, user: User):
    """Active certifications the user was never certified in, most certified first."""
    held = select(Certificate.certification_id).where(Certificate.user_id == user.id)
    popularity = func.count(Certificate.id)
    rows = (
        db.query(Certification, popularity)
        .outerjoin(Certificate, Certificate.certification_id == Certification.id)
        .filter(Certification.is_active.is_(True), Certification.id.not_in(held))
        .group_by(Certification.id)
        .order_by(popularity.desc(), Certification.name)
        .limit(RECOMMENDED_LIMIT)
        .all()
    )
    return [
        {"id": c.id, "name": c.name, "category": c.category, "level": c.level, "popularity": count}
        for c, count in rows
    ]


def _popular_categories(db: Session):
    count = func.count(Certification.id)
    rows = (
        db.query(Certification.category, count)
        .filter(Certification.is_active.is_(True))
        .group_by(Certification.category)
        .order_by(count.desc(), Certification.category)
        .limit(POPULAR_CATEGORIES_LIMIT)
        .all()
    )
    return [{"category": category, "count": n} for category, n in rows]


# ------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------
@router.get("/me")
def my_stats(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """
    Certificates of the current user by validity, score summary,
    covered categories, the exam in progress, recent activity and
    recommended certifications.
    """
    now = utcnow()
    warning_edge = now + timedelta(days=config.EXPIRY_WARNING_DAYS)

    certs = db.query(Certificate).filter(Certificate.user_id == user.id).all()
    expired = [c for c in certs if c.is_expired(now)]
    active = [c for c in certs if not c.is_expired(now)]
    expiring = [c for c in active if c.expires_at is not None and c.expires_at <= warning_edge]

    avg_score, max_score = (
        db.query(func.avg(Result.total_score), func.max(Result.total_score))
        .join(Attempt, Result.attempt_id == Attempt.id)
        .filter(Attempt.user_id == user.id)
        .one()
    )

    return {
        "total_certificates": len(certs),
        "active_certificates": len(active),
        "expired_certificates": len(expired),
        "expiring_soon": len(expiring),
        "average_score": round(float(avg_score), 2) if avg_score is not None else 0,
        "highest_score": float(max_score) if max_score is not None else 0,
        "categories_covered": sorted({c.certification.category for c in active}),
        "current_exam": _current_exam(db, user, now),
        "recent_activity": _recent_activity(db, user),
        "recommended": _recommended(db, user),
    }


@router.get("/global")
def global_stats(db: Session = Depends(get_db)):
    scored = db.query(func.count(Result.id)).scalar() or 0
    passed = db.query(func.count(Result.id)).filter(Result.passed.is_(True)).scalar() or 0
    return {
        "total_certifications": db.query(func.count(Certification.id)).filter(Certification.is_active.is_(True)).scalar() or 0,
        "total_attempts": db.query(func.count(Attempt.id)).scalar() or 0,
        "total_certificates_issued": db.query(func.count(Certificate.id)).scalar() or 0,
        "pass_rate": round(passed * 100.0 / scored, 2) if scored else 0.0,
        "popular_categories": _popular_categories(db),
    }
