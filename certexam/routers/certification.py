from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from certexam.database import get_db
from certexam.models.certification import Certification
from certexam.models.user import User
from certexam.routers.attempt import to_attempt_out
from certexam.routers.certificate import to_certificate_out
from certexam.schemas.attempt import AttemptOut, ProgressOut
from certexam.schemas.certification import CertificationCreate, CertificationOut
from certexam.utils.attempt_engine import get_certification, get_user_progress, start_attempt
from certexam.utils.auth import admin_required, get_current_user
from certexam.utils.catalog_loader import create_certification, import_all
from certexam.utils.clock import utcnow

router = APIRouter(prefix="/certifications", tags=["Certifications"])


@router.get("", response_model=List[CertificationOut])
def list_certifications(
    category: Optional[str] = None,
    level: Optional[str] = None,
    db: Session = Depends(get_db),
):
    query = db.query(Certification).filter(Certification.is_active.is_(True))
    if category:
        query = query.filter(Certification.category == category)
    if level:
        query = query.filter(Certification.level == level)
    return query.order_by(Certification.name, Certification.id).all()


@router.post("", response_model=CertificationOut, status_code=status.HTTP_201_CREATED)
def create(payload: CertificationCreate, db: Session = Depends(get_db), _: User = Depends(admin_required)):
    """
    Creates a certification with its sections and question bank.
    Section weights must add up to 100.
    """
    data = payload.model_dump()
    sections = data.pop("sections")
    questions = data.pop("questions")
    return create_certification(db, data, sections, questions)


@router.post("/import")
def import_catalog(
    stop_on_error: bool = Query(False),
    db: Session = Depends(get_db),
    _: User = Depends(admin_required),
):
    return import_all(db, stop_on_error=stop_on_error)


@router.get("/{certification_id}", response_model=CertificationOut)
def get_one(certification_id: int, db: Session = Depends(get_db)):
    return get_certification(db, certification_id, active_only=True)


@router.get("/{certification_id}/progress", response_model=ProgressOut)
def progress(certification_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    now = utcnow()
    certification = get_certification(db, certification_id)
    info = get_user_progress(db, user.id, certification, now)
    last = info["last_attempt"]
    return ProgressOut(
        certification_id=certification.id,
        attempts_used=info["attempts_used"],
        attempts_remaining=info["attempts_remaining"],
        best_score=info["best_score"],
        is_certified=info["is_certified"],
        can_retake=info["can_retake"],
        missing_prerequisites=info["missing_prerequisites"],
        certificate=to_certificate_out(info["certificate"], now) if info["certificate"] else None,
        last_attempt_id=last.id if last else None,
        last_attempt_status=last.status if last else None,
    )


@router.post("/{certification_id}/attempts", response_model=AttemptOut, status_code=status.HTTP_201_CREATED)
def start(certification_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    certification = get_certification(db, certification_id, active_only=True)
    attempt = start_attempt(db, user.id, certification)
    return to_attempt_out(db, attempt)
