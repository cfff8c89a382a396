from __future__ import annotations
from datetime import datetime
from pathlib import Path
from typing import List

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from certexam.database import get_db
from certexam.models.certificate import Certificate
from certexam.models.user import User
from certexam.schemas.certificate import CertificateOut, VerificationOut, VisibilityRequest
from certexam.utils.auth import get_current_user
from certexam.utils.certificates import (
    toggle_certificate_visibility,
    validity_status,
    verify_certificate,
)
from certexam.utils.clock import utcnow
from certexam.utils.errors import CertificateNotFound

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parents[1] / "templates"))

router = APIRouter(prefix="/certificates", tags=["Certificates"])


def to_certificate_out(cert: Certificate, now: datetime) -> CertificateOut:
    return CertificateOut(
        id=cert.id,
        certification_id=cert.certification_id,
        certification_name=cert.certification.name,
        certificate_number=cert.certificate_number,
        verification_code=cert.verification_code,
        score=cert.score,
        performance_grade=cert.performance_grade,
        skills_validated=list(cert.skills_validated or []),
        issued_at=cert.issued_at,
        expires_at=cert.expires_at,
        is_public=cert.is_public,
        status=validity_status(cert, now),
    )


def to_verification_out(cert: Certificate, status: str) -> VerificationOut:
    certification = cert.certification
    return VerificationOut(
        status=status,
        certificate_number=cert.certificate_number,
        holder_name=cert.user.name or "Certificate holder",
        certification_name=certification.name,
        category=certification.category,
        level=certification.level,
        score=cert.score,
        performance_grade=cert.performance_grade,
        skills_validated=list(cert.skills_validated or []),
        issued_at=cert.issued_at,
        expires_at=cert.expires_at,
    )


@router.get("/mine", response_model=List[CertificateOut])
def my_certificates(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    now = utcnow()
    certs = (
        db.query(Certificate)
        .filter(Certificate.user_id == user.id)
        .order_by(Certificate.issued_at.desc())
        .all()
    )
    return [to_certificate_out(c, now) for c in certs]


@router.get("/verify", response_model=VerificationOut)
def verify(code: str = Query(..., min_length=1, max_length=64), db: Session = Depends(get_db)):
    """
    Public lookup by verification code or certificate number, exact match only.
    Misses raise CertificateNotFound, answered as a generic 404.
    """
    cert, status = verify_certificate(db, code)
    return to_verification_out(cert, status)


@router.get("/verify/{code}/page", response_class=HTMLResponse)
def verify_page(request: Request, code: str, db: Session = Depends(get_db)):
    try:
        cert, status = verify_certificate(db, code)
    except CertificateNotFound as e:
        return templates.TemplateResponse(
            request,
            "verify.html",
            {"certificate": None, "message": e.message},
            status_code=404,
        )
    return templates.TemplateResponse(
        request,
        "verify.html",
        {"certificate": to_verification_out(cert, status), "message": None},
    )


@router.patch("/{certificate_id}/visibility", response_model=CertificateOut)
def set_visibility(
    certificate_id: int,
    payload: VisibilityRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    cert = toggle_certificate_visibility(db, user.id, certificate_id, payload.is_public)
    return to_certificate_out(cert, utcnow())


@router.get("/users/{user_id}", response_model=List[VerificationOut])
def public_certificates(user_id: str, db: Session = Depends(get_db)):
    """Public portfolio: only certificates the owner left visible."""
    now = utcnow()
    certs = (
        db.query(Certificate)
        .filter(Certificate.user_id == user_id, Certificate.is_public.is_(True))
        .order_by(Certificate.issued_at.desc())
        .all()
    )
    return [to_verification_out(c, validity_status(c, now)) for c in certs]
