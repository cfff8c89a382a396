# certexam/utils/certificates.py
from __future__ import annotations

import calendar
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from certexam import config
from certexam.models.certificate import Certificate
from certexam.models.certification import Certification
from certexam.models.result import Result
from certexam.utils.clock import utcnow
from certexam.utils.errors import CertificateNotFound, DuplicateCodeRetryExhausted

logger = logging.getLogger(__name__)

# no 0/O, 1/I/L: codes are typed by hand from printed certificates
CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 12
NUMBER_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

STATUS_VALID = "valid"
STATUS_EXPIRING_SOON = "expiring_soon"
STATUS_EXPIRED = "expired"


def generate_certificate_number(now: datetime) -> str:
    suffix = "".join(secrets.choice(NUMBER_ALPHABET) for _ in range(8))
    return f"CERT-{now.year}-{suffix}"


def generate_verification_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def add_months(moment: datetime, months: int) -> datetime:
    """Calendar month arithmetic, clamping the day (Jan 31 + 1 month -> Feb 28/29)."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def live_certificate(db: Session, user_id: str, certification_id: int, now: datetime) -> Optional[Certificate]:
    """Most recent unexpired certificate of the user for this certification."""
    return (
        db.query(Certificate)
        .filter(
            Certificate.user_id == user_id,
            Certificate.certification_id == certification_id,
            or_(Certificate.expires_at.is_(None), Certificate.expires_at > now),
        )
        .order_by(Certificate.issued_at.desc(), Certificate.id.desc())
        .first()
    )


def issue_certificate(
    db: Session,
    result: Result,
    user_id: str,
    certification: Certification,
    now: datetime,
) -> Certificate:
    """
    Returns the live certificate for a passed result, inserting one if needed.
    Must run inside the caller's transaction (the result row already flushed);
    nothing is committed here.
    """
    existing = live_certificate(db, user_id, certification.id, now)
    if existing is not None:
        logger.info(
            f"User {user_id} already holds certificate {existing.certificate_number}, "
            f"reusing it for result {result.id}"
        )
        return existing

    expires_at = add_months(now, certification.validity_months) if certification.validity_months else None

    for attempt_no in range(1, config.CODE_RETRY_LIMIT + 1):
        cert = Certificate(
            user_id=user_id,
            certification_id=certification.id,
            result_id=result.id,
            certificate_number=generate_certificate_number(now),
            verification_code=generate_verification_code(),
            score=result.total_score,
            performance_grade=result.performance_grade,
            skills_validated=list(certification.skills_covered or []),
            issued_at=now,
            expires_at=expires_at,
            is_public=True,
        )
        # the unique constraints decide; a collision only rolls back this savepoint
        try:
            with db.begin_nested():
                db.add(cert)
                db.flush()
        except IntegrityError:
            logger.warning(f"Certificate code collision (try {attempt_no}/{config.CODE_RETRY_LIMIT}), regenerating")
            continue

        logger.info(f"Issued certificate {cert.certificate_number} to user {user_id} for certification {certification.id}")
        return cert

    raise DuplicateCodeRetryExhausted()


def validity_status(cert: Certificate, now: datetime, warning_days: int | None = None) -> str:
    if cert.expires_at is None:
        return STATUS_VALID
    if cert.expires_at <= now:
        return STATUS_EXPIRED
    window = config.EXPIRY_WARNING_DAYS if warning_days is None else warning_days
    if cert.expires_at - now <= timedelta(days=window):
        return STATUS_EXPIRING_SOON
    return STATUS_VALID


def _lookup_key(code_or_number: str) -> str:
    return (code_or_number or "").strip().upper()


def verify_certificate(
    db: Session, code_or_number: str, now: datetime | None = None
) -> Tuple[Certificate, str]:
    """
    Exact lookup by verification code or certificate number.
    No prefix or fuzzy matching, so a miss tells nothing about near codes.
    """
    now = now or utcnow()
    key = _lookup_key(code_or_number)
    if not key:
        raise CertificateNotFound()

    cert = (
        db.query(Certificate)
        .filter(or_(Certificate.verification_code == key, Certificate.certificate_number == key))
        .first()
    )
    if cert is None:
        raise CertificateNotFound()
    return cert, validity_status(cert, now)


def toggle_certificate_visibility(
    db: Session, user_id: str, certificate_id: int, is_public: bool | None = None
) -> Certificate:
    cert = db.get(Certificate, certificate_id)
    # somebody else's certificate looks exactly like a missing one
    if cert is None or cert.user_id != user_id:
        raise CertificateNotFound()

    cert.is_public = (not cert.is_public) if is_public is None else bool(is_public)
    db.commit()
    db.refresh(cert)
    logger.info(f"Certificate {cert.id} visibility set to {'public' if cert.is_public else 'private'}")
    return cert
