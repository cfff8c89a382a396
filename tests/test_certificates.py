from datetime import datetime, timedelta

import pytest

from certexam.models import Certificate
from certexam.utils.attempt_engine import start_attempt, submit_attempt
from certexam.utils.certificates import (
    CODE_ALPHABET,
    add_months,
    generate_certificate_number,
    generate_verification_code,
    toggle_certificate_visibility,
    validity_status,
    verify_certificate,
)
from certexam.utils.errors import CertificateNotFound

from conftest import T0


@pytest.fixture
def issued(db, user, certification, answers_for):
    attempt = start_attempt(db, user.id, certification, now=T0)
    result = submit_attempt(db, attempt, answers_for(db, attempt, 10, 5), now=T0 + timedelta(minutes=15))
    return result.certificate


def test_codes_have_expected_shape():
    code = generate_verification_code()
    assert len(code) == 12
    assert set(code) <= set(CODE_ALPHABET)
    assert not set(code) & set("01OIL")

    number = generate_certificate_number(datetime(2031, 1, 1))
    assert number.startswith("CERT-2031-")
    assert len(number.split("-")[-1]) == 8


@pytest.mark.parametrize(
    "start, months, expected",
    [
        (datetime(2026, 1, 31), 1, datetime(2026, 2, 28)),
        (datetime(2028, 1, 31), 1, datetime(2028, 2, 29)),
        (datetime(2026, 11, 15), 3, datetime(2027, 2, 15)),
        (datetime(2026, 3, 2, 9, 15), 24, datetime(2028, 3, 2, 9, 15)),
    ],
)
def test_add_months(start, months, expected):
    assert add_months(start, months) == expected


def test_verify_by_code_and_by_number(db, issued):
    by_code, status = verify_certificate(db, issued.verification_code, now=T0 + timedelta(days=1))
    by_number, _ = verify_certificate(db, issued.certificate_number, now=T0 + timedelta(days=1))

    assert by_code.id == by_number.id == issued.id
    assert status == "valid"


def test_verify_normalizes_input(db, issued):
    cert, _ = verify_certificate(db, f"  {issued.verification_code.lower()} \n", now=T0)
    assert cert.id == issued.id


def test_verify_does_not_match_prefixes(db, issued):
    with pytest.raises(CertificateNotFound):
        verify_certificate(db, issued.verification_code[:-1], now=T0)
    with pytest.raises(CertificateNotFound):
        verify_certificate(db, "", now=T0)
    with pytest.raises(CertificateNotFound):
        verify_certificate(db, "ZZZZZZZZZZZZ", now=T0)


def test_private_certificates_still_verify(db, user, issued):
    toggle_certificate_visibility(db, user.id, issued.id, is_public=False)
    cert, _ = verify_certificate(db, issued.verification_code, now=T0)
    assert cert.is_public is False


def test_validity_status_over_time(db, issued):
    # certification validity is 12 months
    expires = issued.expires_at
    assert validity_status(issued, expires - timedelta(days=31)) == "valid"
    assert validity_status(issued, expires - timedelta(days=30)) == "expiring_soon"
    assert validity_status(issued, expires - timedelta(seconds=1)) == "expiring_soon"
    assert validity_status(issued, expires) == "expired"
    assert validity_status(issued, expires - timedelta(days=10), warning_days=5) == "valid"

    _, status = verify_certificate(db, issued.certificate_number, now=expires + timedelta(days=1))
    assert status == "expired"


def test_certificate_without_expiry_is_always_valid(db, user, make_certification, answers_for):
    certification = make_certification(validity_months=None)
    attempt = start_attempt(db, user.id, certification, now=T0)
    cert = submit_attempt(db, attempt, answers_for(db, attempt, 10, 5), now=T0).certificate

    assert cert.expires_at is None
    assert validity_status(cert, datetime(2099, 1, 1)) == "valid"


def test_visibility_toggle_by_owner(db, user, issued):
    assert issued.is_public is True
    assert toggle_certificate_visibility(db, user.id, issued.id).is_public is False
    assert toggle_certificate_visibility(db, user.id, issued.id).is_public is True
    assert toggle_certificate_visibility(db, user.id, issued.id, is_public=True).is_public is True


def test_visibility_toggle_by_someone_else_looks_missing(db, other_user, issued):
    with pytest.raises(CertificateNotFound):
        toggle_certificate_visibility(db, other_user.id, issued.id)
    with pytest.raises(CertificateNotFound):
        toggle_certificate_visibility(db, other_user.id, 424242)
    assert db.get(Certificate, issued.id).is_public is True
