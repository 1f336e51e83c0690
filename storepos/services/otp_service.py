"""OTP challenge lifecycle.

Only the latest challenge for an email is ever verifiable: issuing a new one
(login start or resend) marks every earlier live challenge as superseded.
A challenge is consumed by its first successful verification.
"""
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from storepos.core.config import OTP_EXPIRE_MINUTES
from storepos.core.security import generate_otp, hash_otp, verify_otp_hash, utcnow
from storepos.models.auth_models import OTPChallenge
from storepos.services import email_service

logger = logging.getLogger(__name__)


class OTPError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class OTPOutstanding(OTPError):
    def __init__(self):
        super().__init__("OTP already sent. Please check your email.", status_code=409)


def _live_query(db: Session, email: str):
    return db.query(OTPChallenge).filter(
        OTPChallenge.email == email,
        OTPChallenge.consumed_at.is_(None),
        OTPChallenge.superseded_at.is_(None),
    )


def live_challenge(db: Session, email: str) -> Optional[OTPChallenge]:
    return (
        _live_query(db, email)
        .filter(OTPChallenge.expires_at > utcnow())
        .order_by(OTPChallenge.created_at.desc())
        .first()
    )


def issue_challenge(db: Session, email: str, allow_outstanding: bool = True) -> OTPChallenge:
    """Create a fresh challenge for `email` and deliver the code.

    With `allow_outstanding=False` an unexpired live challenge raises
    OTPOutstanding instead of being replaced.
    """
    email = email.lower().strip()

    if not allow_outstanding and live_challenge(db, email) is not None:
        logger.info("OTP already outstanding for %s", email)
        raise OTPOutstanding()

    now = utcnow()
    superseded = _live_query(db, email).update(
        {OTPChallenge.superseded_at: now}, synchronize_session=False
    )

    otp = generate_otp()
    challenge = OTPChallenge(
        email=email,
        code_hash=hash_otp(otp),
        expires_at=now + timedelta(minutes=OTP_EXPIRE_MINUTES),
        created_at=now,
    )
    db.add(challenge)
    db.flush()

    # rolls back the new challenge if delivery fails
    try:
        email_service.send_email_otp(email, otp)
    except Exception:
        db.rollback()
        raise

    db.commit()
    logger.info("Issued OTP challenge for %s (superseded %d)", email, superseded)
    return challenge


def verify_challenge(db: Session, email: str, otp: str) -> OTPChallenge:
    email = email.lower().strip()

    challenge = (
        _live_query(db, email)
        .order_by(OTPChallenge.created_at.desc())
        .first()
    )
    if not challenge:
        raise OTPError("OTP not found")

    if utcnow() > challenge.expires_at:
        raise OTPError("OTP expired")

    if not verify_otp_hash(otp.strip(), challenge.code_hash):
        challenge.attempts += 1
        db.commit()
        logger.warning("Invalid OTP for %s (attempt %d)", email, challenge.attempts)
        raise OTPError("Invalid OTP")

    challenge.consumed_at = utcnow()
    db.flush()
    return challenge
