import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from storepos.core.config import REFRESH_TOKEN_EXPIRE_DAYS, SUPERADMIN_EMAILS
from storepos.core.deps import get_db, get_current_user, bearer_scheme
from storepos.core.security import create_access_token, create_refresh_token, utcnow
from storepos.models.auth_models import User, RefreshToken
from storepos.models.auth_schemas import RequestOTP, VerifyOTP, RefreshBody, LogoutBody
from storepos.models.serializers import user_to_dict
from storepos.services import otp_service


router = APIRouter(tags=["Auth"])
logger = logging.getLogger(__name__)


def issue_token_pair(db: Session, user: User) -> dict:
    refresh_token = create_refresh_token()
    db.add(RefreshToken(
        user_id=user.id,
        token=refresh_token,
        expires_at=utcnow() + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS),
    ))
    db.commit()
    return {
        "accessToken": create_access_token(str(user.id), user.role),
        "refreshToken": refresh_token,
    }


def _send(db: Session, email: str, allow_outstanding: bool):
    try:
        otp_service.issue_challenge(db, email, allow_outstanding=allow_outstanding)
    except otp_service.OTPError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# ----------------- GENERATE OTP (login start) -----------------
@router.post("/generate-otp")
def generate_otp(body: RequestOTP, db: Session = Depends(get_db)):
    _send(db, body.email, allow_outstanding=False)
    return {"success": True, "message": "OTP sent to your email"}


# ----------------- RESEND OTP -----------------
@router.post("/resend-otp")
def resend_otp(body: RequestOTP, db: Session = Depends(get_db)):
    _send(db, body.email, allow_outstanding=True)
    return {"success": True, "message": "A new OTP has been sent to your email"}


# ----------------- VERIFY OTP -----------------
@router.post("/verify-otp")
def verify_otp(body: VerifyOTP, db: Session = Depends(get_db)):

    email = body.email.lower().strip()

    try:
        otp_service.verify_challenge(db, email, body.otp)
    except otp_service.OTPError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    # signup happens on first successful verification
    user = db.query(User).filter(User.email == email).first()
    if not user:
        role = "superadmin" if email in SUPERADMIN_EMAILS else "user"
        user = User(email=email, name=email.split("@")[0], role=role, is_verified=True)
        db.add(user)
        logger.info("Created user %s on first verification", email)
    elif not user.is_verified:
        user.is_verified = True

    db.commit()
    db.refresh(user)

    tokens = issue_token_pair(db, user)
    logger.info("User %s logged in", email)

    return {
        "success": True,
        "message": "OTP verified successfully",
        "user": user_to_dict(user),
        **tokens,
    }


# ----------------- REFRESH -----------------
@router.post("/refresh-token")
def refresh(
    body: Optional[RefreshBody] = None,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
):
    presented = (body.refresh_token if body else None) or (credentials.credentials if credentials else None)
    if not presented:
        raise HTTPException(status_code=401, detail="Refresh token required")

    row = db.query(RefreshToken).filter(
        RefreshToken.token == presented,
        RefreshToken.is_revoked == False  # noqa: E712
    ).first()

    if not row or row.expires_at < utcnow():
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    user = db.query(User).filter(User.id == row.user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    # rotation: the presented token is spent
    row.is_revoked = True
    tokens = issue_token_pair(db, user)
    logger.info("Rotated refresh token for %s", user.email)

    return {"success": True, **tokens}


# ----------------- LOGOUT -----------------
@router.post("/logout")
def logout(body: LogoutBody, db: Session = Depends(get_db)):

    row = db.query(RefreshToken).filter(RefreshToken.token == body.refresh_token).first()
    if not row:
        return {"success": True, "message": "Logged out"}

    row.is_revoked = True
    db.commit()

    return {"success": True, "message": "Logged out successfully"}


# ----------------- ME -----------------
@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {"success": True, "message": "User profile fetched successfully", "user": user_to_dict(user)}
