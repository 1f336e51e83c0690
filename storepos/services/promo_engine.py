"""Promo code validation and redemption.

Checks run in a fixed order and the first failure wins:
existence, active flag, start of window, end of window, usage limit.
Redemption is one conditional UPDATE guarded by the same predicates, so two
checkouts racing for the last use cannot both succeed.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from storepos.core.security import utcnow
from storepos.models.shop_models import PromoCode
from storepos.services import notification_service

logger = logging.getLogger(__name__)

NOT_FOUND = "not-found"
INACTIVE = "inactive"
SCHEDULED = "scheduled"
EXPIRED = "expired"
EXHAUSTED = "exhausted"

REJECTION_MESSAGES = {
    NOT_FOUND: "Promo code not found",
    INACTIVE: "Promo code is inactive",
    SCHEDULED: "Promo code is not yet active",
    EXPIRED: "Promo code has expired",
    EXHAUSTED: "Promo code usage limit reached",
}

REJECTION_STATUS = {
    NOT_FOUND: 404,
    INACTIVE: 400,
    SCHEDULED: 400,
    EXPIRED: 400,
    EXHAUSTED: 400,
}


class PromoRejected(Exception):
    def __init__(self, reason: str, code: str = ""):
        self.reason = reason
        self.code = code
        self.message = REJECTION_MESSAGES[reason]
        self.status_code = REJECTION_STATUS[reason]
        super().__init__(f"{code}: {self.message}")


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def is_exhausted(promo: PromoCode) -> bool:
    return promo.usage_limit is not None and promo.used_count >= promo.usage_limit


def check_promo(promo: Optional[PromoCode], now: datetime) -> Optional[str]:
    """Return the first rejection reason for `promo` at `now`, or None."""
    if promo is None:
        return NOT_FOUND
    if not promo.is_active:
        return INACTIVE
    if now < promo.start_date:
        return SCHEDULED
    if now > promo.end_date:
        return EXPIRED
    if is_exhausted(promo):
        return EXHAUSTED
    return None


def promo_status(promo: PromoCode, now: Optional[datetime] = None) -> str:
    """Badge shown to admins. Inactive outranks Scheduled, Expired and Used Up."""
    reason = check_promo(promo, now or utcnow())
    return {
        None: "Active",
        INACTIVE: "Inactive",
        SCHEDULED: "Scheduled",
        EXPIRED: "Expired",
        EXHAUSTED: "Used Up",
    }[reason]


def find_by_code(db: Session, code: str) -> Optional[PromoCode]:
    return db.query(PromoCode).filter(PromoCode.code == normalize_code(code)).first()


def validate(db: Session, code: str, now: Optional[datetime] = None) -> PromoCode:
    code = normalize_code(code)
    promo = find_by_code(db, code)
    reason = check_promo(promo, now or utcnow())
    if reason:
        raise PromoRejected(reason, code)
    return promo


def redeem(db: Session, code: str, now: Optional[datetime] = None) -> PromoCode:
    """Increment `used_count` by one if the code is valid right now.

    Does not commit; callers commit together with whatever the redemption
    pays for (a sale), or call `increment_usage`.
    """
    now = now or utcnow()
    code = normalize_code(code)

    updated = (
        db.query(PromoCode)
        .filter(
            PromoCode.code == code,
            PromoCode.is_active.is_(True),
            PromoCode.start_date <= now,
            PromoCode.end_date >= now,
            or_(PromoCode.usage_limit.is_(None), PromoCode.used_count < PromoCode.usage_limit),
        )
        .update(
            {PromoCode.used_count: PromoCode.used_count + 1, PromoCode.updated_at: utcnow()},
            synchronize_session=False,
        )
    )

    promo = find_by_code(db, code)
    if promo is not None:
        db.refresh(promo)
    if updated != 1:
        reason = check_promo(promo, now) or EXHAUSTED
        raise PromoRejected(reason, code)

    logger.info("Promo %s redeemed (%s/%s)", code, promo.used_count, promo.usage_limit or "unlimited")

    if is_exhausted(promo):
        logger.info("Promo %s reached its usage limit", code)
        notification_service.notify_admins(
            db,
            title="Promo code used up",
            message=f"Promo code {code} has reached its usage limit of {promo.usage_limit}.",
        )
    return promo


def increment_usage(db: Session, code: str, now: Optional[datetime] = None) -> PromoCode:
    try:
        promo = redeem(db, code, now)
    except PromoRejected:
        db.rollback()
        raise
    db.commit()
    return promo


def list_active(db: Session, now: Optional[datetime] = None) -> List[PromoCode]:
    now = now or utcnow()
    return (
        db.query(PromoCode)
        .filter(
            PromoCode.is_active.is_(True),
            PromoCode.start_date <= now,
            PromoCode.end_date >= now,
        )
        .order_by(PromoCode.end_date.asc())
        .all()
    )


def compute_discount(promo: PromoCode, subtotal: float) -> float:
    if promo.discount_type == "percentage":
        discount = subtotal * (promo.discount_value / 100.0)
    else:
        discount = min(subtotal, promo.discount_value)
    return round(max(0.0, discount), 2)


def check_promo_fields(promo: PromoCode):
    """Cross-field rules for a promo after a partial update."""
    if promo.end_date < promo.start_date:
        raise ValueError("endDate must not be before startDate")
    if promo.discount_type == "percentage" and promo.discount_value > 100:
        raise ValueError("Percentage discount cannot exceed 100")
    if promo.usage_limit is not None and promo.used_count > promo.usage_limit:
        raise ValueError("usageLimit cannot be lower than the current usedCount")
