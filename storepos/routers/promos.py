import logging
from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storepos.core.deps import get_db, get_current_user, require_admin, Pagination, like_pattern
from storepos.core.security import to_naive_utc
from storepos.models.auth_models import User
from storepos.models.shop_models import PromoCode
from storepos.models.shop_schemas import PromoCodeBody, PromoCreate, PromoUpdate
from storepos.models.serializers import promo_to_dict
from storepos.services import promo_engine
from storepos.services.promo_engine import PromoRejected

router = APIRouter(tags=["Promo Codes"])
logger = logging.getLogger(__name__)


def rejected(e: PromoRejected) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail={"message": e.message, "reason": e.reason})


def _commit_unique(db: Session):
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Promo code already exists")


def _get_promo_or_404(db: Session, promo_id: str) -> PromoCode:
    promo = db.query(PromoCode).filter(PromoCode.id == promo_id).first()
    if not promo:
        raise HTTPException(status_code=404, detail="Promo code not found")
    return promo


# ---------------- PUBLIC ----------------
@router.post("/validate")
def validate_promo(body: PromoCodeBody, db: Session = Depends(get_db)):
    try:
        promo = promo_engine.validate(db, body.code)
    except PromoRejected as e:
        raise rejected(e)

    return {
        "success": True,
        "message": "Promo code is valid",
        "data": {"promoCode": promo_to_dict(promo)},
    }


@router.post("/increment")
def increment_promo(body: PromoCodeBody, db: Session = Depends(get_db)):
    try:
        promo = promo_engine.increment_usage(db, body.code)
    except PromoRejected as e:
        raise rejected(e)

    return {
        "success": True,
        "message": "Promo code usage incremented",
        "data": {"promoCode": promo_to_dict(promo)},
    }


# ---------------- AUTHENTICATED ----------------
@router.get("")
def list_promos(
    pg: Pagination = Depends(),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    q = db.query(PromoCode)
    if pg.search:
        q = q.filter(PromoCode.code.ilike(like_pattern(pg.search.upper()), escape="\\"))

    total = q.count()
    promos = q.order_by(PromoCode.created_at.desc()).offset(pg.offset).limit(pg.limit).all()

    return {
        "success": True,
        "message": "Promo codes fetched successfully",
        "data": pg.envelope("promoCodes", [promo_to_dict(p) for p in promos], total),
    }


@router.get("/active")
def active_promos(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    promos = promo_engine.list_active(db)
    return {
        "success": True,
        "message": "Active promo codes fetched successfully",
        "data": {"promoCodes": [promo_to_dict(p) for p in promos]},
    }


@router.get("/{promo_id}")
def get_promo(promo_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    promo = _get_promo_or_404(db, promo_id)
    return {"success": True, "message": "Promo code fetched successfully", "data": {"promoCode": promo_to_dict(promo)}}


# ---------------- ADMIN ----------------
@router.post("", status_code=201)
def create_promo(body: PromoCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):

    if promo_engine.find_by_code(db, body.code):
        raise HTTPException(status_code=409, detail="Promo code already exists")

    promo = PromoCode(
        code=body.code,
        discount_type=body.discount_type,
        discount_value=body.discount_value,
        start_date=to_naive_utc(body.start_date),
        end_date=to_naive_utc(body.end_date),
        is_active=body.is_active,
        usage_limit=body.usage_limit,
        used_count=0,
    )
    db.add(promo)
    _commit_unique(db)
    db.refresh(promo)
    logger.info("%s created promo %s", admin.email, promo.code)

    return {"success": True, "message": "Promo code created successfully", "data": {"promoCode": promo_to_dict(promo)}}


@router.put("/{promo_id}")
def update_promo(
    promo_id: str,
    body: PromoUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    promo = _get_promo_or_404(db, promo_id)
    changes = body.model_dump(exclude_unset=True)

    if "code" in changes and changes["code"] != promo.code:
        if promo_engine.find_by_code(db, changes["code"]):
            raise HTTPException(status_code=409, detail="Promo code already exists")

    for field, value in changes.items():
        if field in ("start_date", "end_date") and value is not None:
            value = to_naive_utc(value)
        if value is None and field != "usage_limit":
            continue
        setattr(promo, field, value)

    try:
        promo_engine.check_promo_fields(promo)
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))

    _commit_unique(db)
    db.refresh(promo)
    logger.info("%s updated promo %s", admin.email, promo.code)

    return {"success": True, "message": "Promo code updated successfully", "data": {"promoCode": promo_to_dict(promo)}}


@router.delete("/{promo_id}")
def delete_promo(promo_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    promo = _get_promo_or_404(db, promo_id)
    db.delete(promo)
    db.commit()
    logger.info("%s deleted promo %s", admin.email, promo.code)
    return {"success": True, "message": "Promo code deleted successfully", "data": {"id": promo_id}}
