from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.orm import Session

from storepos.core.deps import get_db, get_current_user, Pagination
from storepos.models.auth_models import User
from storepos.models.shop_models import Sale
from storepos.models.shop_schemas import SaleCreate
from storepos.models.serializers import sale_to_dict
from storepos.routers.promos import rejected
from storepos.services import sales_service
from storepos.services.promo_engine import PromoRejected

router = APIRouter(tags=["Sales"])


@router.post("", status_code=201)
def create_sale(body: SaleCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        sale = sales_service.create_sale(db, body, user)
    except PromoRejected as e:
        raise rejected(e)
    return {"success": True, "message": "Sale recorded successfully", "data": {"sale": sale_to_dict(sale)}}


@router.get("")
def list_sales(
    pg: Pagination = Depends(),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    q = db.query(Sale)
    if not user.is_admin:
        q = q.filter(Sale.user_id == user.id)
    if pg.search:
        q = q.filter(Sale.promo_code == pg.search.upper())

    total = q.count()
    rows = q.order_by(Sale.created_at.desc()).offset(pg.offset).limit(pg.limit).all()

    return {"success": True, "data": pg.envelope("sales", [sale_to_dict(s) for s in rows], total)}


@router.get("/today/summary")
def today_summary(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return {"success": True, "data": sales_service.today_summary(db, user)}


@router.get("/{sale_id}")
def get_sale(sale_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    sale = db.query(Sale).filter(Sale.id == sale_id).first()
    if not sale or (sale.user_id != user.id and not user.is_admin):
        raise HTTPException(status_code=404, detail="Sale not found")
    return {"success": True, "data": {"sale": sale_to_dict(sale)}}
