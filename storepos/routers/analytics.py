from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy.orm import Session

from storepos.core.deps import get_db, require_admin
from storepos.models.auth_models import User
from storepos.services import analytics_service

router = APIRouter(tags=["Analytics"])


@router.get("/dashboard/stats")
def dashboard_stats(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return {"success": True, "data": analytics_service.dashboard_stats(db)}


@router.get("/sales-by-cashier")
def sales_by_cashier(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        rows = analytics_service.sales_by_cashier(db, start_date, end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "data": rows}


@router.get("/products")
def top_products(
    limit: int = Query(10, ge=1, le=100),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    try:
        rows = analytics_service.top_products(db, limit, start_date, end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "data": rows}
