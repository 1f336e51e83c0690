"""Admin dashboard figures computed from recorded sales."""
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from storepos.core.security import utcnow
from storepos.models.auth_models import User
from storepos.models.shop_models import Product, Sale

PAYMENT_METHODS = {"cash": "totalCash", "gcash": "totalGCash", "maya": "totalMaya", "cod": "totalCOD"}


def date_window(start: Optional[date], end: Optional[date]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Whole days from `start` through `end`, as a half-open datetime range."""
    if start and end and end < start:
        raise ValueError("endDate must not be before startDate")
    lower = datetime(start.year, start.month, start.day) if start else None
    upper = datetime(end.year, end.month, end.day) + timedelta(days=1) if end else None
    return lower, upper


def _within(q, lower: Optional[datetime], upper: Optional[datetime]):
    if lower is not None:
        q = q.filter(Sale.created_at >= lower)
    if upper is not None:
        q = q.filter(Sale.created_at < upper)
    return q


def _growth(current: float, previous: float) -> float:
    if not previous:
        return 100.0 if current else 0.0
    return round((current - previous) / previous * 100, 1)


def dashboard_stats(db: Session, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()

    revenue, orders, discount = db.query(
        func.coalesce(func.sum(Sale.total), 0),
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.discount), 0),
    ).one()

    def period(lower, upper):
        q = db.query(func.coalesce(func.sum(Sale.total), 0), func.count(Sale.id))
        return _within(q, lower, upper).one()

    month_ago = now - timedelta(days=30)
    cur_revenue, cur_orders = period(month_ago, now)
    prev_revenue, prev_orders = period(month_ago - timedelta(days=30), month_ago)

    return {
        "totalRevenue": round(float(revenue), 2),
        "totalOrders": orders,
        "totalDiscount": round(float(discount), 2),
        "totalUsers": db.query(func.count(User.id)).scalar(),
        "totalProducts": db.query(func.count(Product.id)).scalar(),
        "revenueGrowth": _growth(float(cur_revenue), float(prev_revenue)),
        "ordersGrowth": _growth(cur_orders, prev_orders),
    }


def sales_by_cashier(db: Session, start: Optional[date] = None, end: Optional[date] = None) -> List[dict]:
    lower, upper = date_window(start, end)

    columns = [
        Sale.user_id,
        User.name,
        User.email,
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.total), 0),
    ]
    for method in PAYMENT_METHODS:
        columns.append(func.coalesce(func.sum(case((Sale.payment_method == method, Sale.total), else_=0)), 0))

    q = db.query(*columns).outerjoin(User, User.id == Sale.user_id)
    q = _within(q, lower, upper).group_by(Sale.user_id, User.name, User.email)

    result = []
    for row in q.order_by(func.sum(Sale.total).desc()).all():
        user_id, name, email, count, total = row[:5]
        entry = {
            "userId": user_id,
            "userName": name,
            "userEmail": email,
            "totalTransactions": count,
            "totalSales": round(float(total), 2),
        }
        for key, amount in zip(PAYMENT_METHODS.values(), row[5:]):
            entry[key] = round(float(amount), 2)
        result.append(entry)
    return result


def top_products(db: Session, limit: int = 10, start: Optional[date] = None, end: Optional[date] = None) -> List[dict]:
    """Best sellers by units sold, from the line items stored on each sale."""
    lower, upper = date_window(start, end)

    totals = {}
    for (items,) in _within(db.query(Sale.items), lower, upper):
        for line in items or []:
            entry = totals.setdefault(line["productId"], {
                "productId": line["productId"],
                "name": line["name"],
                "sales": 0,
                "revenue": 0.0,
            })
            entry["sales"] += line["quantity"]
            entry["revenue"] += line["price"] * line["quantity"]

    ranked = sorted(totals.values(), key=lambda e: (-e["sales"], -e["revenue"], e["name"]))[:limit]
    for entry in ranked:
        entry["revenue"] = round(entry["revenue"], 2)
    return ranked
