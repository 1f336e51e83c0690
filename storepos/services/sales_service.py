import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from storepos.core.config import TAX_RATE
from storepos.core.security import utcnow
from storepos.models.auth_models import User
from storepos.models.shop_models import Product, Sale
from storepos.models.shop_schemas import SaleCreate
from storepos.services import promo_engine

logger = logging.getLogger(__name__)


def take_stock(db: Session, product: Product, qty: int):
    """Move `qty` units from stock to sold, refusing if fewer are left.

    One conditional UPDATE, so concurrent checkouts cannot both take the
    last unit. Does not commit.
    """
    updated = (
        db.query(Product)
        .filter(Product.id == product.id, Product.stock >= qty)
        .update(
            {
                Product.stock: Product.stock - qty,
                Product.sold: Product.sold + qty,
                Product.updated_at: utcnow(),
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        raise HTTPException(status_code=400, detail=f"Insufficient stock for {product.name}")


def create_sale(db: Session, body: SaleCreate, user: User, now: Optional[datetime] = None) -> Sale:
    """Price the cart, redeem the promo and record the sale in one transaction.

    Raises HTTPException for unknown products or short stock and
    PromoRejected for an unusable promo code; nothing is written in either case.
    """
    quantities = {}
    for item in body.items:
        quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity

    products = db.query(Product).filter(Product.id.in_(list(quantities))).all()
    by_id = {p.id: p for p in products}

    lines = []
    subtotal = 0.0
    for product_id, qty in quantities.items():
        product = by_id.get(product_id)
        if not product:
            raise HTTPException(status_code=404, detail=f"Product {product_id} not found")
        if product.stock < qty:
            raise HTTPException(status_code=400, detail=f"Insufficient stock for {product.name}")
        lines.append({
            "productId": product.id,
            "name": product.name,
            "price": product.unit_price,
            "quantity": qty,
        })
        subtotal += product.unit_price * qty

    subtotal = round(subtotal, 2)
    tax = round(subtotal * TAX_RATE, 2)

    discount = 0.0
    promo_code = None
    try:
        if body.promo_code:
            promo = promo_engine.redeem(db, body.promo_code, now)
            discount = promo_engine.compute_discount(promo, subtotal)
            promo_code = promo.code

        for product_id, qty in quantities.items():
            take_stock(db, by_id[product_id], qty)

        sale = Sale(
            user_id=user.id,
            items=lines,
            subtotal=subtotal,
            tax=tax,
            discount=discount,
            total=round(max(0.0, subtotal + tax - discount), 2),
            payment_method=body.payment_method,
            promo_code=promo_code,
            notes=body.notes,
        )
        db.add(sale)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(sale)
    logger.info("Sale %s recorded by %s total=%.2f promo=%s", sale.id, user.email, sale.total, promo_code)
    return sale


def today_summary(db: Session, user: User) -> dict:
    now = utcnow()
    start = datetime(now.year, now.month, now.day)
    end = start + timedelta(days=1)

    q = db.query(
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.total), 0),
        func.coalesce(func.sum(Sale.discount), 0),
    ).filter(Sale.created_at >= start, Sale.created_at < end)
    if not user.is_admin:
        q = q.filter(Sale.user_id == user.id)

    count, revenue, discount = q.one()
    return {
        "date": start.date().isoformat(),
        "count": count,
        "revenue": round(float(revenue), 2),
        "discount": round(float(discount), 2),
    }
