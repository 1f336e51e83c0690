import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from storepos.core.deps import get_db, get_current_user, require_admin, Pagination
from storepos.models.auth_models import User
from storepos.models.shop_models import Brand, Category, Product
from storepos.models.shop_schemas import ProductCreate, ProductUpdate
from storepos.models.serializers import product_to_dict

router = APIRouter(tags=["Products"])
logger = logging.getLogger(__name__)

# fields an update may set back to null
CLEARABLE = ("discount_price", "category_id", "brand_id", "description", "thumbnail")


def _get_product_or_404(db: Session, product_id: str) -> Product:
    p = db.query(Product).filter(Product.id == product_id).first()
    if not p:
        raise HTTPException(status_code=404, detail="Product not found")
    return p


def _check_links(db: Session, fields: dict):
    if fields.get("category_id") and not db.get(Category, fields["category_id"]):
        raise HTTPException(status_code=400, detail="Category not found")
    if fields.get("brand_id") and not db.get(Brand, fields["brand_id"]):
        raise HTTPException(status_code=400, detail="Brand not found")


@router.get("")
def list_products(
    pg: Pagination = Depends(),
    category_id: Optional[str] = Query(None, alias="categoryId"),
    brand_id: Optional[str] = Query(None, alias="brandId"),
    in_stock: Optional[bool] = Query(None, alias="inStock"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    q = db.query(Product)
    if pg.search:
        q = q.filter(or_(Product.name.ilike(pg.like, escape="\\"), Product.description.ilike(pg.like, escape="\\")))
    if category_id:
        q = q.filter(Product.category_id == category_id)
    if brand_id:
        q = q.filter(Product.brand_id == brand_id)
    if in_stock is True:
        q = q.filter(Product.stock > 0)
    elif in_stock is False:
        q = q.filter(Product.stock <= 0)

    total = q.count()
    rows = q.order_by(Product.name.asc()).offset(pg.offset).limit(pg.limit).all()

    return {
        "success": True,
        "message": "Products fetched successfully",
        "data": pg.envelope("products", [product_to_dict(p) for p in rows], total),
    }


@router.get("/{product_id}")
def get_product(product_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    p = _get_product_or_404(db, product_id)
    return {"success": True, "data": {"product": product_to_dict(p)}}


@router.post("", status_code=201)
def create_product(body: ProductCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    fields = body.model_dump()
    _check_links(db, fields)
    p = Product(**fields)
    db.add(p)
    db.commit()
    db.refresh(p)
    logger.info("%s created product %s", admin.email, p.name)
    return {"success": True, "message": "Product created successfully", "data": {"product": product_to_dict(p)}}


@router.put("/{product_id}")
def update_product(
    product_id: str,
    body: ProductUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    p = _get_product_or_404(db, product_id)
    changes = body.model_dump(exclude_unset=True)
    _check_links(db, changes)
    for field, value in changes.items():
        if value is None and field not in CLEARABLE:
            continue
        setattr(p, field, value)

    if p.discount_price is not None and p.discount_price > p.price:
        db.rollback()
        raise HTTPException(status_code=400, detail="discountPrice cannot exceed price")
    db.commit()
    db.refresh(p)
    return {"success": True, "message": "Product updated successfully", "data": {"product": product_to_dict(p)}}


@router.delete("/{product_id}")
def delete_product(product_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    p = _get_product_or_404(db, product_id)
    db.delete(p)
    db.commit()
    logger.info("%s deleted product %s", admin.email, p.name)
    return {"success": True, "message": "Product deleted successfully", "data": {"id": product_id}}
