"""Brand and category endpoints.

Both are plain named labels that products point at, so one router factory
serves both. Reads are public, writes need an admin.
"""
import logging
from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storepos.core.deps import get_db, require_admin, Pagination
from storepos.models.auth_models import User
from storepos.models.shop_models import Brand, Category, Product
from storepos.models.shop_schemas import LabelCreate, LabelUpdate
from storepos.models.serializers import label_to_dict

logger = logging.getLogger(__name__)


def label_router(model, noun: str, plural: str, product_column) -> APIRouter:
    router = APIRouter(tags=[plural.capitalize()])

    def get_or_404(db: Session, label_id: str):
        row = db.query(model).filter(model.id == label_id).first()
        if not row:
            raise HTTPException(status_code=404, detail=f"{noun.capitalize()} not found")
        return row

    def ensure_unique(db: Session, name: str, exclude_id: str = None):
        q = db.query(model).filter(func.lower(model.name) == name.lower())
        if exclude_id:
            q = q.filter(model.id != exclude_id)
        if q.first():
            raise HTTPException(status_code=409, detail=f"{noun.capitalize()} already exists")

    def commit(db: Session):
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise HTTPException(status_code=409, detail=f"{noun.capitalize()} already exists")

    @router.get("")
    def list_labels(pg: Pagination = Depends(), db: Session = Depends(get_db)):
        q = db.query(model)
        if pg.search:
            q = q.filter(model.name.ilike(pg.like, escape="\\"))

        total = q.count()
        rows = q.order_by(model.name.asc()).offset(pg.offset).limit(pg.limit).all()
        return {"success": True, "data": pg.envelope(plural, [label_to_dict(r) for r in rows], total)}

    @router.get("/{label_id}")
    def get_label(label_id: str, db: Session = Depends(get_db)):
        return {"success": True, "data": {noun: label_to_dict(get_or_404(db, label_id))}}

    @router.post("", status_code=201)
    def create_label(body: LabelCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
        ensure_unique(db, body.name)
        row = model(name=body.name, description=body.description)
        db.add(row)
        commit(db)
        db.refresh(row)
        logger.info("%s created %s %s", admin.email, noun, row.name)
        return {
            "success": True,
            "message": f"{noun.capitalize()} created successfully",
            "data": {noun: label_to_dict(row)},
        }

    @router.put("/{label_id}")
    def update_label(
        label_id: str,
        body: LabelUpdate,
        db: Session = Depends(get_db),
        admin: User = Depends(require_admin),
    ):
        row = get_or_404(db, label_id)
        changes = body.model_dump(exclude_unset=True)
        if changes.get("name"):
            ensure_unique(db, changes["name"], exclude_id=row.id)
            row.name = changes["name"]
        if "description" in changes:
            row.description = changes["description"]

        commit(db)
        db.refresh(row)
        return {
            "success": True,
            "message": f"{noun.capitalize()} updated successfully",
            "data": {noun: label_to_dict(row)},
        }

    @router.delete("/{label_id}")
    def delete_label(label_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
        row = get_or_404(db, label_id)
        # products keep existing without the label
        db.query(Product).filter(product_column == row.id).update({product_column: None}, synchronize_session=False)
        db.delete(row)
        db.commit()
        logger.info("%s deleted %s %s", admin.email, noun, row.name)
        return {"success": True, "message": f"{noun.capitalize()} deleted successfully", "data": {"id": label_id}}

    return router


brands = label_router(Brand, "brand", "brands", Product.brand_id)
categories = label_router(Category, "category", "categories", Product.category_id)
