import logging
from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session

from storepos.core.deps import get_db, get_current_user, require_admin, Pagination
from storepos.models.auth_models import User
from storepos.models.auth_schemas import UserUpdate
from storepos.models.serializers import user_to_dict

router = APIRouter(tags=["Users"])
logger = logging.getLogger(__name__)


def _get_user_or_404(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/me")
def get_me(user: User = Depends(get_current_user)):
    return {"success": True, "message": "User profile fetched successfully", "user": user_to_dict(user)}


@router.get("")
def list_users(
    pg: Pagination = Depends(),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    q = db.query(User)
    if pg.search:
        q = q.filter(or_(User.email.ilike(pg.like, escape="\\"), User.name.ilike(pg.like, escape="\\")))

    total = q.count()
    users = q.order_by(User.created_at.desc()).offset(pg.offset).limit(pg.limit).all()

    return {
        "success": True,
        "message": "Users fetched successfully",
        "data": pg.envelope("users", [user_to_dict(u) for u in users], total),
    }


@router.get("/{user_id}")
def get_user(user_id: str, db: Session = Depends(get_db), current: User = Depends(get_current_user)):
    if current.id != user_id and not current.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")
    user = _get_user_or_404(db, user_id)
    return {"success": True, "message": "User fetched successfully", "user": user_to_dict(user)}


@router.put("/{user_id}")
def update_user(
    user_id: str,
    body: UserUpdate,
    db: Session = Depends(get_db),
    current: User = Depends(get_current_user),
):
    if current.id != user_id and not current.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")

    user = _get_user_or_404(db, user_id)

    if body.name is not None:
        user.name = body.name.strip()

    if body.role is not None and body.role != user.role:
        if current.role != "superadmin":
            raise HTTPException(status_code=403, detail="Only a superadmin can change roles")
        user.role = body.role
        logger.info("%s changed role of %s to %s", current.email, user.email, body.role)

    db.commit()
    db.refresh(user)
    return {"success": True, "message": "User updated successfully", "user": user_to_dict(user)}


@router.delete("/{user_id}")
def delete_user(user_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    user = _get_user_or_404(db, user_id)
    if user.id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")

    db.delete(user)
    db.commit()
    logger.info("%s deleted user %s", admin.email, user.email)

    return {"success": True, "message": "User deleted successfully", "user": {"id": user_id}}
