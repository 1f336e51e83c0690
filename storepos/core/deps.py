from typing import Optional

from fastapi import Depends, HTTPException, Query
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from storepos.database import SessionLocal
from storepos.core.security import decode_access_token
from storepos.models.auth_models import User


bearer_scheme = HTTPBearer(auto_error=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    db: Session = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
):
    if credentials is None:
        raise HTTPException(status_code=401, detail="Unauthorized access, no token provided")

    payload = decode_access_token(credentials.credentials)
    user_id = payload.get("user_id")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized access, user not found")

    return user


def require_admin(user: User = Depends(get_current_user)):
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Access denied. Admin or Superadmin role required.")
    return user


def like_pattern(text: str) -> str:
    """`%text%` for ilike, with `%`, `_` and the escape char taken literally."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class Pagination:
    """`page`, `limit` and `search` query parameters shared by list endpoints."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        search: Optional[str] = Query(None, max_length=100),
    ):
        self.page = page
        self.limit = limit
        self.search = search.strip() if search and search.strip() else None

    @property
    def like(self) -> Optional[str]:
        return like_pattern(self.search) if self.search else None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def envelope(self, key: str, items: list, total: int) -> dict:
        return {
            key: items,
            "page": self.page,
            "limit": self.limit,
            "total": total,
            "totalPages": (total + self.limit - 1) // self.limit,
        }
