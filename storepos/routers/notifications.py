from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.orm import Session

from storepos.core.deps import get_db, get_current_user, require_admin, Pagination
from storepos.models.auth_models import User
from storepos.models.shop_models import Notification
from storepos.models.shop_schemas import NotificationTest
from storepos.models.serializers import notification_to_dict
from storepos.services import notification_service

router = APIRouter(tags=["Notifications"])


def _own(db: Session, user: User):
    return db.query(Notification).filter(Notification.user_id == user.id)


@router.get("")
def list_notifications(
    pg: Pagination = Depends(),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    q = _own(db, user)
    if pg.search:
        q = q.filter(Notification.title.ilike(pg.like, escape="\\"))

    total = q.count()
    rows = q.order_by(Notification.created_at.desc()).offset(pg.offset).limit(pg.limit).all()

    return {
        "success": True,
        "data": pg.envelope("notifications", [notification_to_dict(n) for n in rows], total),
    }


@router.get("/unread-count")
def unread_count(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    count = _own(db, user).filter(Notification.is_read == False).count()  # noqa: E712
    return {"success": True, "data": {"count": count}}


@router.patch("/mark-all-read")
def mark_all_read(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    updated = _own(db, user).filter(Notification.is_read == False).update(  # noqa: E712
        {Notification.is_read: True}, synchronize_session=False
    )
    db.commit()
    return {"success": True, "message": "All notifications marked as read", "data": {"updated": updated}}


@router.patch("/{notification_id}/read")
def mark_read(notification_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    n = _own(db, user).filter(Notification.id == notification_id).first()
    if not n:
        raise HTTPException(status_code=404, detail="Notification not found")
    n.is_read = True
    db.commit()
    return {"success": True, "message": "Notification marked as read", "data": {"notification": notification_to_dict(n)}}


@router.delete("/{notification_id}")
def delete_notification(notification_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    n = _own(db, user).filter(Notification.id == notification_id).first()
    if not n:
        raise HTTPException(status_code=404, detail="Notification not found")
    db.delete(n)
    db.commit()
    return {"success": True, "message": "Notification deleted", "data": {"id": notification_id}}


# admin test tool
@router.post("/test", status_code=201)
def send_test(body: NotificationTest, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    target = body.user_id or admin.id
    if not db.query(User).filter(User.id == target).first():
        raise HTTPException(status_code=404, detail="User not found")

    n = notification_service.notify(db, target, body.title, body.message)
    db.commit()
    db.refresh(n)
    return {"success": True, "message": "Test notification created", "data": {"notification": notification_to_dict(n)}}
