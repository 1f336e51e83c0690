import logging
from sqlalchemy.orm import Session

from storepos.models.auth_models import User
from storepos.models.shop_models import Notification

logger = logging.getLogger(__name__)


def notify(db: Session, user_id: str, title: str, message: str) -> Notification:
    n = Notification(user_id=user_id, title=title, message=message)
    db.add(n)
    return n


def notify_admins(db: Session, title: str, message: str) -> int:
    admins = db.query(User).filter(User.role.in_(["admin", "superadmin"])).all()
    for adm in admins:
        notify(db, adm.id, title, message)
    logger.info("Queued '%s' notification for %d admins", title, len(admins))
    return len(admins)
