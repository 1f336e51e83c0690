from datetime import datetime
from typing import Optional

from storepos.models.auth_models import User
from storepos.models.shop_models import PromoCode, Notification, Product, Sale
from storepos.services.promo_engine import promo_status


def iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "isVerified": bool(user.is_verified),
        "createdAt": iso(user.created_at),
        "updatedAt": iso(user.updated_at),
    }


def promo_to_dict(promo: PromoCode, now: Optional[datetime] = None) -> dict:
    return {
        "id": promo.id,
        "code": promo.code,
        "discountType": promo.discount_type,
        "discountValue": promo.discount_value,
        "startDate": iso(promo.start_date),
        "endDate": iso(promo.end_date),
        "isActive": bool(promo.is_active),
        "usageLimit": promo.usage_limit,
        "usedCount": promo.used_count,
        "status": promo_status(promo, now),
        "createdAt": iso(promo.created_at),
        "updatedAt": iso(promo.updated_at),
    }


def notification_to_dict(n: Notification) -> dict:
    return {
        "id": n.id,
        "userId": n.user_id,
        "title": n.title,
        "message": n.message,
        "isRead": bool(n.is_read),
        "createdAt": iso(n.created_at),
    }


def label_to_dict(row) -> dict:
    """Brands and categories share one shape."""
    return {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "createdAt": iso(row.created_at),
        "updatedAt": iso(row.updated_at),
    }


def product_to_dict(p: Product) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "price": p.price,
        "discountPrice": p.discount_price,
        "stock": p.stock,
        "sold": p.sold,
        "categoryId": p.category_id,
        "category": p.category.name if p.category else None,
        "brandId": p.brand_id,
        "brand": p.brand.name if p.brand else None,
        "thumbnail": p.thumbnail,
        "createdAt": iso(p.created_at),
        "updatedAt": iso(p.updated_at),
    }


def sale_to_dict(s: Sale) -> dict:
    return {
        "id": s.id,
        "userId": s.user_id,
        "items": s.items,
        "subtotal": s.subtotal,
        "tax": s.tax,
        "discount": s.discount,
        "total": s.total,
        "paymentMethod": s.payment_method,
        "promoCode": s.promo_code,
        "notes": s.notes,
        "status": s.status,
        "createdAt": iso(s.created_at),
    }
