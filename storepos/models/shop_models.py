from sqlalchemy import Column, String, Boolean, DateTime, Integer, Float, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship

from storepos.core.security import utcnow
from storepos.models.auth_models import Base, new_id


class PromoCode(Base):
    __tablename__ = "promo_codes"

    id = Column(String, primary_key=True, default=new_id)

    code = Column(String, unique=True, nullable=False, index=True)  # always upper case

    discount_type = Column(String, nullable=False)  # percentage / fixed
    discount_value = Column(Float, nullable=False, default=0)

    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)

    is_active = Column(Boolean, nullable=False, default=True)

    usage_limit = Column(Integer, nullable=True)  # NULL = unlimited
    used_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String, primary_key=True, default=new_id)

    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=utcnow)


class Brand(Base):
    __tablename__ = "brands"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Category(Base):
    __tablename__ = "categories"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Product(Base):
    __tablename__ = "products"

    id = Column(String, primary_key=True, default=new_id)

    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    price = Column(Float, nullable=False)
    discount_price = Column(Float, nullable=True)  # sells at this when set
    stock = Column(Integer, nullable=False, default=0)
    sold = Column(Integer, nullable=False, default=0)

    category_id = Column(String, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)
    brand_id = Column(String, ForeignKey("brands.id", ondelete="SET NULL"), nullable=True, index=True)
    thumbnail = Column(String, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    category = relationship("Category")
    brand = relationship("Brand")

    @property
    def unit_price(self) -> float:
        return self.discount_price if self.discount_price is not None else self.price


class Sale(Base):
    __tablename__ = "sales"

    id = Column(String, primary_key=True, default=new_id)

    user_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    items = Column(JSON, nullable=False)  # [{productId, name, price, quantity}]

    subtotal = Column(Float, nullable=False)
    tax = Column(Float, nullable=False)
    discount = Column(Float, nullable=False, default=0)
    total = Column(Float, nullable=False)

    payment_method = Column(String, nullable=False)  # cash / cod / gcash / maya
    promo_code = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="completed")

    created_at = Column(DateTime, default=utcnow, index=True)
