import re
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, field_validator, model_validator

from storepos.models.auth_schemas import CamelModel

CODE_RE = re.compile(r"^[A-Z0-9_-]{3,32}$")


def _clean_code(value: str) -> str:
    code = value.strip().upper()
    if not CODE_RE.fullmatch(code):
        raise ValueError("Code must be 3-32 characters of A-Z, 0-9, '-' or '_'")
    return code


# -------- Promo codes --------
class PromoCodeBody(CamelModel):
    code: str = Field(..., min_length=1, max_length=64)


class PromoCreate(CamelModel):
    code: str
    discount_type: Literal["percentage", "fixed"]
    discount_value: float = Field(..., ge=0)
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    usage_limit: Optional[int] = Field(None, ge=1)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value):
        return _clean_code(value)

    @model_validator(mode="after")
    def check_ranges(self):
        if self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        if self.discount_type == "percentage" and self.discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        return self


class PromoUpdate(CamelModel):
    code: Optional[str] = None
    discount_type: Optional[Literal["percentage", "fixed"]] = None
    discount_value: Optional[float] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    usage_limit: Optional[int] = Field(None, ge=1)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value):
        return None if value is None else _clean_code(value)


# -------- Notifications --------
class NotificationTest(CamelModel):
    title: str = Field("Test notification", max_length=200)
    message: str = Field("This is a test notification.", max_length=2000)
    user_id: Optional[str] = None


# -------- Brands / categories --------
def _clean_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Name is required")
    return value


class LabelCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value):
        return _clean_name(value)


class LabelUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value):
        return None if value is None else _clean_name(value)


# -------- Products --------
class ProductCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    stock: int = Field(0, ge=0)
    category_id: Optional[str] = None
    brand_id: Optional[str] = None
    thumbnail: Optional[str] = None

    @model_validator(mode="after")
    def check_discount(self):
        if self.discount_price is not None and self.discount_price > self.price:
            raise ValueError("discountPrice cannot exceed price")
        return self


class ProductUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    category_id: Optional[str] = None
    brand_id: Optional[str] = None
    thumbnail: Optional[str] = None


# -------- Sales --------
class SaleItemIn(CamelModel):
    product_id: str
    quantity: int = Field(..., ge=1)


class SaleCreate(CamelModel):
    items: List[SaleItemIn] = Field(..., min_length=1)
    payment_method: Literal["cash", "cod", "gcash", "maya"]
    promo_code: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=1000)
