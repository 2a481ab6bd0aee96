import re
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
NAME_RE = re.compile(r"^[a-zA-Z\s\-']+$")

# Decimal in Python, number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Envelope(BaseModel, Generic[T]):
    status: str = "success"
    message: str
    data: T


# ---------- Users ----------
class UserRegister(CamelModel):
    first_name: str
    last_name: str
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        if not EMAIL_RE.match(v):
            raise ValueError("invalid email format")
        return v

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("password must be at least 8 characters long")
        if len(v) > 32:
            raise ValueError("password must not exceed 32 characters")
        if not re.search(r"[0-9]", v) or not re.search(r"[a-zA-Z]", v):
            raise ValueError("password must contain at least one number and one letter")
        return v

    @field_validator("first_name", "last_name")
    @classmethod
    def check_name(cls, v: str) -> str:
        if len(v) < 2:
            raise ValueError("must be at least 2 characters long")
        if len(v) > 50:
            raise ValueError("must not exceed 50 characters")
        if not NAME_RE.match(v):
            raise ValueError("contains invalid characters")
        return v


class UserLogin(CamelModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        if not v:
            raise ValueError("email is required")
        if not EMAIL_RE.match(v):
            raise ValueError("invalid email format")
        return v

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        if not v:
            raise ValueError("password is required")
        if len(v) < 8:
            raise ValueError("password must be at least 8 characters long")
        return v


class UserOut(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str


class RegisterData(BaseModel):
    user: UserOut


class LoginData(BaseModel):
    token: str
    user: UserOut


# ---------- Catalog ----------
class ProductIn(CamelModel):
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    image: str = Field(min_length=1)
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    quantity: int = Field(ge=0, default=0)


class Product(CamelModel):
    id: int
    name: str
    description: str = ""
    image: str = ""
    price: Money
    quantity: int
    created_at: Optional[datetime] = None


# ---------- Checkout / orders ----------
class CartItem(CamelModel):
    product_id: int = Field(alias="productID", ge=1)
    quantity: int = Field(gt=0)


class CheckoutRequest(CamelModel):
    items: List[CartItem]
    address: str


class OrderItem(CamelModel):
    id: Optional[int] = None
    order_id: int
    product_id: int
    quantity: int
    price: Money
    # only filled in when an order is read back; None if the product is gone
    product: Optional[Product] = None


class Order(CamelModel):
    id: Optional[int] = None
    user_id: int
    total: Money
    status: str = "pending"
    address: str
    created_at: datetime
    items: List[OrderItem] = Field(default_factory=list)
