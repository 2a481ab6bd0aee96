import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Request, status
from sqlalchemy.orm import Session

from .auth import Authenticator, hash_password, verify_password
from .checkout import CheckoutService
from .db import get_session
from .errors import AuthError, ValidationError
from .schemas import (
    CheckoutRequest,
    Envelope,
    LoginData,
    Order,
    Product,
    ProductIn,
    RegisterData,
    UserLogin,
    UserOut,
    UserRegister,
)
from .stores import OrderReader, SqlCatalogStore, SqlOrderStore, SqlUserStore

logger = logging.getLogger(__name__)


# ---------- Dependencies ----------
def get_authenticator(request: Request) -> Authenticator:
    return request.app.state.authenticator


def require_user(
    authorization: Optional[str] = Header(default=None),
    authenticator: Authenticator = Depends(get_authenticator),
) -> int:
    return authenticator.authenticate(authorization)


def get_checkout_service(session: Session = Depends(get_session)) -> CheckoutService:
    return CheckoutService(catalog=SqlCatalogStore(session), orders=SqlOrderStore(session))


def get_order_reader(session: Session = Depends(get_session)) -> OrderReader:
    return SqlOrderStore(session)


# ---------- Users ----------
users_router = APIRouter(tags=["users"])


@users_router.post("/register", response_model=Envelope[RegisterData], status_code=status.HTTP_201_CREATED)
def register(payload: UserRegister, session: Session = Depends(get_session)):
    store = SqlUserStore(session)
    if store.get_user_by_email(payload.email) is not None:
        raise ValidationError(f"user with email {payload.email} already exists")

    u = store.create_user(
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        password_hash=hash_password(payload.password),
    )
    session.commit()
    logger.info("registered user %s", u.id)
    return Envelope(
        message="user created successfully",
        data=RegisterData(user=UserOut.model_validate(u)),
    )


@users_router.post("/login", response_model=Envelope[LoginData])
def login(
    payload: UserLogin,
    session: Session = Depends(get_session),
    authenticator: Authenticator = Depends(get_authenticator),
):
    u = SqlUserStore(session).get_user_by_email(payload.email)
    if u is None or not verify_password(payload.password, u.password):
        raise AuthError("invalid email or password")
    return Envelope(
        message="login successful",
        data=LoginData(token=authenticator.issue(u.id), user=UserOut.model_validate(u)),
    )


# ---------- Catalog ----------
products_router = APIRouter(tags=["products"])


@products_router.get("/products", response_model=Envelope[List[Product]])
def list_products(user_id: int = Depends(require_user), session: Session = Depends(get_session)):
    return Envelope(message="products fetched successfully", data=SqlCatalogStore(session).list_products())


@products_router.post("/products/create", response_model=Envelope[Product], status_code=status.HTTP_201_CREATED)
def create_product(payload: ProductIn, user_id: int = Depends(require_user), session: Session = Depends(get_session)):
    p = SqlCatalogStore(session).create_product(payload)
    session.commit()
    logger.info("product %s created by user %s", p.id, user_id)
    return Envelope(message="product created successfully", data=p)


# ---------- Orders ----------
orders_router = APIRouter(tags=["orders"])


@orders_router.post("/order", response_model=Envelope[Order], status_code=status.HTTP_201_CREATED)
def checkout(
    payload: CheckoutRequest,
    user_id: int = Depends(require_user),
    service: CheckoutService = Depends(get_checkout_service),
    session: Session = Depends(get_session),
):
    order = service.checkout(user_id, payload)
    # header and lines commit together, before the 201 goes out
    session.commit()
    return Envelope(message="order created successfully", data=order)


@orders_router.get("/orders", response_model=Envelope[List[Order]])
def list_orders(user_id: int = Depends(require_user), reader: OrderReader = Depends(get_order_reader)):
    return Envelope(message="orders fetched successfully", data=reader.get_orders_for_user(user_id))
