import logging
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models, schemas
from .errors import StorageError

logger = logging.getLogger(__name__)

OrderRow = Tuple[models.Order, Optional[models.OrderItem], Optional[models.Product]]


# ---------- Contracts ----------
class CatalogReader(Protocol):
    def get_products_by_ids(self, ids: Sequence[int]) -> List[schemas.Product]: ...


class OrderWriter(Protocol):
    def create_order(self, order: schemas.Order) -> int: ...

    def create_order_item(self, item: schemas.OrderItem) -> None: ...


class OrderReader(Protocol):
    def get_orders_for_user(self, user_id: int) -> List[schemas.Order]: ...


@contextmanager
def storage_errors(action: str):
    """Re-raise database failures as StorageError."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("error %s: %s", action, e)
        raise StorageError(f"error {action}") from e


# ---------- Users ----------
class SqlUserStore:
    def __init__(self, session: Session):
        self.session = session

    def get_user_by_email(self, email: str) -> Optional[models.User]:
        with storage_errors("checking user"):
            return self.session.execute(
                select(models.User).where(models.User.email == email)
            ).scalar_one_or_none()

    def create_user(self, first_name: str, last_name: str, email: str, password_hash: str) -> models.User:
        u = models.User(first_name=first_name, last_name=last_name, email=email, password=password_hash)
        with storage_errors("creating user"):
            self.session.add(u)
            self.session.flush()
            self.session.refresh(u)
        return u


# ---------- Catalog ----------
class SqlCatalogStore:
    def __init__(self, session: Session):
        self.session = session

    def get_products_by_ids(self, ids: Sequence[int]) -> List[schemas.Product]:
        if not ids:
            return []
        with storage_errors("fetching products"):
            rows = self.session.execute(
                select(models.Product).where(models.Product.id.in_(list(ids)))
            ).scalars().all()
        return [schemas.Product.model_validate(r) for r in rows]

    def list_products(self) -> List[schemas.Product]:
        with storage_errors("fetching products"):
            rows = self.session.execute(select(models.Product).order_by(models.Product.id)).scalars().all()
        return [schemas.Product.model_validate(r) for r in rows]

    def create_product(self, payload: schemas.ProductIn) -> schemas.Product:
        p = models.Product(
            name=payload.name,
            description=payload.description,
            image=payload.image,
            price=payload.price,
            quantity=payload.quantity,
        )
        with storage_errors("creating product"):
            self.session.add(p)
            self.session.flush()
            self.session.refresh(p)
        return schemas.Product.model_validate(p)


# ---------- Orders ----------
class SqlOrderStore:
    def __init__(self, session: Session):
        self.session = session

    def create_order(self, order: schemas.Order) -> int:
        row = models.Order(
            user_id=order.user_id,
            total=order.total,
            status=order.status,
            address=order.address,
            created_at=order.created_at,
        )
        with storage_errors("creating order"):
            self.session.add(row)
            self.session.flush()  # get row.id
        return row.id

    def create_order_item(self, item: schemas.OrderItem) -> None:
        row = models.OrderItem(
            order_id=item.order_id,
            product_id=item.product_id,
            quantity=item.quantity,
            price=item.price,
        )
        with storage_errors("creating order item"):
            self.session.add(row)
            self.session.flush()

    def get_orders_for_user(self, user_id: int) -> List[schemas.Order]:
        stmt = (
            select(models.Order, models.OrderItem, models.Product)
            .select_from(models.Order)
            .outerjoin(models.OrderItem, models.OrderItem.order_id == models.Order.id)
            .outerjoin(models.Product, models.Product.id == models.OrderItem.product_id)
            .where(models.Order.user_id == user_id)
            .order_by(models.Order.created_at.desc(), models.Order.id.asc(), models.OrderItem.id.asc())
        )
        with storage_errors("fetching orders"):
            rows = self.session.execute(stmt).all()
        return assemble_orders(rows)


def assemble_orders(rows: Iterable[OrderRow]) -> List[schemas.Order]:
    """
    Fold joined (order, item, product) rows into orders with nested items.

    item is None for an order without lines; product is None when the line's
    product no longer exists. Output is newest first, ties by ascending id,
    whatever order the rows arrive in.
    """
    by_id: Dict[int, schemas.Order] = {}
    for order, item, product in rows:
        built = by_id.get(order.id)
        if built is None:
            built = schemas.Order(
                id=order.id,
                user_id=order.user_id,
                total=order.total,
                status=order.status,
                address=order.address,
                created_at=order.created_at,
                items=[],
            )
            by_id[order.id] = built

        if item is None:
            continue
        built.items.append(
            schemas.OrderItem(
                id=item.id,
                order_id=item.order_id,
                product_id=item.product_id,
                quantity=item.quantity,
                price=item.price,
                product=schemas.Product.model_validate(product) if product is not None else None,
            )
        )

    orders = sorted(by_id.values(), key=lambda o: o.id)
    # stable sort: equal timestamps keep ascending id
    orders.sort(key=lambda o: o.created_at, reverse=True)
    return orders
