import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List

from . import schemas
from .errors import NotFoundError, StorageError, ValidationError
from .metrics import ORDERS_CREATED, ORDERS_FAILED
from .models import utcnow
from .stores import CatalogReader, OrderWriter

logger = logging.getLogger(__name__)

# largest value orders.total (NUMERIC(14,2)) can hold
MAX_ORDER_TOTAL = Decimal("999999999999.99")


class CheckoutService:
    """
    Turns a cart into a persisted order.

    Nothing is written until every item has been matched to a catalog product
    with enough quantity. Stock is checked, not reserved: two concurrent
    checkouts of the last unit can both succeed.
    """

    def __init__(self, catalog: CatalogReader, orders: OrderWriter, clock: Callable[[], datetime] = utcnow):
        self.catalog = catalog
        self.orders = orders
        self.clock = clock

    def checkout(self, user_id: int, request: schemas.CheckoutRequest) -> schemas.Order:
        if not request.items:
            raise self._fail("empty_cart", ValidationError("items must not be empty"))
        if not request.address or not request.address.strip():
            raise self._fail("missing_address", ValidationError("address is required"))

        # distinct ids, first appearance wins; cart items themselves stay as given
        product_ids = list(dict.fromkeys(it.product_id for it in request.items))
        products = self.catalog.get_products_by_ids(product_ids)
        by_id: Dict[int, schemas.Product] = {p.id: p for p in products}
        if len(products) != len(product_ids) or any(pid not in by_id for pid in product_ids):
            raise self._fail("missing_product", NotFoundError("one or more products not found"))

        for it in request.items:
            if it.quantity > by_id[it.product_id].quantity:
                raise self._fail(
                    "insufficient_quantity",
                    ValidationError(f"insufficient quantity for product {it.product_id}"),
                )

        total = sum((by_id[it.product_id].price * it.quantity for it in request.items), Decimal("0"))
        if total > MAX_ORDER_TOTAL:
            raise self._fail("total_too_large", ValidationError("order total exceeds the maximum allowed"))

        order = schemas.Order(
            user_id=user_id,
            total=total,
            status="pending",
            address=request.address,
            created_at=self.clock(),
            items=[],
        )
        items: List[schemas.OrderItem] = []
        try:
            order.id = self.orders.create_order(order)
            for it in request.items:
                line = schemas.OrderItem(
                    order_id=order.id,
                    product_id=it.product_id,
                    quantity=it.quantity,
                    price=by_id[it.product_id].price,
                )
                self.orders.create_order_item(line)
                items.append(line)
        except StorageError:
            ORDERS_FAILED.labels(reason="storage").inc()
            raise
        order.items = items

        ORDERS_CREATED.inc()
        logger.info("order %s created for user %s: %d items, total %s", order.id, user_id, len(items), total)
        return order

    def _fail(self, reason: str, err: Exception) -> Exception:
        ORDERS_FAILED.labels(reason=reason).inc()
        logger.warning("checkout rejected (%s): %s", reason, err)
        return err
