import random
from datetime import datetime, timedelta
from decimal import Decimal

from storefront import models, schemas
from storefront.stores import SqlCatalogStore, SqlOrderStore, assemble_orders

T0 = datetime(2024, 3, 19, 12, 0)


def order_row(oid, minutes, user_id=1):
    return models.Order(
        id=oid,
        user_id=user_id,
        total=Decimal("10.00"),
        status="pending",
        address="1 Main St",
        created_at=T0 + timedelta(minutes=minutes),
    )


def item_row(iid, oid, pid, qty=1, price="10.00"):
    return models.OrderItem(id=iid, order_id=oid, product_id=pid, quantity=qty, price=Decimal(price))


def product_row(pid, price="12.00"):
    return models.Product(
        id=pid,
        name=f"p{pid}",
        description="",
        image="",
        price=Decimal(price),
        quantity=3,
        created_at=T0,
    )


def test_orders_are_newest_first_with_id_tiebreak_for_any_row_order():
    o1, o2, o3, o4 = order_row(1, 0), order_row(2, 5), order_row(3, 5), order_row(4, 10)
    p = product_row(9)
    rows = [
        (o1, item_row(10, 1, 9), p),
        (o1, item_row(11, 1, 9), p),
        (o2, item_row(12, 2, 9), p),
        (o3, item_row(13, 3, 9), p),
        (o4, item_row(14, 4, 9), p),
        (o4, item_row(15, 4, 9), p),
    ]
    rng = random.Random(1234)
    for _ in range(25):
        rng.shuffle(rows)
        orders = assemble_orders(rows)
        assert [o.id for o in orders] == [4, 2, 3, 1]
        assert sorted(i.id for i in orders[0].items) == [14, 15]
        assert sorted(i.id for i in orders[3].items) == [10, 11]


def test_order_without_items_and_deleted_product():
    rows = [
        (order_row(1, 0), None, None),
        (order_row(2, 1), item_row(20, 2, 5, qty=2, price="4.00"), None),
        (order_row(2, 1), item_row(21, 2, 6), product_row(6, price="99.00")),
    ]

    orders = assemble_orders(rows)

    assert [o.id for o in orders] == [2, 1]
    assert orders[1].items == []
    gone, kept = orders[0].items
    assert gone.product is None
    assert (gone.quantity, gone.price) == (2, Decimal("4.00"))
    assert kept.product.id == 6
    # the line keeps the price it was bought at
    assert kept.price == Decimal("10.00")
    assert kept.product.price == Decimal("99.00")


def test_no_rows_means_no_orders():
    assert assemble_orders([]) == []


def test_store_returns_newest_order_first(db):
    with db() as s:
        store = SqlOrderStore(s)
        older = store.create_order(
            schemas.Order(user_id=1, total=Decimal("5.00"), address="a", created_at=T0)
        )
        newer = store.create_order(
            schemas.Order(user_id=1, total=Decimal("7.00"), address="b", created_at=T0 + timedelta(hours=1))
        )
        store.create_order(
            schemas.Order(user_id=2, total=Decimal("1.00"), address="c", created_at=T0 + timedelta(hours=2))
        )
        store.create_order_item(
            schemas.OrderItem(order_id=older, product_id=77, quantity=1, price=Decimal("5.00"))
        )
        s.commit()

    with db() as s:
        orders = SqlOrderStore(s).get_orders_for_user(1)

    assert [o.id for o in orders] == [newer, older]
    assert orders[0].items == []
    assert [(i.product_id, i.product) for i in orders[1].items] == [(77, None)]


def test_store_joins_product_snapshot(db):
    with db() as s:
        p = models.Product(name="Lamp", description="desk lamp", image="lamp.png", price=Decimal("19.99"), quantity=4)
        s.add(p)
        s.flush()
        store = SqlOrderStore(s)
        oid = store.create_order(schemas.Order(user_id=3, total=Decimal("39.98"), address="x", created_at=T0))
        store.create_order_item(schemas.OrderItem(order_id=oid, product_id=p.id, quantity=2, price=Decimal("19.99")))
        s.commit()

    with db() as s:
        (order,) = SqlOrderStore(s).get_orders_for_user(3)

    assert order.total == Decimal("39.98")
    (line,) = order.items
    assert line.order_id == order.id
    assert line.product.name == "Lamp"
    assert line.product.quantity == 4


def test_catalog_lookup(db):
    with db() as s:
        s.add_all([
            models.Product(name="a", description="", image="", price=Decimal("1.00"), quantity=1),
            models.Product(name="b", description="", image="", price=Decimal("2.00"), quantity=2),
        ])
        s.commit()

    with db() as s:
        catalog = SqlCatalogStore(s)
        assert catalog.get_products_by_ids([]) == []
        found = catalog.get_products_by_ids([2, 1, 99])

    assert sorted(p.name for p in found) == ["a", "b"]
