from decimal import Decimal
import json

import pytest

from distribuidora.core.exceptions import InsufficientStockError, NotFoundError, StateError, ValidationError
from distribuidora.modules.orders.policy import OrderStatusPolicy
from distribuidora.modules.orders.repository import OrdersRepository
from distribuidora.modules.routes.repository import RouteRepository
from distribuidora.shared.database.models import (
    Customer, DeletedOrder, DeliveryRoute, DeliveryRouteOrder, Order, OrderHistory, OrderItem, Product
)
from distribuidora.shared.services.balance_ledger import BalanceLedger


def _refresh(db, model, pk):
    db.expire_all()
    return db.get(model, pk)


def test_create_order_deducts_stock_and_records_history(db, make_customer, make_product, make_order, make_user):
    seller = make_user("preventista")
    customer = make_customer()
    yerba = make_product("Yerba", stock=100, price="50")
    azucar = make_product("Azúcar", stock=40, price="20")

    order = make_order(customer, [(yerba, 10, "50"), (azucar, 5, "20")], creator=seller)

    assert order.status == "pending"
    assert order.stock_deducted is True
    assert order.total == Decimal("600")
    assert sum(item.subtotal for item in order.items) == order.total
    assert _refresh(db, Product, yerba.id).stock == 90
    assert _refresh(db, Product, azucar.id).stock == 35

    history = db.query(OrderHistory).filter(OrderHistory.order_id == order.id).all()
    assert [entry.field for entry in history] == ["creation"]
    assert history[0].user_id == seller.id


def test_create_order_with_insufficient_stock_changes_nothing(db, make_customer, make_product, make_order):
    customer = make_customer()
    yerba = make_product("Yerba", stock=100)
    azucar = make_product("Azúcar", stock=1)

    with pytest.raises(InsufficientStockError) as exc_info:
        make_order(customer, [(yerba, 10, "50"), (azucar, 5, "20")])

    assert len(exc_info.value.errors) == 1
    assert _refresh(db, Product, yerba.id).stock == 100
    assert db.query(Order).count() == 0
    assert _refresh(db, Customer, customer.id).balance == Decimal("0")


def test_create_order_rejects_mismatched_expected_total(db, make_customer, make_product, make_order):
    customer = make_customer()
    yerba = make_product(stock=100)

    with pytest.raises(ValidationError):
        make_order(customer, [(yerba, 2, "50")], expected_total=Decimal("150"))

    assert _refresh(db, Product, yerba.id).stock == 100


def test_create_order_accepts_expected_total_within_tolerance(db, make_customer, make_product, make_order):
    customer = make_customer()
    yerba = make_product(stock=100)

    order = make_order(customer, [(yerba, 3, "33.33")], expected_total=Decimal("100.00"))

    assert order.total == Decimal("99.99")


def test_create_order_for_unknown_customer(db, make_customer, make_product):
    yerba = make_product(stock=100)

    with pytest.raises(NotFoundError):
        OrdersRepository(db).create_order_atomic({
            'customer_id': 999,
            'items': [{'product_id': yerba.id, 'quantity': 1, 'unit_price': Decimal("50")}]
        })


def test_paid_status_without_amount_marks_order_paid(db, make_customer, make_product, make_order):
    customer = make_customer()
    yerba = make_product(stock=100)

    order = make_order(customer, [(yerba, 2, "50")], payment_status="paid")

    assert order.amount_paid == Decimal("100")
    assert order.payment_status == "paid"
    assert _refresh(db, Customer, customer.id).balance == Decimal("0")


def test_edit_items_moves_only_the_differences(db, make_customer, make_product, make_order):
    customer = make_customer()
    yerba = make_product("Yerba", stock=100)
    azucar = make_product("Azúcar", stock=100)
    aceite = make_product("Aceite", stock=100)
    order = make_order(customer, [(yerba, 10, "50"), (azucar, 10, "20")])
    yerba_item_id = order.items[0].id

    edited = OrdersRepository(db).update_items_atomic(order.id, [
        {'product_id': yerba.id, 'quantity': 15, 'unit_price': Decimal("50")},
        {'product_id': aceite.id, 'quantity': 2, 'unit_price': Decimal("100")},
    ], user_id=None)

    assert _refresh(db, Product, yerba.id).stock == 85
    assert _refresh(db, Product, azucar.id).stock == 100
    assert _refresh(db, Product, aceite.id).stock == 98

    edited = _refresh(db, Order, order.id)
    assert edited.total == Decimal("950")
    assert {item.product_id for item in edited.items} == {yerba.id, aceite.id}
    assert any(item.id == yerba_item_id for item in edited.items)
    assert _refresh(db, Customer, customer.id).balance == Decimal("950")

    fields = [entry.field for entry in db.query(OrderHistory).filter(
        OrderHistory.order_id == order.id
    ).order_by(OrderHistory.id)]
    assert fields == ["creation", "items", "total"]
    items_entry = db.query(OrderHistory).filter(OrderHistory.field == "items").one()
    assert len(json.loads(items_entry.old_value)) == 2


def test_edit_items_without_stock_is_rejected_entirely(db, make_customer, make_product, make_order):
    customer = make_customer()
    yerba = make_product(stock=12)
    azucar = make_product(stock=100)
    order = make_order(customer, [(yerba, 10, "50"), (azucar, 10, "20")])

    with pytest.raises(InsufficientStockError):
        OrdersRepository(db).update_items_atomic(order.id, [
            {'product_id': yerba.id, 'quantity': 20, 'unit_price': Decimal("50")},
        ], user_id=None)

    assert _refresh(db, Product, yerba.id).stock == 2
    assert _refresh(db, Product, azucar.id).stock == 90
    assert len(_refresh(db, Order, order.id).items) == 2


def test_edit_items_of_delivered_order_is_forbidden(db, make_customer, make_product, make_order):
    customer = make_customer()
    yerba = make_product(stock=100)
    order = make_order(customer, [(yerba, 10, "50")])
    repository = OrdersRepository(db)
    repository.change_status_atomic(order.id, "delivered", user_id=None)

    with pytest.raises(StateError):
        repository.update_items_atomic(order.id, [
            {'product_id': yerba.id, 'quantity': 5, 'unit_price': Decimal("50")},
        ], user_id=None)

    assert _refresh(db, Product, yerba.id).stock == 90


def test_update_payment_rebalances_customer(db, make_customer, make_product, make_order):
    customer = make_customer()
    yerba = make_product(stock=100)
    order = make_order(customer, [(yerba, 20, "50")])

    order = OrdersRepository(db).update_payment_atomic(order.id, Decimal("400"), "transfer", user_id=None)

    assert order.payment_status == "partial"
    assert order.payment_method == "transfer"
    assert _refresh(db, Customer, customer.id).balance == Decimal("600")

    order = OrdersRepository(db).update_payment_atomic(order.id, Decimal("1000"), None, user_id=None)

    assert order.payment_status == "paid"
    assert _refresh(db, Customer, customer.id).balance == Decimal("0")
    assert BalanceLedger.check_drift(db, customer.id)["drift"] == Decimal("0")


def test_delete_order_without_courier_archives_and_reverts(db, make_customer, make_product, make_order, make_user):
    admin = make_user("admin", name="Ana Admin")
    customer = make_customer("Kiosco Central")
    yerba = make_product(stock=100)
    order = make_order(customer, [(yerba, 10, "50")], amount_paid=Decimal("100"))
    order_id = order.id

    archive = OrdersRepository(db).delete_order_atomic(order_id, True, admin.id, "cliente canceló")

    assert archive.courier_id is None
    assert archive.courier_name is None
    assert archive.creator_name is None
    assert archive.deleted_by_name == "Ana Admin"
    assert archive.customer_name == "Kiosco Central"
    assert archive.stock_restored is True
    assert archive.items[0]['quantity'] == 10

    assert _refresh(db, Product, yerba.id).stock == 100
    assert _refresh(db, Customer, customer.id).balance == Decimal("0")
    assert db.get(Order, order_id) is None
    assert db.query(OrderItem).filter(OrderItem.order_id == order_id).count() == 0
    assert db.query(OrderHistory).filter(OrderHistory.order_id == order_id).count() == 0
    assert db.query(DeletedOrder).count() == 1


def test_delete_order_keeping_stock(db, make_customer, make_product, make_order):
    customer = make_customer()
    yerba = make_product(stock=100)
    order = make_order(customer, [(yerba, 10, "50")])

    archive = OrdersRepository(db).delete_order_atomic(order.id, False, None, None)

    assert archive.stock_restored is False
    assert archive.deleted_by_name is None
    assert _refresh(db, Product, yerba.id).stock == 90


def test_delete_order_removes_route_links(db, make_customer, make_product, make_order, make_user):
    courier = make_user("transportista")
    customer = make_customer()
    yerba = make_product(stock=100)
    first = make_order(customer, [(yerba, 1, "50")])
    second = make_order(customer, [(yerba, 2, "50")])
    route = RouteRepository(db).create_route_atomic({
        'courier_id': courier.id,
        'orders': [
            {'order_id': first.id, 'delivery_sequence': 1},
            {'order_id': second.id, 'delivery_sequence': 2},
        ]
    })

    OrdersRepository(db).delete_order_atomic(first.id, True, None, None)

    route = _refresh(db, DeliveryRoute, route.id)
    assert route.total_orders == 1
    assert route.total_invoiced == Decimal("100")
    assert db.query(DeliveryRouteOrder).filter(DeliveryRouteOrder.route_id == route.id).count() == 1


def test_strict_policy_rejects_skipping_to_delivered(db, make_customer, make_product, make_order):
    customer = make_customer()
    yerba = make_product(stock=100)
    order = make_order(customer, [(yerba, 1, "50")])
    repository = OrdersRepository(db, policy=OrderStatusPolicy("strict"))

    with pytest.raises(StateError):
        repository.change_status_atomic(order.id, "delivered", user_id=None)

    repository.change_status_atomic(order.id, "preparing", user_id=None)
    repository.change_status_atomic(order.id, "assigned", user_id=None)
    delivered = repository.change_status_atomic(order.id, "delivered", user_id=None)

    assert delivered.status == "delivered"
    assert delivered.delivered_at is not None


def test_free_policy_allows_any_transition_and_clears_delivered_at(db, make_customer, make_product, make_order):
    customer = make_customer()
    yerba = make_product(stock=100)
    order = make_order(customer, [(yerba, 1, "50")])
    repository = OrdersRepository(db, policy=OrderStatusPolicy("free"))

    order = repository.change_status_atomic(order.id, "delivered", user_id=None)
    assert order.delivered_at is not None

    order = repository.change_status_atomic(order.id, "preparing", user_id=None)
    assert order.delivered_at is None

    fields = [(e.field, e.old_value, e.new_value) for e in db.query(OrderHistory).filter(
        OrderHistory.order_id == order.id, OrderHistory.field == "status"
    ).order_by(OrderHistory.id)]
    assert fields == [("status", "pending", "delivered"), ("status", "delivered", "preparing")]


def test_same_status_is_a_noop(db, make_customer, make_product, make_order):
    customer = make_customer()
    yerba = make_product(stock=100)
    order = make_order(customer, [(yerba, 1, "50")])

    OrdersRepository(db, policy=OrderStatusPolicy("strict")).change_status_atomic(order.id, "pending", user_id=None)

    assert db.query(OrderHistory).filter(OrderHistory.field == "status").count() == 0


def test_delivery_updates_route_counters(db, make_customer, make_product, make_order, make_user):
    courier = make_user("transportista")
    customer = make_customer()
    yerba = make_product(stock=100)
    order = make_order(customer, [(yerba, 10, "50")], amount_paid=Decimal("500"))
    route = RouteRepository(db).create_route_atomic({
        'courier_id': courier.id,
        'orders': [{'order_id': order.id, 'delivery_sequence': 1}]
    })

    OrdersRepository(db).change_status_atomic(order.id, "delivered", user_id=courier.id)

    route = _refresh(db, DeliveryRoute, route.id)
    stop = route.stops[0]
    assert stop.delivery_status == "delivered"
    assert stop.delivered_at is not None
    assert route.delivered_orders == 1
    assert route.total_collected == Decimal("500")


def test_assign_courier_optionally_advances_status(db, make_customer, make_product, make_order, make_user):
    courier = make_user("transportista")
    seller = make_user("preventista")
    customer = make_customer()
    yerba = make_product(stock=100)
    order = make_order(customer, [(yerba, 1, "50")])
    repository = OrdersRepository(db)

    with pytest.raises(ValidationError):
        repository.assign_courier_atomic(order.id, seller.id, False, user_id=None)

    with pytest.raises(NotFoundError):
        repository.assign_courier_atomic(order.id, 9999, False, user_id=None)

    order = repository.assign_courier_atomic(order.id, courier.id, True, user_id=None)

    assert order.courier_id == courier.id
    assert order.status == "assigned"
    fields = {e.field for e in db.query(OrderHistory).filter(OrderHistory.order_id == order.id)}
    assert {"courier_id", "status"} <= fields
