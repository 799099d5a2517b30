from decimal import Decimal

import pytest

from distribuidora.core.exceptions import NotFoundError, ValidationError
from distribuidora.modules.delivery_exceptions.repository import DeliveryExceptionRepository
from distribuidora.modules.orders.repository import OrdersRepository
from distribuidora.modules.routes.repository import RouteRepository
from distribuidora.shared.database.models import Order


def test_create_route_assigns_orders(db, make_customer, make_product, make_order, make_user):
    courier = make_user("transportista")
    customer = make_customer()
    yerba = make_product(stock=100)
    first = make_order(customer, [(yerba, 2, "50")])
    second = make_order(customer, [(yerba, 3, "50")])

    route = RouteRepository(db).create_route_atomic({
        'courier_id': courier.id,
        'orders': [
            {'order_id': second.id, 'delivery_sequence': 1},
            {'order_id': first.id, 'delivery_sequence': 2}
        ],
        'distance_km': Decimal("12.5")
    })

    assert route.status == "in_progress"
    assert route.total_orders == 2
    assert route.delivered_orders == 0
    assert route.total_invoiced == Decimal("250")
    assert [stop.order_id for stop in route.stops] == [second.id, first.id]

    db.expire_all()
    assert db.get(Order, first.id).courier_id == courier.id
    assert db.get(Order, first.id).delivery_sequence == 2


def test_create_route_rejects_non_courier_and_bad_orders(db, make_customer, make_product, make_order, make_user):
    seller = make_user("preventista")
    courier = make_user("transportista")
    customer = make_customer()
    yerba = make_product(stock=100)
    delivered = make_order(customer, [(yerba, 1, "50")])
    OrdersRepository(db).change_status_atomic(delivered.id, "delivered", user_id=None)
    repository = RouteRepository(db)

    with pytest.raises(NotFoundError):
        repository.create_route_atomic({
            'courier_id': seller.id, 'orders': [{'order_id': delivered.id, 'delivery_sequence': 1}]
        })

    with pytest.raises(NotFoundError) as missing:
        repository.create_route_atomic({
            'courier_id': courier.id,
            'orders': [{'order_id': 9998, 'delivery_sequence': 1}, {'order_id': 9999, 'delivery_sequence': 2}]
        })
    assert len(missing.value.errors) == 2

    with pytest.raises(ValidationError):
        repository.create_route_atomic({
            'courier_id': courier.id, 'orders': [{'order_id': delivered.id, 'delivery_sequence': 1}]
        })


def test_reverting_delivery_restores_route_counters(db, make_customer, make_product, make_order, make_user):
    courier = make_user("transportista")
    customer = make_customer()
    yerba = make_product(stock=100)
    order = make_order(customer, [(yerba, 2, "50")], amount_paid=Decimal("100"))
    route = RouteRepository(db).create_route_atomic({
        'courier_id': courier.id, 'orders': [{'order_id': order.id, 'delivery_sequence': 1}]
    })
    orders = OrdersRepository(db)

    orders.change_status_atomic(order.id, "delivered", user_id=courier.id)
    orders.change_status_atomic(order.id, "pending", user_id=courier.id)

    db.expire_all()
    route = RouteRepository(db).get_route(route.id)
    assert route.delivered_orders == 0
    assert route.total_collected == Decimal("0")
    assert route.stops[0].delivery_status == "pending"


def test_route_visible_only_to_its_courier_or_admin(client, db, make_customer, make_product, make_order, make_user, auth_headers):
    admin = make_user("admin")
    courier = make_user("transportista")
    other_courier = make_user("transportista")
    customer = make_customer()
    yerba = make_product(stock=100)
    order = make_order(customer, [(yerba, 2, "50")])

    response = client.post("/api/v1/routes", headers=auth_headers(admin), json={
        "courier_id": courier.id,
        "orders": [{"order_id": order.id, "delivery_sequence": 1}]
    })
    assert response.status_code == 201
    route_id = response.json()["route"]["id"]

    assert client.get(f"/api/v1/routes/{route_id}", headers=auth_headers(courier)).status_code == 200
    assert client.get(f"/api/v1/routes/{route_id}", headers=auth_headers(admin)).status_code == 200

    response = client.get(f"/api/v1/routes/{route_id}", headers=auth_headers(other_courier))
    assert response.status_code == 403
    assert response.json()["error_code"] == "forbidden"


def _delivered_on_route(db, make_customer, make_product, make_order, make_user, **extra):
    courier = make_user("transportista")
    customer = make_customer()
    yerba = make_product(stock=100)
    order = make_order(customer, [(yerba, 10, "50")], **extra)
    route = RouteRepository(db).create_route_atomic({
        'courier_id': courier.id, 'orders': [{'order_id': order.id, 'delivery_sequence': 1}]
    })
    OrdersRepository(db).change_status_atomic(order.id, "delivered", user_id=courier.id)
    return courier, order, route


def _route(db, route_id):
    db.expire_all()
    return RouteRepository(db).get_route(route_id)


def test_payment_after_delivery_moves_route_collected(db, make_customer, make_product, make_order, make_user):
    courier, order, route = _delivered_on_route(db, make_customer, make_product, make_order, make_user)
    orders = OrdersRepository(db)
    assert _route(db, route.id).total_collected == Decimal("0")

    orders.update_payment_atomic(order.id, Decimal("100"), None, courier.id)
    assert _route(db, route.id).total_collected == Decimal("100")

    orders.change_status_atomic(order.id, "pending", user_id=courier.id)
    route = _route(db, route.id)
    assert route.total_collected == Decimal("0")
    assert route.delivered_orders == 0


def test_item_edits_move_route_invoiced(db, make_customer, make_product, make_order, make_user):
    courier = make_user("transportista")
    customer = make_customer()
    yerba = make_product(stock=100)
    order = make_order(customer, [(yerba, 10, "50")])
    route = RouteRepository(db).create_route_atomic({
        'courier_id': courier.id, 'orders': [{'order_id': order.id, 'delivery_sequence': 1}]
    })

    OrdersRepository(db).update_items_atomic(
        order.id, [{'product_id': yerba.id, 'quantity': 4, 'unit_price': Decimal("50")}], courier.id
    )

    assert _route(db, route.id).total_invoiced == Decimal("200")


def test_exceptions_move_route_invoiced(db, make_customer, make_product, make_order, make_user):
    courier, order, route = _delivered_on_route(
        db, make_customer, make_product, make_order, make_user, amount_paid=Decimal("500")
    )
    repository = DeliveryExceptionRepository(db)

    exception = repository.register_atomic({
        'order_id': order.id,
        'order_item_id': order.items[0].id,
        'affected_quantity': 4,
        'reason': "product_damaged"
    }, user_id=courier.id, is_privileged=False)

    route = _route(db, route.id)
    assert route.total_invoiced == Decimal("300")
    assert route.total_collected == Decimal("500")

    repository.void_atomic(exception.id, None, courier.id)
    assert _route(db, route.id).total_invoiced == Decimal("500")
