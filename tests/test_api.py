from decimal import Decimal


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_requests_without_token_are_rejected(client):
    response = client.get("/api/v1/orders/1")
    assert response.status_code in (401, 403)


def test_create_and_fetch_order(client, make_customer, make_product, make_user, auth_headers):
    seller = make_user("preventista")
    customer = make_customer()
    yerba = make_product(stock=100)
    headers = auth_headers(seller)

    response = client.post("/api/v1/orders", headers=headers, json={
        "customer_id": customer.id,
        "items": [{"product_id": yerba.id, "quantity": 4, "unit_price": "50"}],
        "expected_total": "200"
    })

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert Decimal(str(body["order"]["total"])) == Decimal("200")
    assert body["order"]["creator_id"] == seller.id
    assert Decimal(str(body["customer_balance"])) == Decimal("200")

    order_id = body["order"]["id"]
    response = client.get(f"/api/v1/orders/{order_id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["order"]["items"][0]["quantity"] == 4

    response = client.get(f"/api/v1/orders/{order_id}/history", headers=headers)
    assert [entry["field"] for entry in response.json()["history"]] == ["creation"]


def test_insufficient_stock_returns_itemized_errors(client, make_customer, make_product, make_user, auth_headers):
    seller = make_user("preventista")
    customer = make_customer()
    yerba = make_product("Yerba", stock=1)
    azucar = make_product("Azúcar", stock=1)

    response = client.post("/api/v1/orders", headers=auth_headers(seller), json={
        "customer_id": customer.id,
        "items": [
            {"product_id": yerba.id, "quantity": 5, "unit_price": "50"},
            {"product_id": azucar.id, "quantity": 5, "unit_price": "20"}
        ]
    })

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "insufficient_stock"
    assert len(body["errors"]) == 2


def test_repeated_products_are_rejected(client, make_customer, make_product, make_user, auth_headers):
    seller = make_user("preventista")
    customer = make_customer()
    yerba = make_product(stock=100)

    response = client.post("/api/v1/orders", headers=auth_headers(seller), json={
        "customer_id": customer.id,
        "items": [
            {"product_id": yerba.id, "quantity": 1, "unit_price": "50"},
            {"product_id": yerba.id, "quantity": 2, "unit_price": "50"}
        ]
    })

    assert response.status_code == 422


def test_unknown_customer_returns_not_found(client, make_product, make_user, auth_headers):
    seller = make_user("preventista")
    yerba = make_product(stock=100)

    response = client.post("/api/v1/orders", headers=auth_headers(seller), json={
        "customer_id": 9999,
        "items": [{"product_id": yerba.id, "quantity": 1, "unit_price": "50"}]
    })

    assert response.status_code == 404
    assert response.json()["error_code"] == "not_found"


def test_only_admin_can_delete_orders(client, make_customer, make_product, make_order, make_user, auth_headers):
    seller = make_user("preventista")
    admin = make_user("admin")
    customer = make_customer()
    yerba = make_product(stock=100)
    order = make_order(customer, [(yerba, 10, "50")])

    response = client.delete(f"/api/v1/orders/{order.id}", headers=auth_headers(seller))
    assert response.status_code == 403
    assert response.json()["error_code"] == "forbidden"

    response = client.delete(
        f"/api/v1/orders/{order.id}", headers=auth_headers(admin), params={"reason": "duplicado"}
    )
    assert response.status_code == 200
    assert response.json()["stock_restored"] is True

    response = client.get("/api/v1/orders/deleted", headers=auth_headers(admin))
    deleted = response.json()["deleted_orders"]
    assert [d["order_id"] for d in deleted] == [order.id]
    assert deleted[0]["reason"] == "duplicado"


def test_strict_transitions_are_reported_as_invalid_state(client, make_customer, make_product, make_order, make_user, auth_headers, monkeypatch):
    from distribuidora.config.settings import settings

    monkeypatch.setattr(settings, "order_status_policy", "strict")
    seller = make_user("preventista")
    customer = make_customer()
    yerba = make_product(stock=100)
    order = make_order(customer, [(yerba, 1, "50")])

    response = client.patch(
        f"/api/v1/orders/{order.id}/status", headers=auth_headers(seller), json={"status": "delivered"}
    )

    assert response.status_code == 409
    assert response.json()["error_code"] == "invalid_state"


def test_courier_registers_exception_for_own_order(client, db, make_customer, make_product, make_order, make_user, auth_headers):
    courier = make_user("transportista")
    customer = make_customer()
    yerba = make_product(stock=100)
    order = make_order(customer, [(yerba, 10, "50")])
    order.courier_id = courier.id
    db.commit()
    item_id = order.items[0].id

    response = client.post("/api/v1/delivery-exceptions", headers=auth_headers(courier), json={
        "order_id": order.id,
        "order_item_id": item_id,
        "affected_quantity": 4,
        "reason": "product_damaged"
    })

    assert response.status_code == 201
    body = response.json()
    assert body["delivery_exception"]["delivered_quantity"] == 6
    assert Decimal(str(body["order_total"])) == Decimal("300")

    response = client.post(
        f"/api/v1/delivery-exceptions/{body['delivery_exception']['id']}/void",
        headers=auth_headers(courier),
        json={"notes": "no corresponde"}
    )
    assert response.status_code == 403


def test_domain_validation_errors_use_422(client, make_customer, make_product, make_user, auth_headers):
    seller = make_user("preventista")
    customer = make_customer()
    yerba = make_product(stock=100)

    response = client.post("/api/v1/orders", headers=auth_headers(seller), json={
        "customer_id": customer.id,
        "items": [{"product_id": yerba.id, "quantity": 2, "unit_price": "50"}],
        "expected_total": "150"
    })

    assert response.status_code == 422
    assert response.json()["error_code"] == "validation_error"
