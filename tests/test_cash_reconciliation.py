from decimal import Decimal

import pytest

from distribuidora.core.exceptions import ConflictError, PermissionDeniedError, StateError
from distribuidora.modules.cash_reconciliation.repository import CashReconciliationRepository
from distribuidora.modules.orders.repository import OrdersRepository
from distribuidora.modules.routes.repository import RouteRepository
from distribuidora.shared.database.models import DeliveryRoute


@pytest.fixture()
def delivered_route(db, make_user, make_customer, make_product, make_order):
    """Recorrido con un pedido en efectivo (500), uno por transferencia (300) y uno sin entregar"""
    courier = make_user("transportista", name="Carlos")
    customer = make_customer()
    yerba = make_product(stock=100)

    cash_order = make_order(customer, [(yerba, 10, "50")], amount_paid=Decimal("500"), payment_method="cash")
    transfer_order = make_order(customer, [(yerba, 6, "50")], amount_paid=Decimal("300"), payment_method="transfer")
    pending_order = make_order(customer, [(yerba, 2, "50")], amount_paid=Decimal("100"), payment_method="cash")

    route = RouteRepository(db).create_route_atomic({
        'courier_id': courier.id,
        'orders': [
            {'order_id': cash_order.id, 'delivery_sequence': 1},
            {'order_id': transfer_order.id, 'delivery_sequence': 2},
            {'order_id': pending_order.id, 'delivery_sequence': 3}
        ]
    })

    orders = OrdersRepository(db)
    orders.change_status_atomic(cash_order.id, "delivered", user_id=courier.id)
    orders.change_status_atomic(transfer_order.id, "delivered", user_id=courier.id)

    return route, courier


def test_create_from_route_splits_cash_and_other(db, delivered_route):
    route, courier = delivered_route

    reconciliation = CashReconciliationRepository(db).create_from_route_atomic(
        route.id, None, courier.id, is_privileged=False
    )

    assert reconciliation.courier_id == courier.id
    assert reconciliation.status == "pending"
    assert reconciliation.expected_cash == Decimal("500")
    assert reconciliation.expected_other == Decimal("300")
    assert [item.amount_collected for item in reconciliation.items] == [Decimal("500"), Decimal("300")]
    assert [item.payment_method for item in reconciliation.items] == ["cash", "transfer"]


def test_only_one_reconciliation_per_route(db, delivered_route):
    route, courier = delivered_route
    repository = CashReconciliationRepository(db)
    repository.create_from_route_atomic(route.id, None, courier.id, is_privileged=False)

    with pytest.raises(ConflictError):
        repository.create_from_route_atomic(route.id, None, courier.id, is_privileged=False)


def test_courier_cannot_reconcile_someone_elses_route(db, delivered_route, make_user):
    route, _ = delivered_route
    intruder = make_user("transportista")

    with pytest.raises(PermissionDeniedError):
        CashReconciliationRepository(db).create_from_route_atomic(
            route.id, None, intruder.id, is_privileged=False
        )


def test_submit_with_shortage(db, delivered_route):
    route, courier = delivered_route
    repository = CashReconciliationRepository(db)
    reconciliation = repository.create_from_route_atomic(route.id, None, courier.id, is_privileged=False)

    submitted = repository.submit_atomic(
        reconciliation.id, Decimal("480"), "faltó cambio", courier.id, is_privileged=False
    )

    assert submitted.status == "submitted"
    assert submitted.submitted_at is not None
    assert submitted.difference == Decimal("-20")
    assert submitted.courier_justification == "faltó cambio"

    with pytest.raises(StateError):
        repository.submit_atomic(reconciliation.id, Decimal("500"), None, courier.id, is_privileged=False)


def test_observed_reconciliation_can_be_resubmitted(db, delivered_route, make_user):
    route, courier = delivered_route
    admin = make_user("admin")
    repository = CashReconciliationRepository(db)
    reconciliation = repository.create_from_route_atomic(route.id, None, courier.id, is_privileged=False)
    repository.submit_atomic(reconciliation.id, Decimal("480"), None, courier.id, is_privileged=False)

    observed = repository.review_atomic(reconciliation.id, "observe", "falta justificar", admin.id)
    assert observed.status == "with_observations"

    resubmitted = repository.submit_atomic(
        reconciliation.id, Decimal("500"), None, courier.id, is_privileged=False
    )
    assert resubmitted.status == "submitted"
    assert resubmitted.difference == Decimal("0")


def test_adjustments_only_while_editable(db, delivered_route, make_user):
    route, courier = delivered_route
    admin = make_user("admin")
    repository = CashReconciliationRepository(db)
    reconciliation = repository.create_from_route_atomic(route.id, None, courier.id, is_privileged=False)
    repository.submit_atomic(reconciliation.id, Decimal("480"), None, courier.id, is_privileged=False)

    adjustment = repository.add_adjustment_atomic(reconciliation.id, {
        'adjustment_type': 'change_not_given',
        'amount': Decimal("-20"),
        'description': "Cliente no tenía cambio"
    }, courier.id, is_privileged=False)
    assert adjustment.approved is None

    repository.review_atomic(reconciliation.id, "reject", None, admin.id)

    with pytest.raises(StateError):
        repository.add_adjustment_atomic(reconciliation.id, {
            'adjustment_type': 'other',
            'amount': Decimal("5"),
            'description': "tarde"
        }, courier.id, is_privileged=False)


def test_approval_completes_route_and_adjustments(db, delivered_route, make_user):
    route, courier = delivered_route
    admin = make_user("admin")
    repository = CashReconciliationRepository(db)
    reconciliation = repository.create_from_route_atomic(route.id, None, courier.id, is_privileged=False)
    repository.add_adjustment_atomic(reconciliation.id, {
        'adjustment_type': 'shortage',
        'amount': Decimal("-20"),
        'description': "Faltante"
    }, courier.id, is_privileged=False)

    with pytest.raises(StateError):
        repository.review_atomic(reconciliation.id, "approve", None, admin.id)

    repository.submit_atomic(reconciliation.id, Decimal("480"), "faltante", courier.id, is_privileged=False)
    approved = repository.review_atomic(reconciliation.id, "approve", "ok", admin.id)

    assert approved.status == "approved"
    assert approved.reviewed_by == admin.id
    assert all(adjustment.approved for adjustment in approved.adjustments)

    db.expire_all()
    route = db.get(DeliveryRoute, route.id)
    assert route.status == "completed"
    assert route.completed_at is not None


def test_other_courier_cannot_submit(db, delivered_route, make_user):
    route, courier = delivered_route
    intruder = make_user("transportista")
    repository = CashReconciliationRepository(db)
    reconciliation = repository.create_from_route_atomic(route.id, None, courier.id, is_privileged=False)

    with pytest.raises(PermissionDeniedError):
        repository.submit_atomic(reconciliation.id, Decimal("500"), None, intruder.id, is_privileged=False)


def test_statistics(db, delivered_route, make_user):
    route, courier = delivered_route
    admin = make_user("admin")
    repository = CashReconciliationRepository(db)
    reconciliation = repository.create_from_route_atomic(route.id, None, courier.id, is_privileged=False)
    repository.submit_atomic(reconciliation.id, Decimal("480"), None, courier.id, is_privileged=False)
    repository.review_atomic(reconciliation.id, "approve", None, admin.id)

    stats = repository.get_statistics()

    assert stats["total"] == 1
    assert stats["approved"] == 1
    assert stats["pending"] == 0
    assert stats["total_expected_cash"] == Decimal("500")
    assert stats["total_declared_approved"] == Decimal("480")
    assert stats["total_difference_approved"] == Decimal("-20")
    assert stats["by_courier"][0]["courier_name"] == "Carlos"
    assert stats["by_courier"][0]["total_difference"] == Decimal("-20")

    assert repository.get_statistics(courier_id=admin.id)["total"] == 0
