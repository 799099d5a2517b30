import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_distribuidora.db")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("ORDER_STATUS_POLICY", "free")

from decimal import Decimal  # noqa: E402
from uuid import uuid4  # noqa: E402

from fastapi.testclient import TestClient  # noqa: E402
import pytest  # noqa: E402

from distribuidora.config.database import Base, SessionLocal, engine  # noqa: E402
from distribuidora.core.auth.service import AuthService  # noqa: E402
from distribuidora.main import app  # noqa: E402
from distribuidora.modules.orders.repository import OrdersRepository  # noqa: E402
from distribuidora.shared.database.models import Customer, Product, User  # noqa: E402


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture()
def make_user(db):
    def _make(role: str = "preventista", name: str = None) -> User:
        user = User(
            name=name or f"Usuario {role}",
            email=f"{uuid4().hex[:12]}@distribuidora.test",
            role=role
        )
        db.add(user)
        db.commit()
        return user
    return _make


@pytest.fixture()
def make_customer(db):
    def _make(name: str = "Almacén Don Pepe", credit_limit: str = "5000") -> Customer:
        customer = Customer(
            code=uuid4().hex[:8],
            trade_name=name,
            address="Av. Siempre Viva 742",
            balance=Decimal("0"),
            credit_limit=Decimal(credit_limit)
        )
        db.add(customer)
        db.commit()
        return customer
    return _make


@pytest.fixture()
def make_product(db):
    def _make(name: str = "Yerba 1kg", stock: int = 100, price: str = "50", min_stock: int = 10) -> Product:
        product = Product(
            code=uuid4().hex[:8],
            name=name,
            stock=stock,
            min_stock=min_stock,
            price=Decimal(price)
        )
        db.add(product)
        db.commit()
        return product
    return _make


@pytest.fixture()
def make_order(db):
    def _make(customer, items, creator=None, **extra):
        data = {
            'customer_id': customer.id,
            'creator_id': creator.id if creator else None,
            'items': [
                {'product_id': product.id, 'quantity': quantity, 'unit_price': Decimal(str(price))}
                for product, quantity, price in items
            ]
        }
        data.update(extra)
        return OrdersRepository(db).create_order_atomic(data)
    return _make


@pytest.fixture()
def auth_headers():
    def _headers(user: User) -> dict:
        token = AuthService.create_access_token({
            "user_id": user.id,
            "role": user.role,
            "name": user.name
        })
        return {"Authorization": f"Bearer {token}"}
    return _headers
