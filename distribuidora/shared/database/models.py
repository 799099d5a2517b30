# distribuidora/shared/database/models.py
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Date, Text,
    Numeric, ForeignKey, UniqueConstraint, CheckConstraint, JSON,
    func
)
from sqlalchemy.orm import relationship
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.dialects.postgresql import JSONB
from decimal import Decimal

from distribuidora.config.database import Base

# JSONB en PostgreSQL, JSON genérico en el resto (SQLite en tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# =====================================================
# MIXIN PARA TIMESTAMPS
# =====================================================
class TimestampMixin:
    """Mixin que agrega campos created_at y updated_at"""
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    updated_at = Column(DateTime, nullable=False, server_default=func.current_timestamp(), onupdate=func.current_timestamp())


# =====================================================
# USUARIOS (perfiles)
# =====================================================

class User(Base):
    """Perfil de usuario: admin, preventista, transportista, deposito"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True)
    role = Column(String(50), nullable=False, default='preventista')
    zone = Column(String(50))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.current_timestamp())


# =====================================================
# CLIENTES Y PRODUCTOS
# =====================================================

class Customer(Base, TimestampMixin):
    """Cliente con cuenta corriente"""
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True)
    trade_name = Column(String(255), nullable=False)
    legal_name = Column(String(255))
    address = Column(Text)
    phone = Column(String(50))
    zone = Column(String(50))

    # Cuenta corriente: positivo = debe, negativo = a favor
    balance = Column(Numeric(12, 2), nullable=False, default=0)
    credit_limit = Column(Numeric(12, 2), nullable=False, default=0)
    credit_days = Column(Integer, nullable=False, default=30)

    orders = relationship("Order", back_populates="customer")
    payments = relationship("Payment", back_populates="customer")


class Product(Base, TimestampMixin):
    """Producto con stock controlado por el ledger de stock"""
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint('stock >= 0', name='ck_products_stock_non_negative'),
    )

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(100))

    stock = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=10)

    # Precios
    price = Column(Numeric(12, 2), nullable=False, default=0)
    net_price = Column(Numeric(12, 2))
    internal_taxes = Column(Numeric(12, 2))
    cost = Column(Numeric(12, 2))

    is_active = Column(Boolean, default=True)

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock


# =====================================================
# PEDIDOS
# =====================================================

class Order(Base, TimestampMixin):
    """Pedido de cliente"""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    creator_id = Column(Integer, ForeignKey("users.id"), index=True)
    courier_id = Column(Integer, ForeignKey("users.id"), index=True)

    status = Column(String(20), nullable=False, default='pending', index=True)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    payment_status = Column(String(20), nullable=False, default='pending')
    payment_method = Column(String(30), nullable=False, default='cash')

    stock_deducted = Column(Boolean, nullable=False, default=False)
    delivery_sequence = Column(Integer)
    notes = Column(Text)
    delivered_at = Column(DateTime)

    # Relationships
    customer = relationship("Customer", back_populates="orders")
    creator = relationship("User", foreign_keys=[creator_id])
    courier = relationship("User", foreign_keys=[courier_id])
    items = relationship(
        "OrderItem", back_populates="order", order_by="OrderItem.id",
        cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def pending_amount(self) -> Decimal:
        """Lo que el pedido aporta al saldo del cliente"""
        return Decimal(self.total or 0) - Decimal(self.amount_paid or 0)


class OrderItem(Base):
    """Item de pedido. subtotal = quantity * unit_price"""
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_order_items_quantity_positive'),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")


class OrderHistory(Base):
    """Historial append-only de cambios en pedidos"""
    __tablename__ = "order_history"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    field = Column(String(50), nullable=False)
    old_value = Column(Text)
    new_value = Column(Text)
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp(), index=True)


class DeletedOrder(Base):
    """Snapshot desnormalizado de un pedido eliminado"""
    __tablename__ = "deleted_orders"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, nullable=False, index=True)
    customer_id = Column(Integer, index=True)
    customer_name = Column(Text)
    customer_address = Column(Text)

    total = Column(Numeric(12, 2))
    status = Column(String(20))
    payment_status = Column(String(20))
    payment_method = Column(String(30))
    amount_paid = Column(Numeric(12, 2))
    notes = Column(Text)
    items = Column(JSONType, nullable=False, default=list)

    creator_id = Column(Integer)
    creator_name = Column(Text)
    courier_id = Column(Integer)
    courier_name = Column(Text)
    ordered_at = Column(DateTime)
    delivered_at = Column(DateTime)

    deleted_by_id = Column(Integer)
    deleted_by_name = Column(Text)
    deleted_at = Column(DateTime, nullable=False, server_default=func.current_timestamp(), index=True)
    reason = Column(Text)
    stock_restored = Column(Boolean, default=True)


# =====================================================
# PAGOS
# =====================================================

class Payment(Base):
    """Pago de cliente. Solo se crea o elimina, nunca se modifica"""
    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_payments_amount_positive'),
    )

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    method = Column(String(30), nullable=False, default='cash')
    reference = Column(String(255))
    notes = Column(Text)
    user_id = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp(), index=True)

    customer = relationship("Customer", back_populates="payments")


# =====================================================
# SALVEDADES (excepciones de entrega)
# =====================================================

class DeliveryException(Base, TimestampMixin):
    """Diferencia entre cantidad pedida y entregada en un item"""
    __tablename__ = "delivery_exceptions"
    __table_args__ = (
        CheckConstraint('affected_quantity > 0', name='ck_delivery_exceptions_affected_positive'),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    # Sin FK: el item puede eliminarse y recrearse al anular
    order_item_id = Column(Integer, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    original_quantity = Column(Integer, nullable=False)
    affected_quantity = Column(Integer, nullable=False)
    delivered_quantity = Column(Integer, nullable=False, default=0)

    reason = Column(String(50), nullable=False, index=True)
    description = Column(Text)
    photo_url = Column(Text)

    unit_price = Column(Numeric(12, 2), nullable=False)
    monetary_impact = Column(Numeric(12, 2), nullable=False)

    resolution_status = Column(String(30), nullable=False, default='pending', index=True)
    resolution_notes = Column(Text)
    resolved_at = Column(DateTime)
    resolved_by = Column(Integer, ForeignKey("users.id"))
    rescheduled_order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"))

    stock_returned = Column(Boolean, nullable=False, default=False)
    stock_returned_at = Column(DateTime)

    reported_by = Column(Integer, ForeignKey("users.id"), nullable=False)

    product = relationship("Product")
    history = relationship(
        "DeliveryExceptionHistory",
        back_populates="delivery_exception",
        order_by="DeliveryExceptionHistory.id",
        cascade="all, delete-orphan"
    )


class DeliveryExceptionHistory(Base):
    """Historial de auditoría de cada salvedad"""
    __tablename__ = "delivery_exception_history"

    id = Column(Integer, primary_key=True, index=True)
    delivery_exception_id = Column(
        Integer, ForeignKey("delivery_exceptions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    action = Column(String(30), nullable=False)
    old_status = Column(String(30))
    new_status = Column(String(30))
    notes = Column(Text)
    user_id = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())

    delivery_exception = relationship("DeliveryException", back_populates="history")


# =====================================================
# RECORRIDOS
# =====================================================

class DeliveryRoute(Base):
    """Recorrido diario de un transportista"""
    __tablename__ = "delivery_routes"

    id = Column(Integer, primary_key=True, index=True)
    courier_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    route_date = Column(Date, nullable=False, server_default=func.current_date(), index=True)
    distance_km = Column(Numeric(10, 2))
    duration_minutes = Column(Integer)

    total_orders = Column(Integer, nullable=False, default=0)
    delivered_orders = Column(Integer, nullable=False, default=0)
    total_invoiced = Column(Numeric(12, 2), nullable=False, default=0)
    total_collected = Column(Numeric(12, 2), nullable=False, default=0)

    status = Column(String(20), nullable=False, default='in_progress', index=True)
    notes = Column(Text)
    created_at = Column(DateTime, server_default=func.current_timestamp())
    completed_at = Column(DateTime)

    courier = relationship("User")
    stops = relationship("DeliveryRouteOrder", back_populates="route", order_by="DeliveryRouteOrder.delivery_sequence")


class DeliveryRouteOrder(Base):
    """Pedido dentro de un recorrido con su orden de entrega"""
    __tablename__ = "delivery_route_orders"
    __table_args__ = (
        UniqueConstraint('route_id', 'order_id', name='uq_route_order'),
    )

    id = Column(Integer, primary_key=True, index=True)
    route_id = Column(Integer, ForeignKey("delivery_routes.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    delivery_sequence = Column(Integer, nullable=False)
    delivery_status = Column(String(20), nullable=False, default='pending')
    delivered_at = Column(DateTime)
    notes = Column(Text)

    route = relationship("DeliveryRoute", back_populates="stops")
    order = relationship("Order")


# =====================================================
# RENDICIONES
# =====================================================

class CashReconciliation(Base, TimestampMixin):
    """Rendición de efectivo de un transportista al cierre del recorrido"""
    __tablename__ = "cash_reconciliations"

    id = Column(Integer, primary_key=True, index=True)
    route_id = Column(
        Integer, ForeignKey("delivery_routes.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    courier_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    reconciliation_date = Column(Date, nullable=False, server_default=func.current_date(), index=True)

    expected_cash = Column(Numeric(12, 2), nullable=False, default=0)
    expected_other = Column(Numeric(12, 2), nullable=False, default=0)
    declared_amount = Column(Numeric(12, 2), nullable=False, default=0)

    status = Column(String(30), nullable=False, default='pending', index=True)
    courier_justification = Column(Text)
    reviewer_notes = Column(Text)

    submitted_at = Column(DateTime)
    reviewed_at = Column(DateTime)
    reviewed_by = Column(Integer, ForeignKey("users.id"))

    courier = relationship("User", foreign_keys=[courier_id])
    route = relationship("DeliveryRoute")
    items = relationship("CashReconciliationItem", back_populates="reconciliation", order_by="CashReconciliationItem.id")
    adjustments = relationship(
        "CashReconciliationAdjustment", back_populates="reconciliation", order_by="CashReconciliationAdjustment.id"
    )

    @hybrid_property
    def difference(self):
        """Positivo = sobrante, negativo = faltante"""
        return self.declared_amount - self.expected_cash


class CashReconciliationItem(Base):
    """Snapshot inmutable de lo cobrado en cada pedido al crear la rendición"""
    __tablename__ = "cash_reconciliation_items"
    __table_args__ = (
        UniqueConstraint('reconciliation_id', 'order_id', name='uq_reconciliation_order'),
    )

    id = Column(Integer, primary_key=True, index=True)
    reconciliation_id = Column(
        Integer, ForeignKey("cash_reconciliations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # SET NULL: el snapshot sobrevive a la eliminación del pedido
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"))
    amount_collected = Column(Numeric(12, 2), nullable=False, default=0)
    payment_method = Column(String(30), nullable=False)
    reference = Column(String(100))
    created_at = Column(DateTime, server_default=func.current_timestamp())

    reconciliation = relationship("CashReconciliation", back_populates="items")


class CashReconciliationAdjustment(Base):
    """Ajuste o justificación de diferencias en una rendición"""
    __tablename__ = "cash_reconciliation_adjustments"

    id = Column(Integer, primary_key=True, index=True)
    reconciliation_id = Column(
        Integer, ForeignKey("cash_reconciliations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    adjustment_type = Column(String(30), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(Text, nullable=False)
    photo_url = Column(Text)

    approved = Column(Boolean)
    approved_by = Column(Integer, ForeignKey("users.id"))
    approved_at = Column(DateTime)
    created_by = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, server_default=func.current_timestamp())

    reconciliation = relationship("CashReconciliation", back_populates="adjustments")


# =====================================================
# INVENTARIO: MERMAS Y COMPRAS
# =====================================================

class StockShrinkage(Base):
    """Baja de stock por pérdida, rotura, vencimiento, etc."""
    __tablename__ = "stock_shrinkages"
    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_stock_shrinkages_quantity_positive'),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    reason = Column(String(50), nullable=False, index=True)
    notes = Column(Text)
    stock_before = Column(Integer, nullable=False)
    stock_after = Column(Integer, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp(), index=True)

    product = relationship("Product")


class Purchase(Base, TimestampMixin):
    """Compra a proveedor que ingresa stock"""
    __tablename__ = "purchases"

    id = Column(Integer, primary_key=True, index=True)
    supplier_name = Column(String(200))
    invoice_number = Column(String(100))
    purchase_date = Column(Date, nullable=False, server_default=func.current_date(), index=True)
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    vat = Column(Numeric(12, 2), nullable=False, default=0)
    other_taxes = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    payment_method = Column(String(30), default='cash')
    status = Column(String(20), nullable=False, default='received')
    notes = Column(Text)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))

    items = relationship("PurchaseItem", back_populates="purchase", order_by="PurchaseItem.id")


class PurchaseItem(Base):
    __tablename__ = "purchase_items"
    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_purchase_items_quantity_positive'),
    )

    id = Column(Integer, primary_key=True, index=True)
    purchase_id = Column(Integer, ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_cost = Column(Numeric(12, 2), nullable=False, default=0)
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    stock_before = Column(Integer, nullable=False, default=0)
    stock_after = Column(Integer, nullable=False, default=0)

    purchase = relationship("Purchase", back_populates="items")
