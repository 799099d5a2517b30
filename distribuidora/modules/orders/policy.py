# distribuidora/modules/orders/policy.py
from typing import Dict, Optional, Set

from distribuidora.config.settings import settings
from distribuidora.core.exceptions import StateError, ValidationError

ORDER_STATUSES = ("pending", "preparing", "assigned", "delivered")

# Avance hacia delivered (preparing se puede saltear) y vuelta a pending
STRICT_TRANSITIONS: Dict[str, Set[str]] = {
    "pending": {"preparing", "assigned"},
    "preparing": {"assigned", "pending"},
    "assigned": {"delivered", "pending"},
    "delivered": {"pending"},
}

class OrderStatusPolicy:
    """
    Política de transiciones de estado de pedidos.

    "free" acepta cualquier transición entre estados válidos.
    "strict" aplica STRICT_TRANSITIONS.
    """

    def __init__(self, mode: Optional[str] = None):
        self.mode = mode or settings.order_status_policy
        if self.mode not in ("free", "strict"):
            raise ValueError(f"Política de estados desconocida: {self.mode}")

    def allowed_from(self, current: str) -> Set[str]:
        if self.mode == "free":
            return set(ORDER_STATUSES) - {current}
        return STRICT_TRANSITIONS.get(current, set())

    def ensure_transition(self, current: str, new: str) -> None:
        if new not in ORDER_STATUSES:
            raise ValidationError(f"Estado de pedido no válido: {new}")

        if current == new:
            return

        if new not in self.allowed_from(current):
            raise StateError(
                f"Transición de estado no permitida: {current} -> {new}"
            )

    @staticmethod
    def ensure_items_editable(status: str) -> None:
        if status == "delivered":
            raise StateError("No se puede editar un pedido ya entregado")
