from typing import Any, Dict, Iterable, List, Tuple
from sqlalchemy.orm import Session
import logging

from distribuidora.shared.database.models import Product
from distribuidora.core.exceptions import InsufficientStockError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _as_pair(item: Any) -> Tuple[int, int]:
    """Aceptar dicts {product_id, quantity}, schemas o tuplas"""
    if isinstance(item, dict):
        return item['product_id'], item['quantity']
    if isinstance(item, (tuple, list)):
        return item[0], item[1]
    return item.product_id, item.quantity


class StockLedger:
    """
    Ajustes de stock atómicos con bloqueo pesimista.

    Ningún método hace commit: el repository que llama es dueño de la
    transacción, así un fallo posterior (items, saldo, historial) revierte
    también el movimiento de stock.
    """

    @staticmethod
    def aggregate(items: Iterable[Any]) -> Dict[int, int]:
        """
        Validar cantidades y agrupar por producto.

        Raises:
            ValidationError: con TODAS las líneas con cantidad <= 0
        """
        errors = []
        requested: Dict[int, int] = {}

        for item in items:
            product_id, quantity = _as_pair(item)
            if quantity is None or quantity <= 0:
                errors.append(
                    f"Producto ID {product_id}: la cantidad debe ser mayor a 0 (recibido: {quantity})"
                )
                continue
            requested[product_id] = requested.get(product_id, 0) + quantity

        if errors:
            raise ValidationError(errors, message="Cantidades inválidas")

        return requested

    @staticmethod
    def lock_products(db: Session, product_ids: Iterable[int]) -> Dict[int, Product]:
        """SELECT FOR UPDATE sobre cada producto distinto, en orden de id"""
        ids = sorted(set(product_ids))
        if not ids:
            return {}

        products = db.query(Product).filter(
            Product.id.in_(ids)
        ).order_by(Product.id).with_for_update().all()

        return {product.id: product for product in products}

    @staticmethod
    def check_availability(db: Session, requested: Dict[int, int]) -> Dict[int, Product]:
        """
        Bloquear y verificar stock de todo el lote sin modificarlo.

        Args:
            requested: {product_id: cantidad} ya validado con aggregate()

        Returns:
            Dict[product_id, Product]: productos bloqueados

        Raises:
            InsufficientStockError: con todos los faltantes, no solo el primero
        """
        locked = StockLedger.lock_products(db, requested.keys())
        unavailable = []

        for product_id, quantity in requested.items():
            product = locked.get(product_id)

            if product is None:
                unavailable.append(f"Producto ID {product_id} no encontrado")
                continue

            if product.stock < quantity:
                unavailable.append(
                    f"{product.name}: stock insuficiente "
                    f"(disponible: {product.stock}, solicitado: {quantity})"
                )

        if unavailable:
            logger.info(f"Validación de stock rechazada: {len(unavailable)} errores")
            raise InsufficientStockError(unavailable)

        return locked

    @staticmethod
    def decrement_atomic(db: Session, items: Iterable[Any]) -> List[Dict[str, Any]]:
        """
        Descontar stock de un lote: todo o nada.

        Returns:
            List[{product_id, product_name, quantity, stock_before, stock_after}]
        """
        requested = StockLedger.aggregate(items)
        locked = StockLedger.check_availability(db, requested)

        movements = []
        for product_id, quantity in requested.items():
            product = locked[product_id]
            stock_before = product.stock
            product.stock = stock_before - quantity
            movements.append({
                'product_id': product_id,
                'product_name': product.name,
                'quantity': -quantity,
                'stock_before': stock_before,
                'stock_after': product.stock
            })

        db.flush()
        logger.info(f"Stock descontado para {len(movements)} productos")
        return movements

    @staticmethod
    def restore_atomic(db: Session, items: Iterable[Any]) -> List[Dict[str, Any]]:
        """
        Devolver stock de un lote. Un incremento nunca deja stock negativo,
        pero los productos inexistentes se reportan igual.
        """
        requested = StockLedger.aggregate(items)
        locked = StockLedger.lock_products(db, requested.keys())

        missing = [
            f"Producto ID {product_id} no encontrado"
            for product_id in requested if product_id not in locked
        ]
        if missing:
            raise NotFoundError(missing, message="Productos no encontrados")

        movements = []
        for product_id, quantity in requested.items():
            product = locked[product_id]
            stock_before = product.stock
            product.stock = stock_before + quantity
            movements.append({
                'product_id': product_id,
                'product_name': product.name,
                'quantity': quantity,
                'stock_before': stock_before,
                'stock_after': product.stock
            })

        db.flush()
        logger.info(f"Stock restaurado para {len(movements)} productos")
        return movements

    @staticmethod
    def apply_deltas(db: Session, deltas: Dict[int, int]) -> List[Dict[str, Any]]:
        """
        Aplicar deltas netos con signo (positivo = descontar, negativo = devolver)
        validando primero los que descuentan.
        """
        to_decrement = {pid: qty for pid, qty in deltas.items() if qty > 0}
        to_restore = {pid: -qty for pid, qty in deltas.items() if qty < 0}

        movements = []
        if to_decrement:
            movements += StockLedger.decrement_atomic(db, list(to_decrement.items()))
        if to_restore:
            movements += StockLedger.restore_atomic(db, list(to_restore.items()))
        return movements

    @staticmethod
    def low_stock_products(db: Session) -> List[Product]:
        """Productos con stock en o bajo el mínimo (solo lectura)"""
        return db.query(Product).filter(
            Product.is_active == True,
            Product.stock <= Product.min_stock
        ).order_by(Product.stock.asc()).all()
