# distribuidora/modules/inventory/repository.py
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Tuple
from sqlalchemy.orm import Session
import logging

from distribuidora.core.exceptions import NotFoundError
from distribuidora.shared.database.models import Product, Purchase, PurchaseItem, StockShrinkage
from distribuidora.shared.database.transaction import atomic
from distribuidora.shared.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)

class InventoryRepository:
    def __init__(self, db: Session):
        self.db = db

    def register_shrinkage_atomic(self, shrinkage_data: Dict[str, Any]) -> StockShrinkage:
        """Baja de stock: falla completa si no hay unidades suficientes"""
        with atomic(self.db, f"Merma producto {shrinkage_data['product_id']}"):
            movement = StockLedger.decrement_atomic(
                self.db, [(shrinkage_data['product_id'], shrinkage_data['quantity'])]
            )[0]

            shrinkage = StockShrinkage(
                product_id=shrinkage_data['product_id'],
                quantity=shrinkage_data['quantity'],
                reason=shrinkage_data['reason'],
                notes=shrinkage_data.get('notes'),
                stock_before=movement['stock_before'],
                stock_after=movement['stock_after'],
                user_id=shrinkage_data.get('user_id')
            )
            self.db.add(shrinkage)
            logger.info(
                f"Merma {shrinkage.reason}: {shrinkage.quantity} u. de {movement['product_name']}"
            )

        self.db.refresh(shrinkage)
        return shrinkage

    def register_purchase_atomic(self, purchase_data: Dict[str, Any]) -> Purchase:
        """Compra a proveedor: ingresa stock de todos los items o de ninguno"""
        items = purchase_data['items']

        with atomic(self.db, f"Compra {purchase_data.get('invoice_number') or 's/n'}"):
            movements = {
                movement['product_id']: movement
                for movement in StockLedger.restore_atomic(
                    self.db, [(item['product_id'], item['quantity']) for item in items]
                )
            }

            subtotal = sum((item['quantity'] * Decimal(item['unit_cost']) for item in items), Decimal('0'))
            vat = Decimal(purchase_data.get('vat') or 0)
            other_taxes = Decimal(purchase_data.get('other_taxes') or 0)

            purchase = Purchase(
                supplier_name=purchase_data.get('supplier_name'),
                invoice_number=purchase_data.get('invoice_number'),
                purchase_date=purchase_data.get('purchase_date') or date.today(),
                subtotal=subtotal,
                vat=vat,
                other_taxes=other_taxes,
                total=subtotal + vat + other_taxes,
                payment_method=purchase_data.get('payment_method'),
                status='received',
                notes=purchase_data.get('notes'),
                user_id=purchase_data.get('user_id'),
                items=[
                    PurchaseItem(
                        product_id=item['product_id'],
                        quantity=item['quantity'],
                        unit_cost=Decimal(item['unit_cost']),
                        subtotal=item['quantity'] * Decimal(item['unit_cost']),
                        stock_before=movements[item['product_id']]['stock_before'],
                        stock_after=movements[item['product_id']]['stock_after']
                    )
                    for item in items
                ]
            )
            self.db.add(purchase)
            self.db.flush()
            logger.info(f"Compra #{purchase.id}: {len(items)} items, total {purchase.total}")

        self.db.refresh(purchase)
        return purchase

    def bulk_update_prices(self, items: List[Dict[str, Any]]) -> Tuple[int, List[str]]:
        """
        Actualizar precios por producto.

        Los productos inexistentes se informan sin impedir la
        actualización del resto.
        """
        updated = 0
        errors = []

        with atomic(self.db, f"Actualización masiva de precios ({len(items)} productos)"):
            for item in items:
                product = self.db.query(Product).filter(
                    Product.id == item['product_id']
                ).with_for_update().first()

                if not product:
                    errors.append(f"Producto ID {item['product_id']} no encontrado")
                    continue

                if item.get('net_price') is not None:
                    product.net_price = Decimal(item['net_price'])
                if item.get('internal_taxes') is not None:
                    product.internal_taxes = Decimal(item['internal_taxes'])
                if item.get('price') is not None:
                    product.price = Decimal(item['price'])
                updated += 1

        if errors:
            logger.warning(f"Actualización de precios con {len(errors)} errores")

        return updated, errors

    def get_product(self, product_id: int) -> Product:
        product = self.db.get(Product, product_id)
        if not product:
            raise NotFoundError(f"Producto {product_id} no encontrado")
        return product

    def get_low_stock_products(self) -> List[Product]:
        return StockLedger.low_stock_products(self.db)
