# distribuidora/modules/inventory/service.py
from sqlalchemy.orm import Session
import logging

from distribuidora.core.auth.schemas import Actor
from .repository import InventoryRepository
from .schemas import (
    BulkPriceUpdateRequest, BulkPriceUpdateResponse, LowStockProduct, LowStockResponse,
    PurchaseCreateRequest, PurchaseItemInfo, PurchaseResponse, ShrinkageCreateRequest,
    ShrinkageResponse
)

logger = logging.getLogger(__name__)

class InventoryService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = InventoryRepository(db)

    async def register_shrinkage(self, request: ShrinkageCreateRequest, actor: Actor) -> ShrinkageResponse:
        shrinkage = self.repository.register_shrinkage_atomic({
            'product_id': request.product_id,
            'quantity': request.quantity,
            'reason': request.reason.value,
            'notes': request.notes,
            'user_id': actor.id
        })
        product = self.repository.get_product(shrinkage.product_id)

        return ShrinkageResponse(
            success=True,
            message=f"Merma registrada: {shrinkage.quantity} u. de {product.name}",
            shrinkage_id=shrinkage.id,
            product_id=product.id,
            product_name=product.name,
            quantity=shrinkage.quantity,
            reason=shrinkage.reason,
            stock_before=shrinkage.stock_before,
            stock_after=shrinkage.stock_after
        )

    async def register_purchase(self, request: PurchaseCreateRequest, actor: Actor) -> PurchaseResponse:
        purchase = self.repository.register_purchase_atomic({
            'supplier_name': request.supplier_name,
            'invoice_number': request.invoice_number,
            'purchase_date': request.purchase_date,
            'items': [item.model_dump() for item in request.items],
            'vat': request.vat,
            'other_taxes': request.other_taxes,
            'payment_method': request.payment_method.value,
            'notes': request.notes,
            'user_id': actor.id
        })

        return PurchaseResponse(
            success=True,
            message=f"Compra #{purchase.id} registrada",
            purchase_id=purchase.id,
            purchase_date=purchase.purchase_date,
            subtotal=purchase.subtotal,
            vat=purchase.vat,
            other_taxes=purchase.other_taxes,
            total=purchase.total,
            items=[
                PurchaseItemInfo(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_cost=item.unit_cost,
                    subtotal=item.subtotal,
                    stock_before=item.stock_before,
                    stock_after=item.stock_after
                )
                for item in purchase.items
            ]
        )

    async def bulk_update_prices(self, request: BulkPriceUpdateRequest, actor: Actor) -> BulkPriceUpdateResponse:
        logger.info(f"Usuario {actor.id} actualiza precios de {len(request.items)} productos")
        updated, errors = self.repository.bulk_update_prices(
            [item.model_dump() for item in request.items]
        )

        return BulkPriceUpdateResponse(
            success=not errors,
            message=f"{updated} productos actualizados",
            updated=updated,
            errors=errors
        )

    async def get_low_stock(self) -> LowStockResponse:
        products = self.repository.get_low_stock_products()
        return LowStockResponse(
            success=True,
            message=f"{len(products)} productos con stock bajo",
            products=[
                LowStockProduct(
                    product_id=product.id,
                    code=product.code,
                    name=product.name,
                    stock=product.stock,
                    min_stock=product.min_stock
                )
                for product in products
            ],
            count=len(products)
        )
