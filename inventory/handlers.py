# inventory/handlers.py
import logging

from core.domain.dispatcher import register_handler
from inventory.domain import MaterialShortage, MaterialStockLow

logger = logging.getLogger(__name__)


@register_handler(MaterialStockLow)
def handle_material_stock_low(event: MaterialStockLow) -> None:
    logger.warning(
        "Material %s is below its reorder point: %s < %s",
        event.sku,
        event.current_stock_qty,
        event.reorder_point,
    )


@register_handler(MaterialShortage)
def handle_material_shortage(event: MaterialShortage) -> None:
    logger.warning(
        "Material %s short during consumption: requested=%s consumed=%s",
        event.sku,
        event.requested,
        event.consumed,
    )
