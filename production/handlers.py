# production/handlers.py
import logging

from core.domain.dispatcher import register_handler
from production.domain import BatchHeldForQC, BatchReleased, ProductionOrderStatusChanged

logger = logging.getLogger(__name__)


@register_handler(ProductionOrderStatusChanged)
def handle_order_status_changed(event: ProductionOrderStatusChanged) -> None:
    logger.info(
        "Production order %s: %s -> %s",
        event.order_number,
        event.old_status,
        event.new_status,
    )


@register_handler(BatchHeldForQC)
def handle_batch_held_for_qc(event: BatchHeldForQC) -> None:
    logger.info("Batch %s is on QC hold", event.batch_code)


@register_handler(BatchReleased)
def handle_batch_released(event: BatchReleased) -> None:
    logger.info("Batch %s released (%s units)", event.batch_code, event.quantity)
