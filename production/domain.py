# production/domain.py
from dataclasses import dataclass

from core.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class ProductionOrderStatusChanged(DomainEvent):
    order_id: int
    order_number: str
    old_status: str
    new_status: str


@dataclass(frozen=True, kw_only=True)
class BatchHeldForQC(DomainEvent):
    """
    Domain event: a completed batch is waiting for a QC decision;
    its output is quarantined.
    """
    batch_id: int
    batch_code: str


@dataclass(frozen=True, kw_only=True)
class BatchReleased(DomainEvent):
    """
    Domain event: a batch's output became sellable/consumable stock.
    """
    batch_id: int
    batch_code: str
    product_id: int
    quantity: int
