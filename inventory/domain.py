# inventory/domain.py
from dataclasses import dataclass

from core.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class MaterialStockLow(DomainEvent):
    """
    Domain event: a material's cached stock dropped under its reorder point.
    """
    material_id: int
    sku: str
    current_stock_qty: int
    reorder_point: int


@dataclass(frozen=True, kw_only=True)
class MaterialShortage(DomainEvent):
    """
    Domain event: FIFO consumption could not satisfy the requested quantity.
    """
    material_id: int
    sku: str
    requested: int
    consumed: int
