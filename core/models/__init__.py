from .base import BaseModel, TimeStampedModel, UserStampedModel, actor_or_none
from .audit import AuditLog
from .domain import DomainEventsMixin, StatefulDomainModel
from .numbering import NumberingScheme
from .sequences import NumberSequence

__all__ = [
    "BaseModel",
    "TimeStampedModel",
    "UserStampedModel",
    "actor_or_none",
    "AuditLog",
    # Auto number
    "NumberSequence",
    "NumberingScheme",
    # Domain
    "DomainEventsMixin",
    "StatefulDomainModel",
]
