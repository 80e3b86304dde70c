# core/domain/dispatcher.py
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, DefaultDict, List, Type, TypeVar

from .events import DomainEvent

logger = logging.getLogger(__name__)

EventT = TypeVar("EventT", bound=DomainEvent)
Handler = Callable[[EventT], None]


class DomainEventDispatcher:
    """
    In-process, synchronous domain event dispatcher.

        from core.domain.dispatcher import register_handler, emit

        @register_handler(BatchReleased)
        def handle_batch_released(event: BatchReleased) -> None:
            ...

        emit(BatchReleased(batch_id=1, batch_code="SKU-202610-001"))
    """

    def __init__(self) -> None:
        self._handlers: DefaultDict[Type[DomainEvent], List[Handler]] = defaultdict(list)

    def register_handler(self, event_type: Type[EventT]):
        def decorator(func: Handler) -> Handler:
            if func not in self._handlers[event_type]:
                self._handlers[event_type].append(func)
            logger.debug(
                "Registered domain event handler %s for %s",
                func.__name__,
                event_type.__name__,
            )
            return func

        return decorator

    def handlers_for(self, event_type: Type[DomainEvent]) -> List[Handler]:
        return list(self._handlers.get(event_type, []))

    def emit(self, event: DomainEvent) -> None:
        """
        Dispatch the event to every registered handler.

        Handlers run after the business transaction committed, so a failing
        handler is logged and does not stop the others.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type, [])

        if not handlers:
            logger.debug("No handlers registered for event %s", event_type.__name__)
            return

        logger.debug(
            "Emitting event %s to %d handler(s)",
            event_type.__name__,
            len(handlers),
        )

        for handler in handlers:
            try:
                handler(event)  # type: ignore[arg-type]
            except Exception:
                logger.exception(
                    "Error while handling event %s in handler %s",
                    event_type.__name__,
                    handler.__name__,
                )


dispatcher = DomainEventDispatcher()

register_handler = dispatcher.register_handler
emit = dispatcher.emit
