"""
Event Publisher

Application service for publishing domain events to registered handlers.
Enables decoupling of side effects from core business logic.
"""

import logging
from threading import Lock
from typing import Callable, Dict, List, Type

from ledgershare.domain.events import DomainEvent

logger = logging.getLogger(__name__)


class EventPublisher:
    """
    Event publisher that dispatches domain events to registered handlers.

    Handlers subscribed to a base event class receive every subclass event,
    so subscribing to DomainEvent receives everything. Handler exceptions
    are caught and logged so side effects never break core business logic.

    Thread-safe for concurrent event publishing.
    """

    def __init__(self):
        """Initialize EventPublisher with empty handler registry."""
        self._handlers: Dict[Type[DomainEvent], List[Callable[[DomainEvent], None]]] = {}
        self._lock = Lock()

    def subscribe(
        self,
        event_type: Type[DomainEvent],
        handler: Callable[[DomainEvent], None]
    ) -> None:
        """
        Register a handler for an event type and its subclasses.

        Args:
            event_type: The type of domain event to handle
            handler: Callable that accepts the event as parameter
        """
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
            logger.debug(
                f"Registered handler {getattr(handler, '__name__', handler)} "
                f"for {event_type.__name__}"
            )

    def publish(self, event: DomainEvent) -> None:
        """
        Publish an event to all matching handlers, synchronously.

        Args:
            event: The domain event to publish
        """
        event_type = type(event)

        with self._lock:
            handlers = []
            for klass in event_type.__mro__:
                handlers.extend(self._handlers.get(klass, []))

        if not handlers:
            logger.debug(f"No handlers registered for {event_type.__name__}")
            return

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                # Side effects must not break core logic
                logger.error(
                    f"Error in handler {getattr(handler, '__name__', handler)} "
                    f"for {event_type.__name__}: {e}",
                    exc_info=True
                )
