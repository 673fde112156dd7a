"""
Service Registry

Holds the shared service instances built by the app factory, keyed by
the interface they are resolved under. Tests swap services with
``override()``; ``shutdown()`` stops the background services on exit.
"""

import logging
import threading
from typing import Any, Dict, Optional, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

EVENTS_LOGGER_NAME = "ledgershare.events"


class DependencyNotFoundError(Exception):
    """Raised when a service was never registered."""
    pass


class DependencyContainer:
    """
    Registry of the application's singletons.

    Every service in this application is built once at startup, so there
    is a single registration kind. Overrides shadow registrations until
    ``clear_overrides()``.
    """

    def __init__(self):
        self._services: Dict[Type, Any] = {}
        self._overrides: Dict[Type, Any] = {}
        self._lock = threading.Lock()

    def register_singleton(self, interface: Type[T], implementation: T) -> None:
        """
        Register the instance resolved for ``interface``.

        Example:
            container.register_singleton(FileRecordRepository, RedisFileRecordRepository(client))
        """
        with self._lock:
            self._services[interface] = implementation
        logger.debug(f"Registered {interface.__name__} -> {type(implementation).__name__}")

    def resolve(self, interface: Type[T]) -> T:
        """
        Return the instance for ``interface``, preferring an override.

        Raises:
            DependencyNotFoundError: If nothing is registered for ``interface``
        """
        with self._lock:
            if interface in self._overrides:
                return self._overrides[interface]
            try:
                return self._services[interface]
            except KeyError:
                raise DependencyNotFoundError(
                    f"No registration found for type: {interface.__name__}"
                ) from None

    def try_resolve(self, interface: Type[T]) -> Optional[T]:
        """Resolve a service, returning None when it is not registered."""
        try:
            return self.resolve(interface)
        except DependencyNotFoundError:
            return None

    def override(self, interface: Type[T], implementation: T) -> None:
        with self._lock:
            self._overrides[interface] = implementation
        logger.debug(f"Overridden: {interface.__name__}")

    def clear_overrides(self) -> None:
        with self._lock:
            self._overrides.clear()

    def is_registered(self, interface: Type) -> bool:
        with self._lock:
            return interface in self._services or interface in self._overrides

    def __len__(self) -> int:
        with self._lock:
            return len(self._services)

    def wire_event_handlers(self, event_publisher) -> None:
        """Subscribe the logging handler to every domain event."""
        from ledgershare.domain.events import DomainEvent
        from ledgershare.infrastructure.event_handlers import LoggingEventHandler

        handler = LoggingEventHandler(logging.getLogger(EVENTS_LOGGER_NAME))
        event_publisher.subscribe(DomainEvent, handler.handle)

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """
        Stop the reclamation scheduler, waiting for a running sweep.

        Safe to call more than once and when no scheduler is registered.
        """
        from ledgershare.application.reclamation_scheduler import ReclamationScheduler

        scheduler = self.try_resolve(ReclamationScheduler)
        if scheduler is not None:
            scheduler.stop(timeout)
