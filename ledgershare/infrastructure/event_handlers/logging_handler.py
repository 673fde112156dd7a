"""
Logging Event Handler

Infrastructure event handler for logging domain events.
Domain layer remains unaware of logging infrastructure.
"""

import logging

from ledgershare.domain.events import (
    AnchorRecordedEvent,
    DomainEvent,
    FileDeletedEvent,
    FileDownloadedEvent,
    FileExpiredEvent,
    FilePurgedEvent,
    FileRecordCreatedEvent,
    SweepCompletedEvent,
)


class LoggingEventHandler:
    """Subscribes to domain events and logs them at a level matching their weight."""

    def __init__(self, logger: logging.Logger):
        """
        Initialize with logger instance.

        Args:
            logger: Python logging.Logger instance
        """
        self.logger = logger

    def handle(self, event: DomainEvent) -> None:
        """
        Handle domain event by logging it.

        Args:
            event: Domain event to log
        """
        try:
            if isinstance(event, FileRecordCreatedEvent):
                self._handle_record_created(event)
            elif isinstance(event, FileDownloadedEvent):
                self._handle_downloaded(event)
            elif isinstance(event, FileExpiredEvent):
                self._handle_expired(event)
            elif isinstance(event, FileDeletedEvent):
                self._handle_deleted(event)
            elif isinstance(event, FilePurgedEvent):
                self._handle_purged(event)
            elif isinstance(event, AnchorRecordedEvent):
                self._handle_anchor_recorded(event)
            elif isinstance(event, SweepCompletedEvent):
                self._handle_sweep_completed(event)
            else:
                self.logger.debug(
                    f"Unhandled event: {event.__class__.__name__} "
                    f"(aggregate_id={event.aggregate_id})"
                )
        except Exception as e:
            self.logger.error(
                f"Error in logging event handler for {event.__class__.__name__}: {e}",
                exc_info=True,
            )

    def _handle_record_created(self, event: FileRecordCreatedEvent) -> None:
        self.logger.info(
            f"File record created: id={event.aggregate_id}, "
            f"hash={event.file_hash[:12]}..., views={event.view_limit}, "
            f"expires={event.expiry_time.isoformat()}, anchor={event.anchor_id}"
        )

    def _handle_downloaded(self, event: FileDownloadedEvent) -> None:
        self.logger.info(
            f"File downloaded: id={event.aggregate_id}, "
            f"views_remaining={event.views_remaining}"
        )

    def _handle_expired(self, event: FileExpiredEvent) -> None:
        self.logger.info(f"File expired: id={event.aggregate_id}, reason={event.reason}")

    def _handle_deleted(self, event: FileDeletedEvent) -> None:
        self.logger.info(
            f"File deleted by owner: id={event.aggregate_id}, "
            f"uploader={event.uploader_address}"
        )

    def _handle_purged(self, event: FilePurgedEvent) -> None:
        self.logger.info(
            f"File purged: id={event.aggregate_id}, reason={event.reason}, "
            f"row_removed={event.row_removed}"
        )

    def _handle_anchor_recorded(self, event: AnchorRecordedEvent) -> None:
        self.logger.info(
            f"Anchor recorded: hash={event.aggregate_id[:12]}..., "
            f"anchor_id={event.anchor_id}, block={event.anchor_block}, "
            f"attempts={event.attempts}"
        )

    def _handle_sweep_completed(self, event: SweepCompletedEvent) -> None:
        level = logging.WARNING if event.errors else logging.INFO
        self.logger.log(
            level,
            f"Sweep completed: candidates={event.candidates}, purged={event.purged}, "
            f"errors={event.errors}, duration={event.duration_ms}ms",
        )
