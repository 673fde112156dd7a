"""
Reclamation Scheduler

Periodic and on-demand sweeps that reclaim the blobs and rows of expired
or exhausted records. At most one sweep runs at a time: in-process via a
non-blocking lock, across processes via an optional RedisSweepGuard.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ledgershare.domain.errors import BlobStorageError, StoreBusyError
from ledgershare.domain.events import FilePurgedEvent, SweepCompletedEvent
from ledgershare.domain.file_records.entities import FileRecord, utc_now
from ledgershare.domain.file_records.repositories import FileRecordRepository
from ledgershare.domain.file_records.storage_repository import IBlobStorageRepository
from ledgershare.domain.file_records.value_objects import FileStatus

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 3600
DEFAULT_LOCK_WAIT_SECONDS = 0.5


@dataclass
class SweepReport:
    """Counters for one sweep."""
    started_at: datetime
    expired_by_time: int = 0
    exhausted: int = 0
    already_expired: int = 0
    candidates: int = 0
    purged: int = 0
    skipped: int = 0
    blob_failures: int = 0
    errors: List[str] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> Dict:
        return {
            "started_at": self.started_at.isoformat(),
            "expired_by_time": self.expired_by_time,
            "exhausted": self.exhausted,
            "already_expired": self.already_expired,
            "candidates": self.candidates,
            "purged": self.purged,
            "skipped": self.skipped,
            "blob_failures": self.blob_failures,
            "errors": list(self.errors),
            "duration_ms": self.duration_ms,
        }


class ReclamationScheduler:
    """
    Service object running reclamation sweeps.

    ``start()``/``stop()`` manage a daemon ticker thread; ``trigger()``
    starts a sweep in the background; ``run_sweep()`` runs one in the
    caller's thread. A trigger while a sweep is in progress is dropped.
    """

    def __init__(
        self,
        records: FileRecordRepository,
        storage: IBlobStorageRepository,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        guard=None,
        event_publisher=None,
        clock: Callable[[], datetime] = utc_now,
        lock_wait_seconds: float = DEFAULT_LOCK_WAIT_SECONDS,
        run_on_start: bool = False,
    ):
        """
        Initialize the scheduler.

        Args:
            records: Record store
            storage: Blob storage
            interval_seconds: Time between scheduled sweeps
            guard: Optional cross-process guard exposing ``hold()``
            event_publisher: Optional EventPublisher
            clock: Source of the current time
            lock_wait_seconds: Wait for each record lock before skipping it
            run_on_start: Sweep once as soon as ``start()`` is called
        """
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self.records = records
        self.storage = storage
        self.interval_seconds = interval_seconds
        self.guard = guard
        self.event_publisher = event_publisher
        self.clock = clock
        self.lock_wait_seconds = lock_wait_seconds
        self.run_on_start = run_on_start

        self._sweep_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._ticker: Optional[threading.Thread] = None
        self._sweep_thread: Optional[threading.Thread] = None
        self.last_report: Optional[SweepReport] = None

    # Lifecycle

    def start(self) -> None:
        """Start the ticker thread. Calling start twice is a no-op."""
        if self._ticker is not None and self._ticker.is_alive():
            return
        self._stop_event.clear()
        self._ticker = threading.Thread(
            target=self._tick_loop, name="reclamation-scheduler", daemon=True
        )
        self._ticker.start()
        logger.info(f"Reclamation scheduler started (interval {self.interval_seconds}s)")
        if self.run_on_start:
            self.trigger()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the ticker and wait for it and any triggered sweep to exit."""
        self._stop_event.set()
        if self._ticker is not None:
            self._ticker.join(timeout)
            self._ticker = None
        sweep_thread = self._sweep_thread
        if sweep_thread is not None:
            sweep_thread.join(timeout)
            if not sweep_thread.is_alive():
                self._sweep_thread = None
        logger.info("Reclamation scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._ticker is not None and self._ticker.is_alive()

    @property
    def sweep_in_progress(self) -> bool:
        return self._sweep_lock.locked()

    def _tick_loop(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            self.run_sweep()

    # Entry points

    def trigger(self) -> bool:
        """
        Start a sweep in the background and return immediately.

        Returns:
            True if a sweep was started, False if one is already running
        """
        if not self._sweep_lock.acquire(blocking=False):
            logger.info("Sweep already in progress, dropping trigger")
            return False

        def run():
            try:
                self._sweep_guarded()
            finally:
                self._sweep_lock.release()

        self._sweep_thread = threading.Thread(target=run, name="reclamation-sweep", daemon=True)
        self._sweep_thread.start()
        return True

    def run_sweep(self) -> Optional[SweepReport]:
        """
        Run one sweep in the calling thread.

        Returns:
            SweepReport, or None when another sweep holds the guard
        """
        if not self._sweep_lock.acquire(blocking=False):
            logger.info("Sweep already in progress, skipping")
            return None
        try:
            return self._sweep_guarded()
        finally:
            self._sweep_lock.release()

    # Sweep

    def _sweep_guarded(self) -> Optional[SweepReport]:
        """Never raises: failures end up in the report."""
        started_at = self.clock()
        try:
            if self.guard is None:
                return self._sweep(started_at)
            with self.guard.hold() as held:
                if not held:
                    return None
                return self._sweep(started_at)
        except Exception as e:
            logger.error(f"Sweep aborted: {e}", exc_info=True)
            report = SweepReport(started_at=started_at, errors=[f"sweep: {e}"])
            self.last_report = report
            return report

    def _find_candidates(self, now: datetime, report: SweepReport) -> List[FileRecord]:
        by_time = self.records.find_active_past_expiry(now)
        exhausted = self.records.find_active_exhausted()
        marked = self.records.find_marked_expired()
        report.expired_by_time = len(by_time)
        report.exhausted = len(exhausted)
        report.already_expired = len(marked)

        candidates: Dict[str, FileRecord] = {}
        for record in by_time + exhausted + marked:
            candidates.setdefault(record.id, record)
        return list(candidates.values())

    def _sweep(self, started_at: datetime) -> SweepReport:
        start = time.monotonic()
        report = SweepReport(started_at=started_at)
        candidates = self._find_candidates(started_at, report)
        report.candidates = len(candidates)
        logger.info(f"Sweep found {report.candidates} candidate record(s)")

        for record in candidates:
            try:
                with self.records.lock(record.id, self.lock_wait_seconds):
                    reclaimed = self._reclaim(record.id, started_at)
            except StoreBusyError:
                report.skipped += 1
                logger.info(f"Record {record.id} is busy, leaving it for the next sweep")
                continue
            except BlobStorageError as e:
                report.blob_failures += 1
                report.errors.append(f"{record.id}: {e}")
                logger.error(f"Failed to remove blob of record {record.id}: {e}", exc_info=True)
                continue
            except Exception as e:
                report.errors.append(f"{record.id}: {e}")
                logger.error(f"Failed to reclaim record {record.id}: {e}", exc_info=True)
                continue

            if reclaimed:
                report.purged += 1
                self._publish(FilePurgedEvent(
                    aggregate_id=record.id,
                    occurred_at=self.clock(),
                    reason="sweep",
                    row_removed=True,
                ))

        report.duration_ms = int((time.monotonic() - start) * 1000)
        self.last_report = report
        logger.info(
            f"Sweep finished: {report.purged}/{report.candidates} reclaimed, "
            f"{report.skipped} skipped, {len(report.errors)} error(s) in {report.duration_ms}ms"
        )
        self._publish(SweepCompletedEvent(
            aggregate_id="reclamation_sweep",
            occurred_at=self.clock(),
            candidates=report.candidates,
            purged=report.purged,
            errors=len(report.errors),
            duration_ms=report.duration_ms,
        ))
        return report

    def _reclaim(self, record_id: str, now: datetime) -> bool:
        """
        Re-check a candidate under its lock, then remove its blob and row.

        Returns:
            True if the record was reclaimed, False if it no longer qualifies
        """
        current = self.records.get(record_id)
        if current is None:
            return False

        eligible = current.status is FileStatus.EXPIRED or (
            current.is_active()
            and (current.expiry_time < now or current.is_exhausted())
        )
        if not eligible:
            logger.debug(f"Record {record_id} no longer qualifies for reclamation")
            return False

        try:
            removed = self.storage.delete(current.blob_ref)
        except OSError as e:
            raise BlobStorageError(str(e), original_error=e)
        if not removed:
            raise BlobStorageError(f"Blob {current.blob_ref} could not be removed")

        self.records.delete(record_id)
        logger.info(f"Reclaimed record {record_id} ({current.status.value})")
        return True

    def _publish(self, event) -> None:
        if self.event_publisher is not None:
            self.event_publisher.publish(event)
