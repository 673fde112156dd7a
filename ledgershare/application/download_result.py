"""
Download Result

Encapsulates the outcome of a successful download: the consumed view, the
open blob stream and the hook that runs once the transfer has finished.
"""

import logging
import threading
from typing import BinaryIO, Callable, Iterator, Optional

from ledgershare.domain.file_records.entities import DownloadReceipt, FileRecord

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class DownloadResult:
    """
    Streamable download with a completion hook.

    ``complete()`` runs the hook only if the stream was read to the end,
    and at most once. A client that disconnects mid-transfer therefore
    never triggers the deferred purge; the sweep reclaims the record later.
    """

    def __init__(
        self,
        record: FileRecord,
        receipt: DownloadReceipt,
        stream: BinaryIO,
        on_complete: Optional[Callable[[], None]] = None,
    ):
        self.record = record
        self.receipt = receipt
        self.stream = stream
        self._on_complete = on_complete
        self._consumed = False
        self._completed = False
        self._lock = threading.Lock()

    @property
    def consumed(self) -> bool:
        return self._consumed

    def iter_chunks(self, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
        """Yield the blob in chunks, closing the stream afterwards."""
        try:
            for chunk in iter(lambda: self.stream.read(chunk_size), b""):
                yield chunk
            self._consumed = True
        finally:
            self.stream.close()

    def read_all(self) -> bytes:
        return b"".join(self.iter_chunks())

    def complete(self) -> None:
        """Run the completion hook if the transfer finished."""
        with self._lock:
            if self._completed or not self._consumed or self._on_complete is None:
                return
            self._completed = True

        logger.debug(f"Transfer of record {self.record.id} complete, running completion hook")
        self._on_complete()

    def to_dict(self):
        return {
            "record": self.record.to_metadata(),
            "receipt": self.receipt.to_dict(),
        }
