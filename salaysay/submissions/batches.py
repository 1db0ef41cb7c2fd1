"""
Server-side holder for upload dialog sessions.

Why:
    An upload dialog tracks each selected file through pending/uploading/
    completed/error. The tracking state is transient: it lives only for one
    dialog session and is discarded when the dialog closes. Discarding a batch
    never aborts a remote call already in flight.

Limits:
    - At most `max_batches_per_owner` open dialogs per owner; the oldest go first.
    - Batches idle for longer than `ttl_seconds` are forgotten (closed tabs).
    - The file bodies held across all batches never exceed `max_total_bytes`;
      a selection that does not fit is refused with `BatchCapacityExceeded`.
"""
from __future__ import annotations

from typing import Callable, Dict
import threading
import time

from salaysay.submissions.models import UploadBatch

DEFAULT_TTL_SECONDS = 30 * 60
DEFAULT_MAX_TOTAL_BYTES = 256 * 1024 * 1024


class BatchCapacityExceeded(RuntimeError):
    def __init__(self, requested: int, available: int):
        super().__init__("batch_capacity_exceeded")
        self.requested = requested
        self.available = available


class UploadBatchStore:
    def __init__(
        self,
        max_batches_per_owner: int = 20,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_total_bytes: int = DEFAULT_MAX_TOTAL_BYTES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._data: Dict[str, UploadBatch] = {}
        self._lock = threading.Lock()
        self._max_per_owner = max_batches_per_owner
        self._ttl = ttl_seconds
        self._max_total_bytes = max_total_bytes
        self._clock = clock

    def _purge_expired(self, now: float) -> None:
        expired = [bid for bid, b in self._data.items() if now - b.touched_at > self._ttl and not b.in_flight]
        for bid in expired:
            self._data.pop(bid, None)

    def retained_bytes(self) -> int:
        return sum(b.retained_bytes for b in list(self._data.values()))

    def add(self, batch: UploadBatch) -> UploadBatch:
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            owned = [b for b in self._data.values() if b.owner_id == batch.owner_id]
            # Forget the oldest dialogs of this owner; they were never closed.
            while len(owned) >= self._max_per_owner:
                self._data.pop(owned.pop(0).id, None)
            available = self._max_total_bytes - self.retained_bytes()
            if batch.retained_bytes > available:
                raise BatchCapacityExceeded(batch.retained_bytes, max(available, 0))
            batch.touched_at = now
            self._data[batch.id] = batch
        return batch

    def get(self, batch_id: str, *, owner_id: str) -> UploadBatch:
        """Return the caller's batch; other owners' or expired batches look nonexistent."""
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            batch = self._data.get(batch_id)
            if batch is None or batch.owner_id != owner_id:
                raise LookupError("batch_not_found")
            batch.touched_at = now
        return batch

    def discard(self, batch_id: str, *, owner_id: str) -> None:
        with self._lock:
            batch = self._data.get(batch_id)
            if batch is None or batch.owner_id != owner_id:
                raise LookupError("batch_not_found")
            self._data.pop(batch_id, None)


__all__ = ["BatchCapacityExceeded", "UploadBatchStore"]
