from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, List, Optional, Protocol

from .counters import TrafficCounters
from .errors import SinkError
from .models import CanonicalRow

log = logging.getLogger("ipfix_agent.sink")


class RowWriter(Protocol):
    """
    Bulk insert client for the durable store.

    insert() is called from a worker thread with a complete batch, in write
    order. It applies its own retry policy and raises SinkError once it
    gives up.
    """

    def insert(self, rows: List[CanonicalRow]) -> None:
        ...


class BatchedSink:
    """
    Buffers CanonicalRow objects in front of a RowWriter.

    A batch is committed when any threshold is reached:
      max_bytes   accumulated serialized size
      max_rows    buffered row count
      period      seconds since the last flush

    The ingestion task calls write() and then commit() for every row, and
    commit() again whenever its receive wait times out. commit() is a no-op
    until a threshold is met. close() flushes whatever is left at shutdown.

    A batch the writer rejects is logged and dropped, whatever the writer
    raised. Ingestion keeps going and only the rows of that batch are lost.
    """

    def __init__(
        self,
        writer: RowWriter,
        max_bytes: int = 1024 * 1024,
        max_rows: int = 1000,
        period: float = 5.0,
        counters: Optional[TrafficCounters] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._writer = writer
        self.max_bytes = int(max_bytes)
        self.max_rows = int(max_rows)
        self.period = float(period)
        self._counters = counters
        self._clock = clock

        self._rows: List[CanonicalRow] = []
        self._bytes = 0
        self._last_flush = clock()

        self.committed_rows = 0
        self.committed_batches = 0
        self.dropped_rows = 0
        self.dropped_batches = 0

    def write(self, row: CanonicalRow) -> None:
        self._rows.append(row)
        self._bytes += row.serialized_size()

    @property
    def pending_rows(self) -> int:
        return len(self._rows)

    @property
    def pending_bytes(self) -> int:
        return self._bytes

    def due(self) -> bool:
        if len(self._rows) >= self.max_rows:
            return True
        if self._bytes >= self.max_bytes:
            return True
        return self._clock() - self._last_flush >= self.period

    def time_until_flush(self) -> float:
        """
        Seconds left before the period threshold fires.
        """
        return max(0.0, self.period - (self._clock() - self._last_flush))

    async def commit(self) -> int:
        """
        Flush if a threshold is met. Returns the number of rows committed.
        """
        if not self.due():
            return 0
        return await self._flush()

    async def close(self) -> int:
        """
        Final flush, regardless of thresholds.
        """
        return await self._flush()

    async def _flush(self) -> int:
        batch = self._rows
        self._rows = []
        self._bytes = 0
        self._last_flush = self._clock()

        if not batch:
            return 0

        try:
            await asyncio.to_thread(self._writer.insert, batch)
        except SinkError as exc:
            log.error("dropping batch of %d rows: %s", len(batch), exc)
            self._dropped(batch)
            return 0
        except Exception:
            log.exception("dropping batch of %d rows, writer failed unexpectedly", len(batch))
            self._dropped(batch)
            return 0

        self.committed_batches += 1
        self.committed_rows += len(batch)
        if self._counters:
            self._counters.batch_committed(len(batch))
        log.debug("committed batch of %d rows", len(batch))
        return len(batch)

    def _dropped(self, batch: List[CanonicalRow]) -> None:
        self.dropped_batches += 1
        self.dropped_rows += len(batch)
        if self._counters:
            self._counters.batch_dropped(len(batch))

    def status(self):
        return {
            "pending_rows": len(self._rows),
            "pending_bytes": self._bytes,
            "committed_rows": self.committed_rows,
            "committed_batches": self.committed_batches,
            "dropped_rows": self.dropped_rows,
            "dropped_batches": self.dropped_batches,
        }
