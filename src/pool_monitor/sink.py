"""Single-writer fan-in sink for derived rows."""

from __future__ import annotations

import asyncio
import csv
import logging
from pathlib import Path
from typing import IO, List, Optional, Protocol

from anyio import to_thread

from .config import PoolMonitorError, settings
from .dto import ROW_COLUMNS, Row


logger = logging.getLogger("pool_monitor.sink")

_CLOSE = object()
MAX_BATCH = 256


class SinkClosedError(PoolMonitorError):
    """Raised when a row is offered after shutdown started."""


class RowWriter(Protocol):
    def open(self) -> None: ...

    def write_row(self, row: Row) -> None: ...

    def flush(self) -> None: ...

    def close(self) -> None: ...


class CsvRowWriter:
    """Appends rows to a CSV file, writing the header only to a fresh file."""

    def __init__(self, path: str) -> None:
        self._path = Path(path)
        self._file: Optional[IO[str]] = None
        self._writer = None

    @property
    def path(self) -> Path:
        return self._path

    def open(self) -> None:
        fresh = not self._path.exists() or self._path.stat().st_size == 0
        if self._path.parent != Path(""):
            self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self._path.open("a", newline="", encoding="utf-8")
        self._writer = csv.writer(self._file)
        if fresh:
            self._writer.writerow(ROW_COLUMNS)
            self._file.flush()

    def write_row(self, row: Row) -> None:
        if self._writer is None:
            raise ValueError("writer is not open")
        self._writer.writerow(row.as_record())

    def flush(self) -> None:
        if self._file is not None:
            self._file.flush()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            self._writer = None


class FanInSink:
    """Bounded multi-producer queue drained by one consumer task.

    ``offer`` waits while the queue is full, so a slow writer throttles every
    listener instead of dropping rows or growing memory.
    """

    def __init__(self, writer: RowWriter, maxsize: int = settings.queue_size) -> None:
        if maxsize < 1:
            raise ValueError(f"queue capacity must be positive, got {maxsize}")
        self._writer = writer
        self._maxsize = maxsize
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._task: Optional[asyncio.Task] = None
        self._closed = False
        self._rows_written = 0
        self._write_failures = 0

    @property
    def maxsize(self) -> int:
        return self._maxsize

    @property
    def rows_written(self) -> int:
        return self._rows_written

    @property
    def write_failures(self) -> int:
        return self._write_failures

    def qsize(self) -> int:
        return self._queue.qsize()

    def is_closed(self) -> bool:
        return self._closed

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self._closed or (self._task and not self._task.done()):
            return
        await to_thread.run_sync(self._writer.open)
        if self._closed:
            # stop() ran while the file was being opened
            await to_thread.run_sync(self._writer.close)
            return
        self._task = asyncio.create_task(self._consume(), name="fan-in-sink")

    async def offer(self, row: Row) -> None:
        if self._closed:
            raise SinkClosedError("sink is closed")
        await self._queue.put(row)

    async def stop(self) -> None:
        """Refuse new rows, write everything already queued, then close the writer."""
        self._closed = True
        if self._task is None:
            return
        if not self._task.done():
            await self._queue.put(_CLOSE)
        try:
            await self._task
        finally:
            self._task = None
            await to_thread.run_sync(self._writer.close)
            logger.info(
                "Sink closed: %s rows written, %s write failures",
                self._rows_written,
                self._write_failures,
            )

    async def _consume(self) -> None:
        while True:
            item = await self._queue.get()
            batch: List[Row] = []
            done = False
            while True:
                if item is _CLOSE:
                    done = True
                    break
                batch.append(item)
                if len(batch) >= MAX_BATCH:
                    break
                try:
                    item = self._queue.get_nowait()
                except asyncio.QueueEmpty:
                    break
            if batch:
                await to_thread.run_sync(self._write_batch, batch)
            if done:
                return

    def _write_batch(self, batch: List[Row]) -> None:
        for row in batch:
            try:
                self._writer.write_row(row)
            except (OSError, ValueError, csv.Error) as exc:
                self._write_failures += 1
                logger.warning("Failed to write row for %s (slot %s): %s", row.account, row.slot, exc)
            else:
                self._rows_written += 1
        try:
            self._writer.flush()
        except OSError as exc:
            logger.warning("Failed to flush sink: %s", exc)


__all__ = ["CsvRowWriter", "FanInSink", "RowWriter", "SinkClosedError"]
