"""Append-only JSONL sink with a single writer task."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TextIO

from datagen.exceptions import SinkWriteError

logger = logging.getLogger(__name__)


class JsonlSink:
    """Serializes concurrent ``append`` calls through one queue and one writer.

    Lines are written whole, in the order ``append`` was called. A failed
    write poisons the sink: that call and every later one raise
    SinkWriteError.

    Usage::

        async with JsonlSink(path) as sink:
            await sink.append(record.to_jsonl())
    """

    def __init__(self, path: str | Path | None = None, *, stream: TextIO | None = None):
        if path is None and stream is None:
            raise ValueError("JsonlSink needs a path or a stream")
        self.path = Path(path) if path is not None else None
        self._stream = stream
        self._owns_stream = stream is None
        self._queue: asyncio.Queue[tuple[str, asyncio.Future[None]] | None] | None = None
        self._writer: asyncio.Task[None] | None = None
        self._error: SinkWriteError | None = None
        self.lines_written = 0

    async def open(self) -> None:
        if self._stream is None:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                # Truncate: a run always starts from an empty dataset.
                self._stream = self.path.open("w", encoding="utf-8")
            except OSError as exc:
                raise SinkWriteError(f"Cannot open output file {self.path}: {exc}") from exc
        self._queue = asyncio.Queue()
        self._writer = asyncio.create_task(self._drain())

    async def append(self, line: str) -> None:
        """Queue ``line`` and wait until it has been written."""
        if self._queue is None:
            raise RuntimeError("JsonlSink is not open")
        if self._error is not None:
            raise self._error
        if self._writer is None or self._writer.done():
            raise SinkWriteError("Output writer is not running")
        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((line, done))
        await done

    async def _drain(self) -> None:
        done: asyncio.Future[None] | None = None
        try:
            while True:
                item = await self._queue.get()
                if item is None:
                    break
                line, done = item
                if self._error is None:
                    try:
                        await asyncio.to_thread(self._write, line)
                    except Exception as exc:
                        # OSError, a closed handle (ValueError) or an encoding error.
                        self._error = SinkWriteError(f"Failed to write output: {exc}")
                        logger.error("output write failed", exc_info=True)
                    else:
                        self.lines_written += 1
                if done.done():
                    continue
                if self._error is not None:
                    done.set_exception(self._error)
                else:
                    done.set_result(None)
        finally:
            self._fail_pending(done)

    def _fail_pending(self, current: asyncio.Future[None] | None) -> None:
        error = self._error or SinkWriteError("Output writer stopped")
        if current is not None and not current.done():
            current.set_exception(error)
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is not None and not item[1].done():
                item[1].set_exception(error)

    def _write(self, line: str) -> None:
        self._stream.write(line)
        self._stream.flush()

    async def close(self) -> None:
        if self._writer is not None:
            self._queue.put_nowait(None)
            await self._writer
            self._writer = None
        if self._owns_stream and self._stream is not None:
            self._stream.close()
            self._stream = None

    async def __aenter__(self) -> JsonlSink:
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
