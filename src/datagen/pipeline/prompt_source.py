"""Lazy, single-pass reader for line-delimited prompt files."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

from datagen.exceptions import SourceIOError
from datagen.models.prompt import PromptTask

logger = logging.getLogger(__name__)


def ensure_readable_file(path: str | Path) -> Path:
    """Check that ``path`` exists and is a regular file."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"File not found: {p}")
    if not p.is_file():
        raise ValueError(f"Not a file: {p}")
    with p.open("rb"):
        pass
    return p


def count_prompts(path: str | Path) -> int:
    """Count non-blank lines (used only to size the progress bar)."""
    count = 0
    with Path(path).open("r", encoding="utf-8") as f:
        for line in f:
            if line.strip():
                count += 1
    return count


class PromptSource:
    """Yields a PromptTask for every non-blank line of a prompts file.

    Lines are read one at a time, so memory does not grow with the number of
    prompts. The source can be iterated only once. Any I/O error, at open or
    mid-stream, is raised as SourceIOError.
    """

    def __init__(self, path: str | Path, encoding: str = "utf-8"):
        self.path = Path(path)
        self.encoding = encoding
        self.lines_read = 0
        self._started = False

    def __iter__(self) -> Iterator[PromptTask]:
        if self._started:
            raise RuntimeError("PromptSource can only be consumed once")
        self._started = True
        return self._read()

    def _read(self) -> Iterator[PromptTask]:
        try:
            handle = self.path.open("r", encoding=self.encoding, newline=None)
        except OSError as exc:
            raise SourceIOError(f"Cannot open prompts file {self.path}: {exc}") from exc

        sequence_index = 0
        with handle:
            while True:
                try:
                    line = handle.readline()
                except (OSError, UnicodeDecodeError) as exc:
                    raise SourceIOError(
                        f"Failed reading {self.path} after line {self.lines_read}: {exc}"
                    ) from exc
                if not line:
                    break
                self.lines_read += 1
                text = line.strip()
                if not text:
                    continue
                yield PromptTask(
                    sequence_index=sequence_index,
                    line_number=self.lines_read,
                    text=text,
                )
                sequence_index += 1
        logger.debug("prompt source exhausted path=%s lines=%d", self.path, self.lines_read)
