"""Prompt task model."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PromptTask:
    """One non-blank prompt line admitted to the pipeline."""

    sequence_index: int  # order of admission, 0-based
    line_number: int  # raw line number in the prompts file, 1-based
    text: str
