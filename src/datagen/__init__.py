"""Generate JSONL chat datasets from a file of prompts."""

__version__ = "0.3.0"
