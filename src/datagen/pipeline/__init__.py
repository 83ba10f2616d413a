"""Bounded-concurrency prompt processing pipeline."""
