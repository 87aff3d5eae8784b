"""Bounded-concurrency shell job runner."""

__version__ = "0.1.0"
