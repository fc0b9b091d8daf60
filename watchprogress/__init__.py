"""Checkpoint-based video watch progress tracking."""

__version__ = "0.1.0"
