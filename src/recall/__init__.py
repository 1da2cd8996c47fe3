"""Recall: a local, per-project knowledge store for editor assistants."""

__version__ = "0.1.0"
