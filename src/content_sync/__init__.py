"""Reconcile loosely-typed authoring feeds into a canonical post store."""

__version__ = "1.0.0"
