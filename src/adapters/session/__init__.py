"""Session adapters."""

from .memory import RequestSession

__all__ = ["RequestSession"]
