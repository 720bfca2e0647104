"""Working set persistence."""

from .json_store import JsonWorkingSetStore

__all__ = ["JsonWorkingSetStore"]
