"""Local persistence for addon state."""

from .json_store import JsonRecordStore

__all__ = ["JsonRecordStore"]
