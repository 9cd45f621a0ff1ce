"""
Persistence - Save slots for combat snapshots.

Sessions are in memory; the save store is the only thing written to
disk.
"""

from .save_store import AutosaveHook, SaveRecord, SaveStore

__all__ = [
    "AutosaveHook",
    "SaveRecord",
    "SaveStore",
]
