"""
Sync module - mirrors the workspace onto the shadow branch.
"""

from .content import content_matches
from .engine import SyncEngine, SyncResult
from .tracker import ChangeTracker


__all__ = [
    "ChangeTracker",
    "SyncEngine",
    "SyncResult",
    "content_matches",
]
