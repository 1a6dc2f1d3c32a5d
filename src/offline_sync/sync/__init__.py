"""Queue draining (sync passes) and periodic scheduling."""

from .engine import SyncEngine, SyncReport, SyncState

__all__ = ["SyncEngine", "SyncReport", "SyncState"]
