"""Online/offline detection (passive signals plus active probe)."""

from .monitor import ConnectivityMonitor, NO_CACHE_HEADERS

__all__ = ["ConnectivityMonitor", "NO_CACHE_HEADERS"]
