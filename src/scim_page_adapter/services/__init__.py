"""
Service-layer helpers built on page adapters.
"""

from .sync import SyncError, SyncSummary, SyncWalker, iter_pages, parse_retry_after, sync_all

__all__ = ["SyncError", "SyncSummary", "SyncWalker", "iter_pages", "parse_retry_after", "sync_all"]
