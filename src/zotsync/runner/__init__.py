"""Sync runners."""

from .sync_runner import PassStatus, SyncReport, SyncRunner, SyncTrigger

__all__ = ["PassStatus", "SyncReport", "SyncRunner", "SyncTrigger"]
