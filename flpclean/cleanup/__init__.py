"""Cleanup execution for approved delete sets."""

from flpclean.cleanup.executor import CleanupExecutor

__all__ = ["CleanupExecutor"]
