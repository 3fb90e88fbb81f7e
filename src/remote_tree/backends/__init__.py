"""Backend implementations."""

from remote_tree.backends._gdrive import GoogleDriveBackend
from remote_tree.backends._memory import MemoryBackend

__all__ = ["GoogleDriveBackend", "MemoryBackend"]
