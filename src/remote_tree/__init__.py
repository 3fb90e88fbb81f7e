"""Path and folder access over flat, multi-parent object stores."""

from remote_tree._backend import Backend
from remote_tree._config import BackendConfig, DriverProfile, RegistryConfig
from remote_tree._driver import Driver, HashMethod
from remote_tree._errors import (
    AlreadyExists,
    AmbiguousEntry,
    BackingStoreFailure,
    CallbackFailure,
    InvalidArgument,
    IsADirectory,
    NotADirectory,
    NotFound,
    RemoteTreeError,
)
from remote_tree._file import File, OpenMode, ReadFile, WriteFile
from remote_tree._node import Entry, Field, Node, NodeKind, Patch
from remote_tree._path import TreePath, sanitize_name
from remote_tree._registry import Registry, register_backend

__version__ = "0.1.0"

__all__ = [
    # Core
    "Driver",
    "Registry",
    "Backend",
    "register_backend",
    # Path & Models
    "TreePath",
    "sanitize_name",
    "Node",
    "NodeKind",
    "Entry",
    "Field",
    "Patch",
    "HashMethod",
    # Files
    "File",
    "ReadFile",
    "WriteFile",
    "OpenMode",
    # Config
    "BackendConfig",
    "DriverProfile",
    "RegistryConfig",
    # Errors
    "RemoteTreeError",
    "NotFound",
    "AlreadyExists",
    "AmbiguousEntry",
    "NotADirectory",
    "IsADirectory",
    "InvalidArgument",
    "CallbackFailure",
    "BackingStoreFailure",
    # Version
    "__version__",
]
