"""Normalized error hierarchy for remote_tree."""

from __future__ import annotations

from typing import Optional


class RemoteTreeError(Exception):
    """Base class for all remote_tree errors.

    :param message: Human-readable error description.
    :param path: The path involved in the error, if any.
    :param backend: The backend name involved, if any.
    """

    def __init__(self, message: str = "", *, path: Optional[str] = None, backend: Optional[str] = None) -> None:
        self.path = path
        self.backend = backend
        super().__init__(message)

    def _context(self) -> list[str]:
        parts = []
        if self.path is not None:
            parts.append(f"path={self.path!r}")
        if self.backend is not None:
            parts.append(f"backend={self.backend!r}")
        return parts

    def __str__(self) -> str:
        parts = [super().__str__(), *self._context()]
        return " | ".join(parts) if len(parts) > 1 else parts[0]

    def __repr__(self) -> str:
        cls = type(self).__name__
        args = [repr(self.args[0] if self.args else ""), *self._context()]
        return f"{cls}({', '.join(args)})"


class NotFound(RemoteTreeError):
    """Raised when a path segment or node id does not exist."""


class AlreadyExists(RemoteTreeError):
    """Raised when a target already exists and the caller asked for uniqueness."""


class AmbiguousEntry(RemoteTreeError):
    """Raised when a parent holds several children with the requested name."""


class NotADirectory(RemoteTreeError):
    """Raised when a directory is required but a file was found."""


class IsADirectory(RemoteTreeError):
    """Raised when a file is required but a directory was found."""


class InvalidArgument(RemoteTreeError):
    """Raised for empty paths or names, root-targeted mutations and unsupported options."""


class CallbackFailure(RemoteTreeError):
    """Raised when a caller-supplied visitor fails during iteration.

    The visitor's exception is available as ``error`` and as ``__cause__``.

    :param error: The exception raised by the visitor.
    """

    def __init__(
        self,
        message: str = "",
        *,
        error: BaseException,
        path: Optional[str] = None,
        backend: Optional[str] = None,
    ) -> None:
        self.error = error
        super().__init__(message or f"callback raised an error: {error}", path=path, backend=backend)


class BackingStoreFailure(RemoteTreeError):
    """Raised when the backing store fails in a way the core does not interpret.

    :param status: Transport status code reported by the store, if any.
    """

    def __init__(
        self,
        message: str = "",
        *,
        path: Optional[str] = None,
        backend: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        self.status = status
        super().__init__(message, path=path, backend=backend)

    def _context(self) -> list[str]:
        parts = super()._context()
        if self.status is not None:
            parts.append(f"status={self.status}")
        return parts
