"""Backend abstract base class — the backing-store contract."""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, BinaryIO

if TYPE_CHECKING:
    from remote_tree._node import Entry, Fields, NodeKind, Patch


class Backend(abc.ABC):
    """Abstract base class for the object stores a :class:`Driver` runs on.

    A backend exposes a flat graph of entries linked by parent ids. It
    knows nothing about paths; names are not unique within a parent.
    Backend-native exceptions must never leak — they must be mapped to
    :class:`NotFound` or :class:`BackingStoreFailure`.
    """

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Unique identifier for this backend type (e.g. ``'memory'``, ``'gdrive'``)."""

    @abc.abstractmethod
    def root(self, fields: Fields) -> Entry:
        """Return the store's native root folder."""

    @abc.abstractmethod
    def get(self, id: str, fields: Fields) -> Entry:
        """Return the entry with the given id, trashed or not.

        :raises NotFound: If no such entry exists.
        """

    @abc.abstractmethod
    def lookup(self, parent_id: str, name: str, fields: Fields) -> list[Entry]:
        """Return the non-trashed children of ``parent_id`` named exactly ``name``."""

    @abc.abstractmethod
    def list_children(self, parent_id: str, fields: Fields) -> list[Entry]:
        """Return all non-trashed direct children of ``parent_id``."""

    @abc.abstractmethod
    def list_trashed(self, fields: Fields) -> list[Entry]:
        """Return every explicitly trashed entry in the store."""

    @abc.abstractmethod
    def create(self, parent_id: str, name: str, kind: NodeKind, fields: Fields) -> Entry:
        """Create an empty entry under ``parent_id``. Never checks for existing names."""

    @abc.abstractmethod
    def upload(self, parent_id: str, name: str, content: BinaryIO, fields: Fields) -> Entry:
        """Create a new file under ``parent_id`` from a binary stream read to EOF."""

    @abc.abstractmethod
    def replace_content(self, id: str, content: BinaryIO, fields: Fields) -> Entry:
        """Replace the content of an existing file in place.

        :raises NotFound: If no such entry exists.
        """

    @abc.abstractmethod
    def update(self, id: str, patch: Patch, fields: Fields) -> Entry:
        """Apply ``patch`` (name, parents, trashed flag) in one call.

        :raises NotFound: If no such entry exists.
        """

    @abc.abstractmethod
    def delete(self, id: str) -> None:
        """Delete an entry permanently, together with its descendants.

        :raises NotFound: If no such entry exists.
        """

    @abc.abstractmethod
    def download(self, id: str) -> BinaryIO:
        """Open the content of a file for reading.

        :raises NotFound: If no such entry exists.
        """

    def close(self) -> None:  # noqa: B027
        """Release resources. Default is a no-op."""
