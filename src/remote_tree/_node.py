"""Node model — immutable snapshots of remote entries."""

from __future__ import annotations

import dataclasses
import enum
from datetime import datetime, timezone
from typing import Optional

from remote_tree._path import join, sanitize_name


class NodeKind(enum.Enum):
    """Kinds of remote entries."""

    FILE = "file"
    DIRECTORY = "directory"


class Field(enum.Enum):
    """Metadata a backend may be asked to return for an entry."""

    ID = "id"
    NAME = "name"
    KIND = "kind"
    SIZE = "size"
    CREATED_TIME = "created_time"
    MODIFIED_TIME = "modified_time"
    PARENTS = "parents"
    CHECKSUM = "checksum"
    TRASHED = "trashed"


Fields = frozenset[Field]

ID_FIELDS: Fields = frozenset({Field.ID})
INFO_FIELDS: Fields = frozenset(
    {Field.ID, Field.NAME, Field.KIND, Field.SIZE, Field.CREATED_TIME, Field.MODIFIED_TIME}
)
PARENT_FIELDS: Fields = INFO_FIELDS | {Field.PARENTS}
ANCESTOR_FIELDS: Fields = frozenset({Field.ID, Field.NAME, Field.PARENTS})
HASH_FIELDS: Fields = INFO_FIELDS | {Field.CHECKSUM}
ALL_FIELDS: Fields = frozenset(Field)


@dataclasses.dataclass(frozen=True)
class Entry:
    """Raw record returned by a backend.

    Only the fields requested from the backend are populated; the others
    keep their defaults.

    :param id: Opaque, stable identifier assigned by the store.
    :param name: Name as stored remotely.
    :param kind: File or directory, ``None`` if not fetched.
    :param size: Content size in bytes.
    :param created_time: RFC 3339 creation timestamp.
    :param modified_time: RFC 3339 modification timestamp.
    :param parents: Ids of all parents the store knows about.
    :param checksum: Hex encoded MD5 digest of the content.
    :param trashed: Whether the entry sits in the trash.
    """

    id: str
    name: str = ""
    kind: Optional[NodeKind] = None
    size: int = 0
    created_time: Optional[str] = None
    modified_time: Optional[str] = None
    parents: tuple[str, ...] = ()
    checksum: Optional[str] = None
    trashed: bool = False


@dataclasses.dataclass(frozen=True)
class Patch:
    """Partial update applied by :meth:`Backend.update` in a single call.

    Members left at ``None`` (or empty) are not touched.
    """

    name: Optional[str] = None
    add_parents: tuple[str, ...] = ()
    remove_parents: tuple[str, ...] = ()
    trashed: Optional[bool] = None


def _parse_time(raw: Optional[str], label: str) -> Optional[datetime]:
    if raw is None:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError as exc:
        raise AssertionError(f"unable to parse {label} ({raw!r}): {exc}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclasses.dataclass(frozen=True, eq=False)
class Node:
    """Immutable snapshot of one remote entry, placed in the tree.

    :param entry: The backend record.
    :param parent_path: Path of the parent directory relative to the driver's root.
    :param is_root: Whether this node is the driver's configured root.
    """

    entry: Entry
    parent_path: str = ""
    is_root: bool = False

    @property
    def id(self) -> str:
        return self.entry.id

    @property
    def name(self) -> str:
        """Sanitized name, as it appears in paths."""
        return sanitize_name(self.entry.name)

    @property
    def path(self) -> str:
        """Full path relative to the root; empty for the root itself."""
        if self.is_root:
            return ""
        return join(self.parent_path, self.name)

    @property
    def kind(self) -> Optional[NodeKind]:
        return self.entry.kind

    @property
    def is_dir(self) -> bool:
        return self.entry.kind is NodeKind.DIRECTORY

    @property
    def size(self) -> int:
        return self.entry.size

    @property
    def created_at(self) -> Optional[datetime]:
        """Creation time, ``None`` if it was not fetched.

        :raises AssertionError: If the store returned an unparsable timestamp.
        """
        return _parse_time(self.entry.created_time, "created_time")

    @property
    def modified_at(self) -> Optional[datetime]:
        """Modification time, ``None`` if it was not fetched.

        :raises AssertionError: If the store returned an unparsable timestamp.
        """
        return _parse_time(self.entry.modified_time, "modified_time")

    @property
    def parents(self) -> frozenset[str]:
        return frozenset(self.entry.parents)

    @property
    def parent(self) -> Optional[str]:
        """The single logical parent id; extra parents are ignored."""
        return self.entry.parents[0] if self.entry.parents else None

    @property
    def checksum(self) -> Optional[str]:
        return self.entry.checksum

    @property
    def trashed(self) -> bool:
        return self.entry.trashed

    def as_root(self) -> Node:
        """Return this node re-anchored as a root (empty path)."""
        return dataclasses.replace(self, parent_path="", is_root=True)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Node):
            return self.id == other.id
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        kind = self.kind.value if self.kind is not None else "?"
        return f"Node(id={self.id!r}, path={self.path!r}, kind={kind})"
