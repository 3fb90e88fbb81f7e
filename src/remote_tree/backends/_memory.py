"""In-memory backend — stdlib-only reference implementation of the store contract."""

from __future__ import annotations

import dataclasses
import hashlib
import io
import itertools
import threading
from datetime import datetime, timezone
from typing import TYPE_CHECKING, BinaryIO

from remote_tree._backend import Backend
from remote_tree._errors import BackingStoreFailure, NotFound
from remote_tree._node import Entry, Field, NodeKind

if TYPE_CHECKING:
    from remote_tree._node import Fields, Patch

ROOT_ID = "root"
_CHUNK_SIZE = 65536


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclasses.dataclass
class _Record:
    id: str
    name: str
    kind: NodeKind
    parents: list[str]
    created_time: str
    modified_time: str
    content: bytes = b""
    trashed: bool = False

    def checksum(self) -> str | None:
        if self.kind is NodeKind.DIRECTORY:
            return None
        return hashlib.md5(self.content).hexdigest()  # noqa: S324


class MemoryBackend(Backend):
    """Backend holding a flat graph of entries in process memory.

    Behaves like a multi-parent object store: names are not unique,
    ``lookup`` may return several matches, trash is global and only
    explicitly trashed entries are listed in it. Thread-safe.

    :param root_name: Display name of the native root folder.
    """

    def __init__(self, root_name: str = "My Drive") -> None:
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        stamp = _now()
        self._records: dict[str, _Record] = {
            ROOT_ID: _Record(
                id=ROOT_ID,
                name=root_name,
                kind=NodeKind.DIRECTORY,
                parents=[],
                created_time=stamp,
                modified_time=stamp,
            )
        }

    @property
    def name(self) -> str:
        return "memory"

    def __repr__(self) -> str:
        return f"MemoryBackend(entries={len(self._records)})"

    # region: helpers
    def _project(self, record: _Record, fields: Fields) -> Entry:
        """Build an Entry carrying only the requested fields."""
        values: dict[str, object] = {}
        if Field.NAME in fields:
            values["name"] = record.name
        if Field.KIND in fields:
            values["kind"] = record.kind
        if Field.SIZE in fields:
            values["size"] = len(record.content)
        if Field.CREATED_TIME in fields:
            values["created_time"] = record.created_time
        if Field.MODIFIED_TIME in fields:
            values["modified_time"] = record.modified_time
        if Field.PARENTS in fields:
            values["parents"] = tuple(record.parents)
        if Field.CHECKSUM in fields:
            values["checksum"] = record.checksum()
        if Field.TRASHED in fields:
            values["trashed"] = record.trashed
        return Entry(id=record.id, **values)  # type: ignore[arg-type]

    def _record(self, id: str) -> _Record:
        try:
            return self._records[id]
        except KeyError:
            raise NotFound(f"File not found: {id}", path=id, backend=self.name) from None

    def _folder(self, id: str) -> _Record:
        record = self._record(id)
        if record.kind is not NodeKind.DIRECTORY:
            raise BackingStoreFailure(f"The specified parent is not a folder: {id}", path=id, backend=self.name)
        return record

    def _children(self, parent_id: str) -> list[_Record]:
        return [r for r in self._records.values() if parent_id in r.parents and not r.trashed]

    def _new(self, parent_id: str, name: str, kind: NodeKind, content: bytes = b"") -> _Record:
        self._folder(parent_id)
        stamp = _now()
        record = _Record(
            id=f"n{next(self._ids)}",
            name=name,
            kind=kind,
            parents=[parent_id],
            created_time=stamp,
            modified_time=stamp,
            content=content,
        )
        self._records[record.id] = record
        return record

    @staticmethod
    def _read_all(content: BinaryIO) -> bytes:
        buf = bytearray()
        while chunk := content.read(_CHUNK_SIZE):
            buf += chunk
        return bytes(buf)

    # endregion

    # region: queries
    def root(self, fields: Fields) -> Entry:
        with self._lock:
            return self._project(self._records[ROOT_ID], fields)

    def get(self, id: str, fields: Fields) -> Entry:
        with self._lock:
            return self._project(self._record(id), fields)

    def lookup(self, parent_id: str, name: str, fields: Fields) -> list[Entry]:
        with self._lock:
            return [self._project(r, fields) for r in self._children(parent_id) if r.name == name]

    def list_children(self, parent_id: str, fields: Fields) -> list[Entry]:
        with self._lock:
            return [self._project(r, fields) for r in self._children(parent_id)]

    def list_trashed(self, fields: Fields) -> list[Entry]:
        with self._lock:
            return [self._project(r, fields) for r in self._records.values() if r.trashed]

    # endregion

    # region: mutations
    def create(self, parent_id: str, name: str, kind: NodeKind, fields: Fields) -> Entry:
        with self._lock:
            return self._project(self._new(parent_id, name, kind), fields)

    def upload(self, parent_id: str, name: str, content: BinaryIO, fields: Fields) -> Entry:
        data = self._read_all(content)
        with self._lock:
            return self._project(self._new(parent_id, name, NodeKind.FILE, data), fields)

    def replace_content(self, id: str, content: BinaryIO, fields: Fields) -> Entry:
        data = self._read_all(content)
        with self._lock:
            record = self._record(id)
            if record.kind is NodeKind.DIRECTORY:
                raise BackingStoreFailure(f"Cannot upload content to a folder: {id}", path=id, backend=self.name)
            record.content = data
            record.modified_time = _now()
            return self._project(record, fields)

    def update(self, id: str, patch: Patch, fields: Fields) -> Entry:
        with self._lock:
            record = self._record(id)
            for parent_id in patch.add_parents:
                self._folder(parent_id)
            if patch.name is not None:
                record.name = patch.name
            parents = [p for p in record.parents if p not in patch.remove_parents]
            parents.extend(p for p in patch.add_parents if p not in parents)
            record.parents = parents
            if patch.trashed is not None:
                record.trashed = patch.trashed
            record.modified_time = _now()
            return self._project(record, fields)

    def delete(self, id: str) -> None:
        with self._lock:
            self._record(id)
            doomed = {id}
            # Drop descendants left without any surviving parent.
            changed = True
            while changed:
                changed = False
                for record in self._records.values():
                    if record.id in doomed or not record.parents:
                        continue
                    if all(p in doomed for p in record.parents):
                        doomed.add(record.id)
                        changed = True
            for record_id in doomed:
                del self._records[record_id]
            for record in self._records.values():
                record.parents = [p for p in record.parents if p not in doomed]

    def download(self, id: str) -> BinaryIO:
        with self._lock:
            record = self._record(id)
            if record.kind is NodeKind.DIRECTORY:
                raise BackingStoreFailure(f"Cannot download a folder: {id}", path=id, backend=self.name)
            return io.BytesIO(record.content)

    # endregion
