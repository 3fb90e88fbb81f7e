"""Path resolution — translate slash-separated paths into remote nodes."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from remote_tree._errors import AmbiguousEntry, NotFound
from remote_tree._node import ID_FIELDS, INFO_FIELDS, Node
from remote_tree._path import TreePath, join, sanitize_name

if TYPE_CHECKING:
    from remote_tree._backend import Backend
    from remote_tree._node import Entry, Fields

log = logging.getLogger(__name__)


def resolve(backend: Backend, root: Node, path: str | TreePath, fields: Fields = INFO_FIELDS) -> Node:
    """Resolve ``path`` relative to ``root``.

    The empty path returns ``root`` without contacting the backend.

    :raises NotFound: If a segment is missing; ``path`` names the failing prefix.
    :raises AmbiguousEntry: If a segment matches several siblings.
    """
    tree_path = path if isinstance(path, TreePath) else TreePath(path)
    return resolve_parts(backend, root, tree_path.parts, fields)


def resolve_parts(backend: Backend, root: Node, parts: tuple[str, ...], fields: Fields = INFO_FIELDS) -> Node:
    """Walk ``parts`` from ``root``, one backend lookup per segment.

    Intermediate segments only fetch ids; ``fields`` applies to the last one.
    """
    if not parts:
        return root

    current_id = root.id
    last = len(parts) - 1
    entry: Entry | None = None
    for i, segment in enumerate(parts):
        prefix = join(*parts[: i + 1])
        log.debug("lookup %r in %s", segment, current_id)
        entry = unique_child(backend, current_id, segment, fields if i == last else ID_FIELDS, prefix)
        if entry is None:
            raise NotFound(f"Not found: {prefix}", path=prefix, backend=backend.name)
        current_id = entry.id

    assert entry is not None
    return Node(entry=entry, parent_path=join(root.path, *map(sanitize_name, parts[:-1])))


def unique_child(backend: Backend, parent_id: str, segment: str, fields: Fields, prefix: str) -> Entry | None:
    """Return the single child named ``segment``, or ``None`` if there is none.

    :raises AmbiguousEntry: If more than one child carries the name.
    """
    matches = backend.lookup(parent_id, sanitize_name(segment), fields)
    if len(matches) > 1:
        raise AmbiguousEntry(f"Multiple entries found for {prefix}", path=prefix, backend=backend.name)
    return matches[0] if matches else None
