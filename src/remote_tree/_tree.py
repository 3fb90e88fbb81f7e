"""Tree mutations — directory synthesis, put, move, rename, delete and trash."""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING

from remote_tree._errors import (
    AlreadyExists,
    AmbiguousEntry,
    CallbackFailure,
    InvalidArgument,
    IsADirectory,
    NotADirectory,
    NotFound,
)
from remote_tree._node import (
    ANCESTOR_FIELDS,
    ID_FIELDS,
    INFO_FIELDS,
    PARENT_FIELDS,
    Field,
    Node,
    NodeKind,
    Patch,
)
from remote_tree._path import TreePath, join, sanitize_name
from remote_tree._resolver import resolve, unique_child

if TYPE_CHECKING:
    from collections.abc import Iterator
    from typing import BinaryIO

    from remote_tree._backend import Backend
    from remote_tree._node import Entry
    from remote_tree._types import Content, Visitor

log = logging.getLogger(__name__)

_KIND_FIELDS = frozenset({Field.ID, Field.NAME, Field.KIND})
_MOVE_FIELDS = frozenset({Field.ID, Field.KIND, Field.PARENTS})
_TRASH_FIELDS = PARENT_FIELDS | {Field.TRASHED}


def _as_path(path: str | TreePath) -> TreePath:
    return path if isinstance(path, TreePath) else TreePath(path)


def _as_stream(content: Content) -> BinaryIO:
    if isinstance(content, bytes):
        return io.BytesIO(content)
    return content


def _reject_root(node: Node, root: Node, action: str, path: str | TreePath) -> None:
    if node.id == root.id:
        raise InvalidArgument(f"root cannot be {action}", path=str(path))


# region: directories


def make_directory_by_parts(backend: Backend, root: Node, parts: tuple[str, ...]) -> Node:
    """Walk ``parts`` from ``root``, creating every missing directory.

    Existing segments are reused, so creating an existing path returns its leaf.

    :raises NotADirectory: If a missing segment would go below a file.
    :raises AmbiguousEntry: If a segment matches several siblings.
    """
    current = root
    for i, segment in enumerate(parts):
        prefix = join(*parts[: i + 1])
        parent_path = join(root.path, *map(sanitize_name, parts[:i]))
        entry = unique_child(backend, current.id, segment, INFO_FIELDS, prefix)
        if entry is None:
            if not current.is_dir:
                where = join(*parts[:i])
                raise NotADirectory(
                    f"Unable to create directory in {where!r}: {current.name!r} is not a directory",
                    path=where,
                    backend=backend.name,
                )
            log.debug("creating directory %r under %s", segment, current.id)
            entry = backend.create(current.id, sanitize_name(segment), NodeKind.DIRECTORY, INFO_FIELDS)
        current = Node(entry=entry, parent_path=parent_path)
    return current


def make_directory(backend: Backend, root: Node, path: str | TreePath) -> Node:
    """Create ``path`` and any missing ancestors; see :func:`make_directory_by_parts`."""
    return make_directory_by_parts(backend, root, _as_path(path).parts)


def _ensure_parent(backend: Backend, root: Node, dir_parts: tuple[str, ...]) -> Node:
    parent = make_directory_by_parts(backend, root, dir_parts)
    if not parent.is_dir:
        where = join(*dir_parts)
        raise NotADirectory(
            f"Unable to create file in {where!r}: {parent.name!r} is not a directory",
            path=where,
            backend=backend.name,
        )
    return parent


# endregion

# region: content


def put_file(
    backend: Backend,
    root: Node,
    path: str | TreePath,
    content: Content,
    *,
    overwrite: bool = False,
) -> Node:
    """Upload ``content`` to ``path``, creating missing directories.

    Without ``overwrite`` a new entry is created even when the name is taken,
    leaving two same-name siblings behind. With ``overwrite`` an existing file
    is replaced in place.

    :raises InvalidArgument: If ``path`` is empty.
    :raises NotADirectory: If an ancestor is a file.
    :raises IsADirectory: If ``overwrite`` targets an existing directory.
    """
    target = _as_path(path)
    if target.is_root:
        raise InvalidArgument("path cannot be empty", path=str(path))
    parts = target.parts

    parent = _ensure_parent(backend, root, parts[:-1])
    stream = _as_stream(content)
    if overwrite:
        existing = unique_child(backend, parent.id, target.name, INFO_FIELDS, str(target))
        if existing is not None:
            node = Node(entry=existing, parent_path=parent.path)
            if node.is_dir:
                raise IsADirectory(f"{node.path} is a directory", path=node.path, backend=backend.name)
            return replace_content(backend, node, stream)

    log.debug("uploading %r under %s", target.name, parent.id)
    entry = backend.upload(parent.id, sanitize_name(target.name), stream, INFO_FIELDS)
    return Node(entry=entry, parent_path=parent.path)


def replace_content(backend: Backend, node: Node, content: Content) -> Node:
    """Replace the content of ``node`` in place and return the fresh node."""
    log.debug("replacing content of %s", node.id)
    entry = backend.replace_content(node.id, _as_stream(content), INFO_FIELDS)
    return Node(entry=entry, parent_path=node.parent_path)


# endregion

# region: delete / rename / move / trash


def delete(backend: Backend, root: Node, path: str | TreePath) -> None:
    """Delete the node at ``path``; a directory takes its descendants with it.

    :raises InvalidArgument: If ``path`` is the root.
    """
    node = resolve(backend, root, path, ID_FIELDS)
    _reject_root(node, root, "deleted", path)
    backend.delete(node.id)


def delete_directory(backend: Backend, root: Node, path: str | TreePath) -> None:
    """Like :func:`delete`, but only for directories.

    :raises NotADirectory: If ``path`` is a file.
    :raises InvalidArgument: If ``path`` is the root.
    """
    node = resolve(backend, root, path, _KIND_FIELDS)
    if not node.is_dir:
        raise NotADirectory(f"{node.path} is not a directory", path=node.path, backend=backend.name)
    _reject_root(node, root, "deleted", path)
    backend.delete(node.id)


def rename(backend: Backend, root: Node, path: str | TreePath, new_name: str) -> Node:
    """Give the node at ``path`` a new name within the same parent.

    :raises InvalidArgument: If ``new_name`` is empty or spans several
        segments, or if ``path`` is the root.
    """
    name_parts = TreePath(new_name).parts
    if not name_parts:
        raise InvalidArgument("new name cannot be empty", path=str(path))
    if len(name_parts) > 1:
        raise InvalidArgument("new name must be a single path segment, use move() instead", path=new_name)

    node = resolve(backend, root, path, ID_FIELDS)
    _reject_root(node, root, "renamed", path)
    entry = backend.update(node.id, Patch(name=sanitize_name(name_parts[0])), INFO_FIELDS)
    return Node(entry=entry, parent_path=node.parent_path)


def _descends_from(backend: Backend, node: Node, ancestor_id: str) -> bool:
    """Return ``True`` if ``node`` is ``ancestor_id`` or reaches it through any parent chain."""
    if node.id == ancestor_id:
        return True
    inside, _ = is_in_root(backend, ancestor_id, backend.get(node.id, ANCESTOR_FIELDS))
    return inside


def move(backend: Backend, root: Node, old_path: str | TreePath, new_path: str | TreePath) -> Node:
    """Move the node at ``old_path`` to ``new_path``, renaming it if needed.

    Missing destination directories are created. The parent swap and the
    rename happen in a single backend update.

    :raises InvalidArgument: If ``new_path`` is empty, ``old_path`` is the
        root, or a directory would be moved below itself.
    :raises NotADirectory: If a destination ancestor is a file.
    """
    source_path = _as_path(old_path)
    target_path = _as_path(new_path)
    parts = target_path.parts
    if not parts:
        raise InvalidArgument("new path cannot be empty", path=str(new_path))

    node = resolve(backend, root, source_path, _MOVE_FIELDS)
    _reject_root(node, root, "moved", old_path)
    # Compare names as they are stored, since resolution sanitizes every segment.
    source_names = tuple(map(sanitize_name, source_path.parts))
    if len(parts) > len(source_names) and tuple(map(sanitize_name, parts[: len(source_names)])) == source_names:
        raise InvalidArgument("cannot move a node below itself", path=str(target_path))

    parent = _ensure_parent(backend, root, parts[:-1])
    if node.is_dir and _descends_from(backend, parent, node.id):
        raise InvalidArgument("cannot move a node below itself", path=str(target_path))
    patch = Patch(
        name=sanitize_name(target_path.name),
        add_parents=() if parent.id in node.parents else (parent.id,),
        remove_parents=tuple(p for p in node.entry.parents if p != parent.id),
    )
    log.debug("moving %s to %s as %r", node.id, parent.id, patch.name)
    entry = backend.update(node.id, patch, INFO_FIELDS)
    return Node(entry=entry, parent_path=parent.path)


def trash(backend: Backend, root: Node, path: str | TreePath) -> None:
    """Flag the node at ``path`` as trashed without deleting it.

    :raises InvalidArgument: If ``path`` is the root.
    """
    node = resolve(backend, root, path, ID_FIELDS)
    _reject_root(node, root, "trashed", path)
    backend.update(node.id, Patch(trashed=True), ID_FIELDS)


def restore(backend: Backend, root: Node, path: str | TreePath) -> Node:
    """Take the trashed node whose path under ``root`` is ``path`` out of the trash.

    :raises NotFound: If no trashed node has that path.
    :raises AmbiguousEntry: If several trashed nodes share that path.
    :raises AlreadyExists: If a live sibling already holds the name.
    """
    target = _as_path(path)
    if target.is_root:
        raise InvalidArgument("root cannot be restored", path=str(path))
    wanted = join(*map(sanitize_name, target.parts))
    matches = [node for node in iter_trash(backend, root, "") if node.path == wanted]
    if not matches:
        raise NotFound(f"Not found in trash: {wanted}", path=wanted, backend=backend.name)
    if len(matches) > 1:
        raise AmbiguousEntry(f"Multiple trashed entries found for {wanted}", path=wanted, backend=backend.name)
    node = matches[0]
    for parent_id in node.entry.parents:
        if backend.lookup(parent_id, node.entry.name, ID_FIELDS):
            raise AlreadyExists(f"{wanted} is taken by a live entry", path=wanted, backend=backend.name)
    entry = backend.update(node.id, Patch(trashed=False), INFO_FIELDS)
    return Node(entry=entry, parent_path=node.parent_path)


# endregion

# region: listing


def iter_directory(backend: Backend, root: Node, path: str | TreePath) -> Iterator[Node]:
    """Return an iterator over the direct children of the directory at ``path``.

    :raises NotADirectory: If ``path`` is a file.
    """
    directory = resolve(backend, root, path, _KIND_FIELDS)
    if not directory.is_dir:
        raise NotADirectory(f"{directory.path} is not a directory", path=directory.path, backend=backend.name)
    entries = backend.list_children(directory.id, INFO_FIELDS)
    return (Node(entry=entry, parent_path=directory.path) for entry in entries)


def is_in_root(
    backend: Backend,
    root_id: str,
    entry: Entry,
    base_path: str = "",
    _seen: set[str] | None = None,
) -> tuple[bool, str]:
    """Check whether ``entry`` descends from ``root_id`` by walking its parents upward.

    :returns: ``(True, parent_path)`` where ``parent_path`` is the path from
        the root to the entry's parent, or ``(False, "")``.
    """
    seen = set() if _seen is None else _seen
    for parent_id in entry.parents:
        if parent_id == root_id:
            return True, base_path
        if parent_id in seen:
            continue
        seen.add(parent_id)
        parent = backend.get(parent_id, ANCESTOR_FIELDS)
        inside, parent_path = is_in_root(
            backend, root_id, parent, join(sanitize_name(parent.name), base_path), seen
        )
        if inside:
            return True, parent_path
    return False, ""


def iter_trash(backend: Backend, root: Node, path: str | TreePath) -> Iterator[Node]:
    """Return an iterator over the trashed descendants of the directory at ``path``.

    The store's trash is global, so every trashed entry is checked for
    descent from the scope directory; the others are skipped.
    """
    scope = resolve(backend, root, path, INFO_FIELDS)
    entries = backend.list_trashed(_TRASH_FIELDS)
    return _walk_trash(backend, scope, entries)


def _walk_trash(backend: Backend, scope: Node, entries: list[Entry]) -> Iterator[Node]:
    for entry in entries:
        inside, parent_path = is_in_root(backend, scope.id, entry)
        if inside:
            yield Node(entry=entry, parent_path=join(scope.path, parent_path))


def _visit_all(nodes: Iterator[Node], visit: Visitor, backend: Backend) -> None:
    for node in nodes:
        try:
            visit(node)
        except Exception as exc:
            raise CallbackFailure(error=exc, path=node.path, backend=backend.name) from exc


def list_directory(backend: Backend, root: Node, path: str | TreePath, visit: Visitor) -> None:
    """Call ``visit`` once per direct child of the directory at ``path``.

    :raises CallbackFailure: If ``visit`` raises; iteration stops there.
    """
    _visit_all(iter_directory(backend, root, path), visit, backend)


def list_trash(backend: Backend, root: Node, path: str | TreePath, visit: Visitor) -> None:
    """Call ``visit`` once per trashed descendant of the directory at ``path``.

    :raises CallbackFailure: If ``visit`` raises; iteration stops there.
    """
    _visit_all(iter_trash(backend, root, path), visit, backend)


# endregion
