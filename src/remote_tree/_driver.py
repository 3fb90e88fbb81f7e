"""Driver — the path-based facade over a backend."""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING, BinaryIO

from remote_tree import _tree
from remote_tree._errors import BackingStoreFailure, InvalidArgument, IsADirectory, NotADirectory, NotFound
from remote_tree._file import OpenMode, ReadFile, WriteFile
from remote_tree._node import HASH_FIELDS, INFO_FIELDS, Node
from remote_tree._path import TreePath
from remote_tree._pipe import DEFAULT_BUFFER_SIZE
from remote_tree._resolver import resolve

if TYPE_CHECKING:
    from collections.abc import Iterator
    from types import TracebackType

    from remote_tree._backend import Backend
    from remote_tree._file import File
    from remote_tree._node import Fields
    from remote_tree._types import Content, Visitor

log = logging.getLogger(__name__)


class HashMethod(enum.Enum):
    """Content hashes :meth:`Driver.get_hash` can return."""

    MD5 = "md5"


class Driver:
    """Conventional ``"Folder1/Folder2/File"`` access to a backend.

    All paths are resolved relative to the configured root node. Leading,
    trailing and repeated separators are ignored; the empty path is the root.

    :param backend: The backend to delegate I/O to.
    :param root_path: Directory, relative to the store's native root, to use as root.
    :param owns_backend: Whether :meth:`close` also closes ``backend``. Pass
        ``False`` when the backend is shared with other drivers.
    :raises NotADirectory: If ``root_path`` is a file.
    """

    def __init__(self, backend: Backend, root_path: str = "", *, owns_backend: bool = True) -> None:
        self._backend = backend
        self._owns_backend = owns_backend
        self._root: Node = Node(entry=backend.root(INFO_FIELDS), is_root=True)
        if root_path:
            self.set_root(root_path)

    def __repr__(self) -> str:
        return f"Driver(backend={self._backend.name!r}, root={self._root.id!r})"

    def close(self) -> None:
        """Close the underlying backend if this driver owns it."""
        if self._owns_backend:
            self._backend.close()

    def __enter__(self) -> Driver:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def root(self) -> Node:
        """The node all paths are resolved against."""
        return self._root

    def set_root(self, path: str) -> Node:
        """Change the root to ``path``, given relative to the store's native root.

        :raises NotADirectory: If ``path`` is a file.
        """
        native_root = Node(entry=self._backend.root(INFO_FIELDS), is_root=True)
        node = resolve(self._backend, native_root, path, INFO_FIELDS)
        if not node.is_dir:
            raise NotADirectory(f"{node.path} is not a directory", path=node.path, backend=self._backend.name)
        self._root = node.as_root()
        log.info("root set to %r (%s)", path, node.id)
        return self._root

    def stat(self, path: str) -> Node:
        """Return the node at ``path``.

        :raises NotFound: If the path does not exist.
        """
        return resolve(self._backend, self._root, path, INFO_FIELDS)

    def exists(self, path: str) -> bool:
        """Check if ``path`` resolves to a node. Never raises ``NotFound``."""
        try:
            self.stat(path)
        except NotFound:
            return False
        return True

    def iter_directory(self, path: str) -> Iterator[Node]:
        """Iterate over the direct children of the directory at ``path``.

        :raises NotADirectory: If ``path`` is a file.
        """
        return _tree.iter_directory(self._backend, self._root, path)

    def list_directory(self, path: str, visit: Visitor) -> None:
        """Call ``visit`` for each direct child of the directory at ``path``.

        :raises NotADirectory: If ``path`` is a file.
        :raises CallbackFailure: If ``visit`` raises.
        """
        _tree.list_directory(self._backend, self._root, path, visit)

    def make_directory(self, path: str) -> Node:
        """Create the directory at ``path`` along with missing ancestors.

        Example: ``make_directory("Pictures/Holidays")`` creates both levels.

        :raises NotADirectory: If an ancestor is a file.
        """
        return _tree.make_directory(self._backend, self._root, path)

    def delete(self, path: str) -> None:
        """Delete a file or a directory with its descendants.

        :raises InvalidArgument: If ``path`` is the root.
        """
        _tree.delete(self._backend, self._root, path)

    def delete_directory(self, path: str) -> None:
        """Delete a directory and its descendants.

        :raises NotADirectory: If ``path`` is a file.
        :raises InvalidArgument: If ``path`` is the root.
        """
        _tree.delete_directory(self._backend, self._root, path)

    def get(self, path: str) -> tuple[Node, BinaryIO]:
        """Return the node at ``path`` and a stream over its content.

        :raises IsADirectory: If ``path`` is a directory.
        """
        node = self._require_file(path)
        return node, self._backend.download(node.id)

    def get_bytes(self, path: str) -> bytes:
        """Return the full content of the file at ``path``."""
        _, stream = self.get(path)
        with stream:
            return stream.read()

    def get_hash(self, path: str, method: HashMethod | str = HashMethod.MD5) -> tuple[Node, bytes]:
        """Return the node at ``path`` and the digest of its content.

        :raises InvalidArgument: If ``method`` is not supported.
        :raises IsADirectory: If ``path`` is a directory.
        """
        try:
            method = HashMethod(method)
        except ValueError:
            raise InvalidArgument(f"Unknown hash method {method!r}", path=path) from None
        node = self._require_file(path, HASH_FIELDS)
        if not node.checksum:
            raise BackingStoreFailure(
                f"No {method.value} checksum available", path=path, backend=self._backend.name
            )
        return node, bytes.fromhex(node.checksum)

    def put(self, path: str, content: Content, *, overwrite: bool = False) -> Node:
        """Upload ``content`` to ``path``, creating missing directories.

        Without ``overwrite``, putting to an existing name adds a second entry
        with that name rather than replacing the first.

        :raises InvalidArgument: If ``path`` is empty.
        :raises NotADirectory: If an ancestor is a file.
        """
        return _tree.put_file(self._backend, self._root, path, content, overwrite=overwrite)

    def rename(self, path: str, new_name: str) -> Node:
        """Rename the node at ``path`` within its directory.

        :raises InvalidArgument: If ``new_name`` is empty or contains a separator,
            or if ``path`` is the root.
        """
        return _tree.rename(self._backend, self._root, path, new_name)

    def move(self, old_path: str, new_path: str) -> Node:
        """Move (and possibly rename) the node at ``old_path`` to ``new_path``.

        Example: ``move("Folder1/File1", "Folder2/File2")``.

        :raises InvalidArgument: If ``new_path`` is empty or ``old_path`` is the root.
        :raises NotADirectory: If a destination ancestor is a file.
        """
        return _tree.move(self._backend, self._root, old_path, new_path)

    def trash(self, path: str) -> None:
        """Move the node at ``path`` to the trash.

        :raises InvalidArgument: If ``path`` is the root.
        """
        _tree.trash(self._backend, self._root, path)

    def restore(self, path: str) -> Node:
        """Take the node that lived at ``path`` out of the trash.

        :raises NotFound: If nothing trashed had that path.
        :raises AlreadyExists: If a live entry now holds that path.
        """
        return _tree.restore(self._backend, self._root, path)

    def iter_trash(self, path: str = "") -> Iterator[Node]:
        """Iterate over the trashed descendants of the directory at ``path``."""
        return _tree.iter_trash(self._backend, self._root, path)

    def list_trash(self, path: str, visit: Visitor) -> None:
        """Call ``visit`` for each trashed descendant of the directory at ``path``.

        :raises CallbackFailure: If ``visit`` raises.
        """
        _tree.list_trash(self._backend, self._root, path, visit)

    def open(self, path: str, mode: OpenMode = OpenMode.READ, *, buffer_size: int = DEFAULT_BUFFER_SIZE) -> File:
        """Open the file at ``path`` for streaming reads or writes.

        Reading never creates. Writing replaces the content of an existing
        file, or uploads a new one when ``mode`` includes ``CREATE``. No
        transfer starts before the first read or write.

        :raises InvalidArgument: If ``mode`` is not exactly one of READ or WRITE.
        :raises NotFound: If the path does not exist and the file is not created.
        :raises IsADirectory: If ``path`` is a directory.
        """
        mode.validate()
        root = self._root
        if mode & OpenMode.READ:
            node = self._require_file(path)
            return ReadFile(node, lambda: self._backend.download(node.id))

        try:
            existing = self._require_file(path)
        except NotFound:
            if not mode & OpenMode.CREATE:
                raise
            return WriteFile(
                str(TreePath(path)),
                None,
                lambda stream: _tree.put_file(self._backend, root, path, stream),
                buffer_size=buffer_size,
            )
        return WriteFile(
            existing.path,
            existing,
            lambda stream: _tree.replace_content(self._backend, existing, stream),
            buffer_size=buffer_size,
        )

    def _require_file(self, path: str, fields: Fields = INFO_FIELDS) -> Node:
        node = resolve(self._backend, self._root, path, fields)
        if node.is_dir:
            raise IsADirectory(f"{node.path} is a directory", path=str(TreePath(path)), backend=self._backend.name)
        return node
