"""TreePath — immutable, normalized path value object and name sanitization."""

from __future__ import annotations

from typing import Final

from remote_tree._errors import InvalidArgument

SEPARATORS: Final = ("/", "\\")
# Characters the store cannot hold in a name: both separators and the query quote.
_RESERVED: Final = frozenset({*SEPARATORS, "'"})
PLACEHOLDER: Final = "-"


def sanitize_name(name: str) -> str:
    """Replace reserved characters in a single name with :data:`PLACEHOLDER`.

    Example: ``sanitize_name("it's/here")`` returns ``"it-s-here"``.
    """
    return "".join(PLACEHOLDER if c in _RESERVED else c for c in name)


def split(raw: str) -> tuple[str, ...]:
    """Split ``raw`` into segments, dropping empty ones.

    ``"/a//b/"``, ``"a/b"`` and ``"a\\b"`` all give ``("a", "b")``.

    :raises InvalidArgument: If the path contains a null byte.
    """
    if "\0" in raw:
        raise InvalidArgument("Path contains null byte", path=raw)
    return tuple(segment for segment in raw.replace("\\", "/").split("/") if segment)


def join(*parts: str) -> str:
    """Join path fragments with ``/``, ignoring empty fragments."""
    return "/".join(p for p in parts if p)


class TreePath:
    """An immutable, normalized path relative to a driver's root.

    The empty path denotes the root itself.

    :param raw: The raw path string to normalize.
    :raises InvalidArgument: If the path contains a null byte.
    """

    __slots__ = ("_parts",)
    _parts: Final[tuple[str, ...]]  # type: ignore[misc]

    def __init__(self, raw: str = "") -> None:
        object.__setattr__(self, "_parts", split(raw))

    @property
    def parts(self) -> tuple[str, ...]:
        """Tuple of path segments."""
        return self._parts

    @property
    def is_root(self) -> bool:
        return not self._parts

    @property
    def name(self) -> str:
        """Final segment of the path, or an empty string for the root."""
        return self._parts[-1] if self._parts else ""

    def __len__(self) -> int:
        return len(self._parts)

    def __str__(self) -> str:
        return join(*self._parts)

    def __repr__(self) -> str:
        return f"TreePath({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, TreePath):
            return self._parts == other._parts
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._parts)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError(f"TreePath is immutable: cannot set '{name}'")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"TreePath is immutable: cannot delete '{name}'")
