"""Type aliases used throughout remote_tree."""

from __future__ import annotations

from typing import TYPE_CHECKING, BinaryIO, Callable

if TYPE_CHECKING:
    from remote_tree._node import Node

Content = BinaryIO | bytes
Visitor = Callable[["Node"], object]
