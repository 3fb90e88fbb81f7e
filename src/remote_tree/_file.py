"""Streaming file handles over whole-object downloads and uploads."""

from __future__ import annotations

import abc
import enum
import io
import logging
import threading
from typing import TYPE_CHECKING, BinaryIO, Callable, Optional

from remote_tree._errors import InvalidArgument
from remote_tree._pipe import DEFAULT_BUFFER_SIZE, Pipe, PipeReader

if TYPE_CHECKING:
    from types import TracebackType

    from remote_tree._node import Node

log = logging.getLogger(__name__)


class OpenMode(enum.Flag):
    """How :meth:`Driver.open` opens a path."""

    READ = enum.auto()
    WRITE = enum.auto()
    CREATE = enum.auto()

    def validate(self) -> None:
        """Reject combinations that are neither read-only nor write-only.

        :raises InvalidArgument: If both or neither of READ and WRITE are set.
        """
        if bool(self & OpenMode.READ) == bool(self & OpenMode.WRITE):
            raise InvalidArgument(f"open mode must contain exactly one of READ or WRITE, got {self!r}")


class _Once:
    """One-shot initialization guard that remembers the outcome.

    Every caller of :meth:`run` observes the same error, if any.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = False
        self._error: Optional[BaseException] = None

    def run(self, func: Callable[[], None]) -> None:
        with self._lock:
            if not self._done:
                self._done = True
                try:
                    func()
                except Exception as exc:
                    self._error = exc
        if self._error is not None:
            raise self._error


class File(abc.ABC):
    """A read-only or write-only handle on a remote file."""

    _closed = False

    @property
    @abc.abstractmethod
    def info(self) -> Optional[Node]:
        """Node the handle refers to; ``None`` until a created file is uploaded."""

    @abc.abstractmethod
    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes, or everything when ``size`` is negative."""

    @abc.abstractmethod
    def write(self, data: bytes) -> int:
        """Write ``data`` and return the number of bytes accepted."""

    @abc.abstractmethod
    def close(self) -> None:
        """Finish the transfer. Idempotent."""

    @property
    def closed(self) -> bool:
        return self._closed

    def readable(self) -> bool:
        return False

    def writable(self) -> bool:
        return False

    def __enter__(self) -> File:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class ReadFile(File):
    """Read handle that opens the download stream on first use.

    :param node: The file to read.
    :param download: Opens the download stream; called at most once.
    """

    def __init__(self, node: Node, download: Callable[[], BinaryIO]) -> None:
        self._node = node
        self._download = download
        self._once = _Once()
        self._reader: Optional[BinaryIO] = None

    def __repr__(self) -> str:
        return f"ReadFile(path={self._node.path!r})"

    @property
    def info(self) -> Node:
        return self._node

    def readable(self) -> bool:
        return True

    def _open(self) -> None:
        log.debug("opening download stream for %s", self._node.id)
        self._reader = self._download()

    def _get_reader(self) -> BinaryIO:
        self._once.run(self._open)
        assert self._reader is not None
        return self._reader

    def read(self, size: int = -1) -> bytes:
        if self._closed:
            raise ValueError("I/O operation on closed file")
        return self._get_reader().read(size)

    def write(self, data: bytes) -> int:
        raise io.UnsupportedOperation("file is not open for writing, open it with OpenMode.WRITE")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._reader is not None:
            self._reader.close()


class WriteFile(File):
    """Write handle feeding a background upload through a bounded pipe.

    The upload task starts on the first :meth:`write` (or on :meth:`close`
    when nothing was written) and reads the pipe until :meth:`close`
    signals end-of-stream. :meth:`close` waits for the task and raises
    its error, so callers must check it.

    :param path: Path being written, for naming and logging.
    :param node: Existing file whose content is replaced, or ``None`` to create one.
    :param upload: Runs the upload from a binary stream and returns the fresh node.
    :param buffer_size: Bytes the pipe holds before writes block.
    """

    def __init__(
        self,
        path: str,
        node: Optional[Node],
        upload: Callable[[BinaryIO], Node],
        *,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ) -> None:
        self._path = path
        self._node = node
        self._upload = upload
        self._buffer_size = buffer_size
        self._lock = threading.Lock()
        self._pipe: Optional[Pipe] = None
        self._thread: Optional[threading.Thread] = None
        self._done = threading.Event()
        self._error: Optional[BaseException] = None

    def __repr__(self) -> str:
        return f"WriteFile(path={self._path!r})"

    @property
    def info(self) -> Optional[Node]:
        return self._node

    def writable(self) -> bool:
        return True

    def _run(self, pipe: Pipe) -> None:
        log.debug("upload of %r started", self._path)
        try:
            self._node = self._upload(PipeReader(pipe))
        except Exception as exc:
            log.debug("upload of %r failed: %s", self._path, exc)
            self._error = exc
        finally:
            pipe.close_reader()
            self._done.set()
        log.debug("upload of %r finished", self._path)

    def _get_writer(self) -> Pipe:
        with self._lock:
            if self._pipe is None:
                self._pipe = Pipe(self._buffer_size)
                self._thread = threading.Thread(
                    target=self._run,
                    args=(self._pipe,),
                    name=f"remote-tree-upload:{self._path}",
                    daemon=True,
                )
                self._thread.start()
            pipe = self._pipe
        if self._error is not None:
            raise self._error
        return pipe

    def read(self, size: int = -1) -> bytes:
        raise io.UnsupportedOperation("file is not open for reading, open it with OpenMode.READ")

    def write(self, data: bytes) -> int:
        if self._closed:
            raise ValueError("I/O operation on closed file")
        pipe = self._get_writer()
        try:
            return pipe.write(data)
        except BrokenPipeError:
            self._done.wait()
            if self._error is not None:
                raise self._error from None
            raise

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        pipe = self._pipe
        if pipe is None:
            try:
                pipe = self._get_writer()
            except Exception:
                self._done.wait()
                raise
        pipe.close_writer()
        self._done.wait()
        if self._thread is not None:
            self._thread.join()
        if self._error is not None:
            raise self._error
