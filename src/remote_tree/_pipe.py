"""Bounded in-process byte channel between a transfer thread and its consumer."""

from __future__ import annotations

import collections
import io
import threading
from typing import Optional

DEFAULT_BUFFER_SIZE = 4 * 1024 * 1024


class Pipe:
    """In-process byte channel with a bounded buffer.

    The producer blocks while ``limit`` bytes are queued. Closing the
    writer signals end-of-stream, optionally with an error the reader
    raises once the queued bytes are drained. Closing the reader makes
    further writes fail with :class:`BrokenPipeError`.
    """

    def __init__(self, limit: int = DEFAULT_BUFFER_SIZE) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        self._limit = limit
        self._chunks: collections.deque[bytes] = collections.deque()
        self._buffered = 0
        self._writer_closed = False
        self._reader_closed = False
        self._error: Optional[BaseException] = None
        self._cond = threading.Condition()

    def write(self, data: bytes) -> int:
        view = memoryview(data)
        with self._cond:
            while view:
                if self._writer_closed:
                    raise ValueError("write to closed pipe")
                if self._reader_closed:
                    raise BrokenPipeError("pipe reader is closed")
                room = self._limit - self._buffered
                if room <= 0:
                    self._cond.wait()
                    continue
                chunk = bytes(view[:room])
                self._chunks.append(chunk)
                self._buffered += len(chunk)
                view = view[len(chunk) :]
                self._cond.notify_all()
        return len(data)

    def read(self, size: int = -1) -> bytes:
        """Return up to ``size`` queued bytes, waiting for at least one.

        Returns ``b""`` at end-of-stream.

        :raises BaseException: The error the writer closed with, after
            every byte written before it has been read.
        """
        with self._cond:
            while not self._chunks and not self._writer_closed:
                self._cond.wait()
            if not self._chunks and self._error is not None:
                raise self._error
            out = bytearray()
            while self._chunks and (size < 0 or len(out) < size):
                chunk = self._chunks.popleft()
                want = len(chunk) if size < 0 else size - len(out)
                if len(chunk) > want:
                    self._chunks.appendleft(chunk[want:])
                    chunk = chunk[:want]
                out += chunk
                self._buffered -= len(chunk)
            self._cond.notify_all()
            return bytes(out)

    def close_writer(self, error: Optional[BaseException] = None) -> None:
        with self._cond:
            self._writer_closed = True
            self._error = error
            self._cond.notify_all()

    def close_reader(self) -> None:
        with self._cond:
            self._reader_closed = True
            self._chunks.clear()
            self._buffered = 0
            self._cond.notify_all()


class PipeReader(io.RawIOBase):
    """Consumer end of a :class:`Pipe` as a binary stream.

    Closing the stream closes the pipe's reader, so a producer still
    writing stops with :class:`BrokenPipeError`.
    """

    def __init__(self, pipe: Pipe) -> None:
        super().__init__()
        self._pipe = pipe

    def readable(self) -> bool:
        return True

    def read(self, size: Optional[int] = -1) -> bytes:
        # Short reads only happen at end-of-stream.
        if size is None or size < 0:
            return self.readall()
        out = bytearray()
        while len(out) < size:
            chunk = self._pipe.read(size - len(out))
            if not chunk:
                break
            out += chunk
        return bytes(out)

    def readall(self) -> bytes:
        out = bytearray()
        while chunk := self._pipe.read():
            out += chunk
        return bytes(out)

    def readinto(self, buffer: bytearray | memoryview) -> int:  # type: ignore[override]
        data = self.read(len(buffer))
        buffer[: len(data)] = data
        return len(data)

    def close(self) -> None:
        if not self.closed:
            self._pipe.close_reader()
        super().close()
