"""Transport adapter interface and pooled message buffers."""

from __future__ import annotations

import threading
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Adapter(Protocol):
    """The underlying transport: anything that reads, writes and closes."""

    def read(self, size: int) -> bytes:
        """Return up to ``size`` bytes from the transport."""

    def write(self, data: bytes) -> int:
        """Write ``data`` and return how many bytes were written."""

    def close(self) -> None:
        """Release the transport."""


class Buffer:
    """A reference-counted byte buffer owned by a :class:`Pool`."""

    def __init__(self, pool: Pool) -> None:
        self.data = bytearray(pool.buf_size)
        self.size = pool.buf_size
        self.used = 0
        self.refs = 0
        self.pool = pool
        self._lock = threading.Lock()

    def ref(self) -> None:
        with self._lock:
            self.refs += 1

    def unref(self) -> None:
        with self._lock:
            self.refs -= 1
            if self.refs < 1:
                self.used = 0


class Pool:
    """A pool of equally sized buffers that reuses returned buffers."""

    def __init__(self, id: str, buf_size: int, ii: Any = None) -> None:
        self.id = id
        self.buf_size = buf_size
        self.ii = ii
        self._store: list[Buffer] = []
        self._lock = threading.Lock()

    def get(self) -> Buffer:
        """Take a buffer from the pool, allocating one if none is free."""
        with self._lock:
            buf = self._store.pop() if self._store else None
        if buf is None:
            buf = self._allocate()
        buf.ref()
        return buf

    def put(self, buf: Buffer) -> None:
        """Return ``buf`` to the pool for reuse."""
        with self._lock:
            self._store.append(buf)

    def _allocate(self) -> Buffer:
        if self.ii is not None:
            self.ii.allocate(self.id)
        return Buffer(self)