"""The HELLO payload exchanged when a connection is established."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from dilithium.ack import CodecError

_UINT32 = struct.Struct(">I")


@dataclass(frozen=True)
class Hello:
    """Connection greeting carrying the protocol version."""

    version: int


def encode_hello(hello: Hello, max_size: int) -> bytes:
    """Encode ``hello`` into at most ``max_size`` bytes."""
    if max_size < 4:
        raise CodecError(f"hello too large [{max_size} < 4]")
    return _UINT32.pack(hello.version)


def decode_hello(data: bytes) -> tuple[Hello, int]:
    """Decode a hello, returning it and the number of bytes consumed."""
    if len(data) < 5:
        raise CodecError(f"short hello decode buffer [{len(data)} < 4]")
    return Hello(_UINT32.unpack_from(bytes(data), 0)[0]), 4