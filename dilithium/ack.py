"""Encoding and decoding of acknowledgement regions.

A single acknowledged sequence number is written as one big-endian int32 with
its high bit clear. A series starts with one byte whose high bit is set and
whose low seven bits give the number of entries. Each entry is an int32; if
its high bit is set it opens a range and is followed by a second int32
holding the upper bound.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterable

ACK_SERIES_MARKER = 0x80
SEQUENCE_RANGE_MARKER = 0x80000000
SEQUENCE_RANGE_INVERT = 0xFFFFFFFF ^ SEQUENCE_RANGE_MARKER
MAX_ACK_SERIES = 127

_UINT32 = struct.Struct(">I")
_INT32 = struct.Struct(">i")


class CodecError(ValueError):
    """Raised when a wire structure cannot be encoded or decoded."""


@dataclass(frozen=True)
class Ack:
    """An acknowledged sequence number, or an inclusive range of them."""

    start: int
    end: int


def _word(value: int) -> bytes:
    return _UINT32.pack(value & 0xFFFFFFFF)


def encode_acks(acks: Iterable[Ack], max_size: int) -> bytes:
    """Encode ``acks`` into at most ``max_size`` bytes."""
    acks = list(acks)
    if not acks:
        return b""
    if len(acks) > MAX_ACK_SERIES:
        raise CodecError(f"ack series too large [{len(acks)} > {MAX_ACK_SERIES}]")

    if len(acks) == 1 and acks[0].start == acks[0].end:
        if max_size < 4:
            raise CodecError(f"insufficient buffer to encode ack [{max_size} < 4]")
        return _word(acks[0].start & SEQUENCE_RANGE_INVERT)

    if max_size < 1:
        raise CodecError(f"insufficient buffer to encode ack series [{max_size} < 1]")
    out = bytearray([ACK_SERIES_MARKER + len(acks)])
    for ack in acks:
        if ack.start == ack.end:
            words = (ack.start & SEQUENCE_RANGE_INVERT,)
        else:
            words = (ack.start | SEQUENCE_RANGE_MARKER, ack.end & SEQUENCE_RANGE_INVERT)
        for word in words:
            if len(out) + 4 > max_size:
                raise CodecError(
                    f"insufficient buffer to encode ack series [{max_size} < {len(out)}]"
                )
            out += _word(word)
    return bytes(out)


def _read_word(data: bytes, offset: int) -> int:
    if offset + 4 > len(data):
        raise CodecError(f"short ack series [{len(data)} < {offset + 4}]")
    return _UINT32.unpack_from(data, offset)[0]


def decode_acks(data: bytes) -> tuple[list[Ack], int]:
    """Decode an ack region, returning the acks and the number of bytes consumed."""
    data = bytes(data)
    if len(data) < 4:
        raise CodecError(f"short ack buffer [{len(data)} < 4]")

    if not data[0] & ACK_SERIES_MARKER:
        seq = _INT32.unpack_from(data, 0)[0]
        return [Ack(seq, seq)], 4

    count = data[0] ^ ACK_SERIES_MARKER
    offset = 1
    acks: list[Ack] = []
    for _ in range(count):
        first = _read_word(data, offset)
        start = first & SEQUENCE_RANGE_INVERT
        if first & SEQUENCE_RANGE_MARKER:
            offset += 4
            second = _read_word(data, offset)
            acks.append(Ack(start, second & SEQUENCE_RANGE_INVERT))
        else:
            acks.append(Ack(start, start))
        offset += 4
    return acks, offset