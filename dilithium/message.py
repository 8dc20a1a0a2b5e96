"""Wire messages: a seven byte header followed by a typed payload.

Header layout: int32 sequence number, one byte of message type and flags,
uint16 payload length, all big-endian.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum, IntFlag
from typing import Iterable

from dilithium.ack import Ack, CodecError, decode_acks, encode_acks
from dilithium.hello import Hello, decode_hello, encode_hello
from dilithium.memory import Adapter, Buffer, Pool

DATA_START = 7
MESSAGE_TYPE_MASK = 0x7

_INT32 = struct.Struct(">i")
_UINT16 = struct.Struct(">H")


class MessageType(IntEnum):
    HELLO = 0
    ACK = 1
    DATA = 2
    KEEPALIVE = 3
    CLOSE = 4


class MessageFlag(IntFlag):
    RTT = 0x8
    INLINE_ACK = 0x10


def flags_string(mt: int) -> str:
    """Describe the flags set in a raw message type byte."""
    flags = []
    if mt & MessageFlag.INLINE_ACK:
        flags.append("INLINE_ACK")
    if mt & MessageFlag.RTT:
        flags.append("RTT")
    return " ".join(flags)


@dataclass
class WireMessage:
    """A message header bound to the buffer holding its encoded form."""

    seq: int
    mt: int
    buf: Buffer

    def message_type(self) -> MessageType | int:
        value = self.mt & MESSAGE_TYPE_MASK
        try:
            return MessageType(value)
        except ValueError:
            return value

    def set_flag(self, flag: MessageFlag) -> None:
        self.mt |= int(flag)

    def has_flag(self, flag: MessageFlag) -> bool:
        return bool(self.mt & flag)

    def clear_flag(self, flag: MessageFlag) -> None:
        self.mt ^= int(flag)

    def _expect(self, expected: MessageType) -> None:
        actual = self.message_type()
        if actual != expected:
            raise CodecError(
                f"unexpected message type [{int(actual)}], expected {expected.name}"
            )

    def encode_header(self, data_size: int) -> WireMessage:
        """Write the header for a payload of ``data_size`` bytes."""
        if data_size > 0xFFFF or self.buf.size < DATA_START + data_size:
            raise CodecError(
                f"short buffer for encode [{self.buf.size} < {DATA_START + data_size}]"
            )
        _INT32.pack_into(self.buf.data, 0, self.seq)
        self.buf.data[4] = self.mt & 0xFF
        _UINT16.pack_into(self.buf.data, 5, data_size)
        self.buf.used = DATA_START + data_size
        return self

    def _read_rtt(self) -> int:
        if self.buf.used < DATA_START + 2:
            raise CodecError(
                f"short buffer for rtt decode [{self.buf.used} < {DATA_START + 2}]"
            )
        return _UINT16.unpack_from(self.buf.data, DATA_START)[0]

    def as_hello(self) -> tuple[Hello, list[Ack]]:
        """Decode a HELLO payload and any inline ack."""
        self._expect(MessageType.HELLO)
        acks: list[Ack] = []
        offset = 0
        if self.has_flag(MessageFlag.INLINE_ACK):
            acks, offset = decode_acks(self.buf.data[DATA_START:])
        hello, _ = decode_hello(self.buf.data[DATA_START + offset:])
        return hello, acks

    def as_ack(self) -> tuple[list[Ack], int, int | None]:
        """Decode an ACK payload: acks, receiver portal size and optional rtt."""
        self._expect(MessageType.ACK)
        offset = 0
        rtt = None
        if self.has_flag(MessageFlag.RTT):
            rtt = self._read_rtt()
            offset += 2
        acks, ack_size = decode_acks(self.buf.data[DATA_START + offset:])
        offset += ack_size
        if self.buf.used < DATA_START + offset + 4:
            raise CodecError(
                f"short buffer for rxPortalSize decode [{self.buf.used} < {DATA_START + offset + 4}]"
            )
        rx_portal_size = _INT32.unpack_from(self.buf.data, DATA_START + offset)[0]
        return acks, rx_portal_size, rtt

    def as_data(self) -> tuple[bytes, int | None]:
        """Decode a DATA payload and its optional rtt probe."""
        self._expect(MessageType.DATA)
        rtt_size = 0
        rtt = None
        if self.has_flag(MessageFlag.RTT):
            rtt = self._read_rtt()
            rtt_size = 2
        return bytes(self.buf.data[DATA_START + rtt_size:self.buf.used]), rtt

    def as_data_size(self) -> int:
        """Return the length of a DATA payload."""
        self._expect(MessageType.DATA)
        rtt_size = 2 if self.has_flag(MessageFlag.RTT) else 0
        return self.buf.used - (DATA_START + rtt_size)

    def as_keepalive(self) -> int:
        """Decode a KEEPALIVE payload, returning the receiver portal size."""
        self._expect(MessageType.KEEPALIVE)
        if self.buf.used < DATA_START + 4:
            raise CodecError(
                f"short buffer for keepalive decode [{self.buf.used} < {DATA_START + 4}]"
            )
        return _INT32.unpack_from(self.buf.data, DATA_START)[0]


def decode_header(buf: Buffer) -> WireMessage:
    """Interpret the header at the start of ``buf``."""
    size = _UINT16.unpack_from(buf.data, 5)[0]
    if DATA_START + size > buf.used:
        raise CodecError(f"short buffer read [{buf.size} != {DATA_START + size}]")
    return WireMessage(
        seq=_INT32.unpack_from(buf.data, 0)[0],
        mt=buf.data[4],
        buf=buf,
    )


def read_wire_message(adapter: Adapter, pool: Pool) -> WireMessage:
    """Read one message from ``adapter`` into a buffer taken from ``pool``."""
    buf = pool.get()
    data = adapter.read(buf.size)
    if len(data) > buf.size:
        raise CodecError(f"oversized read [{len(data)} > {buf.size}]")
    buf.data[0:len(data)] = data
    buf.used = len(data)
    return decode_header(buf)


def write_wire_message(wm: WireMessage, adapter: Adapter) -> None:
    """Write the encoded form of ``wm`` to ``adapter``."""
    if wm.buf.used < DATA_START:
        raise CodecError("truncated buffer")
    n = adapter.write(bytes(wm.buf.data[:wm.buf.used]))
    if n != wm.buf.used:
        raise CodecError(f"short write [{n} != {wm.buf.used}]")


def _write_rtt(wm: WireMessage, rtt: int | None) -> int:
    if rtt is None:
        return 0
    if wm.buf.size < DATA_START + 2:
        raise CodecError(f"short buffer for rtt [{wm.buf.size} < {DATA_START + 2}]")
    wm.set_flag(MessageFlag.RTT)
    _UINT16.pack_into(wm.buf.data, DATA_START, rtt)
    return 2


def _put(wm: WireMessage, offset: int, payload: bytes) -> None:
    wm.buf.data[offset:offset + len(payload)] = payload


def new_hello(seq: int, hello: Hello, ack: Ack | None, pool: Pool) -> WireMessage:
    """Build a HELLO message, optionally carrying an inline ack."""
    wm = WireMessage(seq=seq, mt=MessageType.HELLO, buf=pool.get())
    available = wm.buf.size - DATA_START
    ack_bytes = b""
    if ack is not None:
        wm.set_flag(MessageFlag.INLINE_ACK)
        ack_bytes = encode_acks([ack], available)
        _put(wm, DATA_START, ack_bytes)
    hello_bytes = encode_hello(hello, available - len(ack_bytes))
    _put(wm, DATA_START + len(ack_bytes), hello_bytes)
    return wm.encode_header(len(ack_bytes) + len(hello_bytes))


def new_ack(
    acks: Iterable[Ack], rx_portal_size: int, rtt: int | None, pool: Pool
) -> WireMessage:
    """Build an ACK message carrying acks, the receiver portal size and an rtt echo."""
    wm = WireMessage(seq=-1, mt=MessageType.ACK, buf=pool.get())
    rtt_size = _write_rtt(wm, rtt)
    acks = list(acks)
    ack_bytes = b""
    if acks:
        ack_bytes = encode_acks(acks, wm.buf.size - DATA_START - rtt_size)
        _put(wm, DATA_START + rtt_size, ack_bytes)
    offset = DATA_START + rtt_size + len(ack_bytes)
    if offset + 4 > wm.buf.size:
        raise CodecError(f"short buffer for ack [{wm.buf.size} < {offset + 4}]")
    _INT32.pack_into(wm.buf.data, offset, rx_portal_size)
    return wm.encode_header(rtt_size + len(ack_bytes) + 4)


def new_data(seq: int, rtt: int | None, data: bytes, pool: Pool) -> WireMessage:
    """Build a DATA message, optionally carrying an rtt probe."""
    wm = WireMessage(seq=seq, mt=MessageType.DATA, buf=pool.get())
    rtt_size = _write_rtt(wm, rtt)
    if wm.buf.size < DATA_START + rtt_size + len(data):
        raise CodecError(
            f"short buffer for data [{wm.buf.size} < {DATA_START + rtt_size + len(data)}]"
        )
    _put(wm, DATA_START + rtt_size, bytes(data))
    return wm.encode_header(rtt_size + len(data))


def new_keepalive(rx_portal_size: int, pool: Pool) -> WireMessage:
    """Build a KEEPALIVE message carrying the receiver portal size."""
    wm = WireMessage(seq=-1, mt=MessageType.KEEPALIVE, buf=pool.get())
    if wm.buf.size < DATA_START + 4:
        raise CodecError(f"short buffer for keepalive [{wm.buf.size} < {DATA_START + 4}]")
    _INT32.pack_into(wm.buf.data, DATA_START, rx_portal_size)
    return wm.encode_header(4)


def new_close(seq: int, pool: Pool) -> WireMessage:
    """Build a CLOSE message."""
    return WireMessage(seq=seq, mt=MessageType.CLOSE, buf=pool.get()).encode_header(0)