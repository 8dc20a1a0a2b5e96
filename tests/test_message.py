from collections import deque

import pytest

from dilithium.ack import Ack, CodecError
from dilithium.hello import Hello
from dilithium.memory import Pool
from dilithium.message import (
    MessageFlag,
    MessageType,
    WireMessage,
    decode_header,
    flags_string,
    new_ack,
    new_close,
    new_data,
    new_hello,
    new_keepalive,
    read_wire_message,
    write_wire_message,
)


class LoopAdapter:
    def __init__(self, short=False):
        self.frames = deque()
        self.short = short

    def read(self, size):
        return self.frames.popleft()[:size]

    def write(self, data):
        self.frames.append(bytes(data))
        return len(data) - 1 if self.short else len(data)

    def close(self):
        pass


@pytest.fixture
def pool():
    return Pool("test", 256)


def transfer(wm):
    adapter = LoopAdapter()
    write_wire_message(wm, adapter)
    return read_wire_message(adapter, Pool("rx", 256))


def test_close_header_bytes(pool):
    wm = new_close(3, pool)
    assert bytes(wm.buf.data[:wm.buf.used]) == bytes([0, 0, 0, 3, MessageType.CLOSE, 0, 0])


def test_data_round_trip(pool):
    payload = b"hello, world"
    rx = transfer(new_data(17, None, payload, pool))
    assert rx.seq == 17
    assert rx.message_type() == MessageType.DATA
    assert rx.as_data() == (payload, None)
    assert rx.as_data_size() == len(payload)


def test_data_with_rtt_round_trip(pool):
    payload = b"x" * 100
    rx = transfer(new_data(5, 321, payload, pool))
    assert rx.has_flag(MessageFlag.RTT)
    assert rx.as_data() == (payload, 321)
    assert rx.as_data_size() == len(payload)


def test_ack_round_trip(pool):
    acks = [Ack(1, 1), Ack(3, 7)]
    rx = transfer(new_ack(acks, 1024, 55, pool))
    assert rx.seq == -1
    assert rx.as_ack() == (acks, 1024, 55)


def test_ack_without_rtt_round_trip(pool):
    acks = [Ack(9, 9)]
    rx = transfer(new_ack(acks, 2048, None, pool))
    assert not rx.has_flag(MessageFlag.RTT)
    assert rx.as_ack() == (acks, 2048, None)


def test_hello_with_inline_ack(pool):
    rx = transfer(new_hello(0, Hello(3), Ack(4, 4), pool))
    assert rx.has_flag(MessageFlag.INLINE_ACK)
    assert rx.as_hello() == (Hello(3), [Ack(4, 4)])


def test_hello_without_ack(pool):
    rx = transfer(new_hello(0, Hello(3), None, pool))
    assert rx.as_hello() == (Hello(3), [])


def test_keepalive_round_trip(pool):
    rx = transfer(new_keepalive(4096, pool))
    assert rx.message_type() == MessageType.KEEPALIVE
    assert rx.as_keepalive() == 4096


def test_wrong_type_rejected(pool):
    wm = new_close(1, pool)
    with pytest.raises(CodecError):
        wm.as_data()
    with pytest.raises(CodecError):
        wm.as_ack()
    with pytest.raises(CodecError):
        wm.as_keepalive()


def test_truncated_write_rejected(pool):
    wm = WireMessage(seq=0, mt=MessageType.DATA, buf=pool.get())
    with pytest.raises(CodecError):
        write_wire_message(wm, LoopAdapter())


def test_short_write_rejected(pool):
    with pytest.raises(CodecError):
        write_wire_message(new_close(1, pool), LoopAdapter(short=True))


def test_decode_header_short_read(pool):
    wm = new_data(1, None, b"abcdefghij", pool)
    wm.buf.used = 7
    with pytest.raises(CodecError):
        decode_header(wm.buf)


def test_data_too_large_for_buffer():
    small = Pool("small", 16)
    with pytest.raises(CodecError):
        new_data(1, None, b"z" * 16, small)


def test_encode_header_too_large(pool):
    wm = WireMessage(seq=0, mt=MessageType.DATA, buf=pool.get())
    with pytest.raises(CodecError):
        wm.encode_header(pool.buf_size)


def test_flags_string():
    mt = MessageType.DATA | MessageFlag.RTT | MessageFlag.INLINE_ACK
    assert flags_string(mt) == "INLINE_ACK RTT"
    assert flags_string(MessageType.DATA) == ""


def test_flag_manipulation(pool):
    wm = WireMessage(seq=0, mt=MessageType.ACK, buf=pool.get())
    wm.set_flag(MessageFlag.RTT)
    assert wm.has_flag(MessageFlag.RTT)
    assert wm.message_type() == MessageType.ACK
    wm.clear_flag(MessageFlag.RTT)
    assert not wm.has_flag(MessageFlag.RTT)
    assert wm.mt == MessageType.ACK