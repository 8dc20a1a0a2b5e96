import pytest

from dilithium.ack import Ack, CodecError, decode_acks, encode_acks


def test_empty_series_encodes_to_nothing():
    assert encode_acks([], 64) == b""


def test_single_ack_wire_format():
    assert encode_acks([Ack(1, 1)], 4) == b"\x00\x00\x00\x01"


def test_single_ack_round_trip():
    encoded = encode_acks([Ack(42, 42)], 16)
    acks, size = decode_acks(encoded)
    assert acks == [Ack(42, 42)]
    assert size == len(encoded)


def test_series_header_marks_count():
    acks = [Ack(1, 1), Ack(3, 9), Ack(12, 12)]
    encoded = encode_acks(acks, 64)
    assert encoded[0] & 0x80
    assert encoded[0] & 0x7F == len(acks)


@pytest.mark.parametrize(
    "acks",
    [
        [Ack(3, 9)],
        [Ack(1, 1), Ack(2, 2)],
        [Ack(1, 1), Ack(3, 9), Ack(100, 100), Ack(200, 300)],
    ],
)
def test_series_round_trip(acks):
    encoded = encode_acks(acks, 1024)
    decoded, size = decode_acks(encoded)
    assert decoded == acks
    assert size == len(encoded)


def test_maximum_series_round_trip():
    acks = [Ack(i * 2, i * 2) for i in range(127)]
    decoded, _ = decode_acks(encode_acks(acks, 4096))
    assert decoded == acks


def test_series_too_large():
    with pytest.raises(CodecError):
        encode_acks([Ack(i, i) for i in range(128)], 4096)


def test_single_ack_insufficient_space():
    with pytest.raises(CodecError):
        encode_acks([Ack(7, 7)], 3)


def test_series_insufficient_space():
    with pytest.raises(CodecError):
        encode_acks([Ack(1, 5), Ack(8, 8)], 8)


def test_decode_short_buffer():
    with pytest.raises(CodecError):
        decode_acks(b"\x00\x00")


def test_decode_truncated_series():
    encoded = encode_acks([Ack(1, 5), Ack(8, 8)], 64)
    with pytest.raises(CodecError):
        decode_acks(encoded[:-2])