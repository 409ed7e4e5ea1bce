"""Unit tests for the ENC2 container codec."""

import io
import struct

import pytest

from twistbox.core.exceptions import FormatError
from twistbox.security.container import (
    DEFAULT_CHUNK_SIZE,
    FIXED_HEADER_LEN,
    MAGIC,
    ContainerHeader,
    container_size,
    encode_record,
    record_count,
    record_size,
    split_record,
)


@pytest.fixture
def header():
    return ContainerHeader(
        salt=bytes(range(16)),
        nonce=bytes(range(100, 112)),
        iterations=100_000,
        filename="report.pdf",
        original_size=123_456,
    )


def test_header_layout(header):
    encoded = header.encode()

    assert encoded[:4] == MAGIC == b"ENC2"
    assert encoded[4:20] == header.salt
    assert encoded[20:32] == header.nonce
    assert struct.unpack(">I", encoded[32:36])[0] == 100_000
    assert struct.unpack(">H", encoded[36:38])[0] == len("report.pdf")
    assert encoded[38:48] == b"report.pdf"
    assert struct.unpack(">Q", encoded[48:56])[0] == 123_456
    assert len(encoded) == header.encoded_len == FIXED_HEADER_LEN + 10


def test_header_roundtrip(header):
    assert ContainerHeader.decode(header.encode()) == header


def test_header_roundtrip_non_ascii_filename():
    header = ContainerHeader(
        salt=b"\x00" * 16,
        nonce=b"\xff" * 12,
        iterations=1,
        filename="résumé ☃.txt",
        original_size=0,
    )
    encoded = header.encode()
    # length field counts UTF-8 bytes, not characters
    assert struct.unpack(">H", encoded[36:38])[0] == len("résumé ☃.txt".encode("utf-8"))
    assert ContainerHeader.decode(encoded) == header


def test_read_from_leaves_stream_at_body(header):
    stream = io.BytesIO(header.encode() + b"BODY")
    ContainerHeader.read_from(stream)
    assert stream.read() == b"BODY"


def test_decode_rejects_bad_magic(header):
    data = b"XXXX" + header.encode()[4:]
    with pytest.raises(FormatError, match="magic mismatch"):
        ContainerHeader.decode(data)


def test_decode_rejects_empty_input():
    with pytest.raises(FormatError):
        ContainerHeader.decode(b"")


def test_decode_rejects_legacy_magic(header):
    data = b"ENC1" + header.encode()[4:]
    with pytest.raises(FormatError, match="legacy"):
        ContainerHeader.decode(data)


@pytest.mark.parametrize("cut", [5, 20, 33, 37, 40, 50])
def test_decode_rejects_truncated_header(header, cut):
    with pytest.raises(FormatError, match="truncated header"):
        ContainerHeader.decode(header.encode()[:cut])


def test_decode_rejects_zero_iterations(header):
    data = bytearray(header.encode())
    data[32:36] = b"\x00\x00\x00\x00"
    with pytest.raises(FormatError, match="iteration count"):
        ContainerHeader.decode(bytes(data))


def test_decode_rejects_invalid_utf8_filename(header):
    data = bytearray(header.encode())
    data[38] = 0xFF
    with pytest.raises(FormatError, match="UTF-8"):
        ContainerHeader.decode(bytes(data))


def test_header_validation():
    with pytest.raises(ValueError):
        ContainerHeader(salt=b"short", nonce=b"\x00" * 12, iterations=1, filename="a", original_size=0)
    with pytest.raises(ValueError):
        ContainerHeader(salt=b"\x00" * 16, nonce=b"\x00" * 8, iterations=1, filename="a", original_size=0)
    with pytest.raises(ValueError):
        ContainerHeader(salt=b"\x00" * 16, nonce=b"\x00" * 12, iterations=0, filename="a", original_size=0)
    with pytest.raises(ValueError):
        ContainerHeader(
            salt=b"\x00" * 16, nonce=b"\x00" * 12, iterations=1, filename="x" * 70000, original_size=0
        )


def test_record_helpers():
    assert record_size(DEFAULT_CHUNK_SIZE) == 65536 + 16
    record = encode_record(b"cipher", b"T" * 16)
    assert split_record(record) == (b"cipher", b"T" * 16)


def test_split_record_rejects_short_record():
    with pytest.raises(FormatError, match="truncated chunk record"):
        split_record(b"\x00" * 15)


def test_record_count():
    assert record_count(0, 64) == 0
    assert record_count(1, 64) == 1
    assert record_count(64, 64) == 1
    assert record_count(65, 64) == 2


def test_container_size(header):
    records = record_count(header.original_size, DEFAULT_CHUNK_SIZE)
    assert container_size(header) == header.encoded_len + header.original_size + 16 * records
