"""Binary container codec: fixed header plus per-chunk record framing.

Header layout (binary, all big-endian):
- 4 bytes: magic b'ENC2'
- 16 bytes: PBKDF2 salt
- 12 bytes: AES-GCM nonce
- 4 bytes: PBKDF2 iteration count (unsigned int)
- 2 bytes: filename length in UTF-8 bytes (unsigned short)
- N bytes: UTF-8 filename (base name only)
- 8 bytes: original plaintext size (unsigned long long)

Body: one record per plaintext chunk, ``ciphertext || tag(16)``. Every
record holds ``chunk_size`` ciphertext bytes except the last one, which may
be shorter. An empty plaintext produces no records at all.

Containers tagged b'ENC1' come from an older engine whose key derivation is
not supported; they are recognised only to give a precise error.
"""
import io
import logging
import struct
from dataclasses import dataclass
from typing import BinaryIO, Tuple

from twistbox.core.exceptions import FormatError
from twistbox.security.crypto import TAG_LEN
from twistbox.security.kdf import NONCE_LEN, SALT_LEN

logger = logging.getLogger(__name__)

MAGIC = b"ENC2"
LEGACY_MAGIC = b"ENC1"
DEFAULT_CHUNK_SIZE = 64 * 1024
MAX_FILENAME_LEN = 0xFFFF

# magic + salt + nonce + iterations + filename length + original size
FIXED_HEADER_LEN = 4 + SALT_LEN + NONCE_LEN + 4 + 2 + 8


def _read_exact(inf: BinaryIO, n: int, what: str) -> bytes:
    data = inf.read(n)
    if len(data) != n:
        raise FormatError(f"truncated header: missing {what}")
    return data


@dataclass(frozen=True)
class ContainerHeader:
    salt: bytes
    nonce: bytes
    iterations: int
    filename: str
    original_size: int

    def __post_init__(self):
        if len(self.salt) != SALT_LEN:
            raise ValueError(f"salt must be {SALT_LEN} bytes")
        if len(self.nonce) != NONCE_LEN:
            raise ValueError(f"nonce must be {NONCE_LEN} bytes")
        if not 0 < self.iterations <= 0xFFFFFFFF:
            raise ValueError("iterations must fit in an unsigned 32-bit field")
        if not 0 <= self.original_size <= 0xFFFFFFFFFFFFFFFF:
            raise ValueError("original size must fit in an unsigned 64-bit field")
        if len(self.filename.encode("utf-8")) > MAX_FILENAME_LEN:
            raise ValueError("filename is too long for the container header")

    @property
    def encoded_len(self) -> int:
        return FIXED_HEADER_LEN + len(self.filename.encode("utf-8"))

    def encode(self) -> bytes:
        name = self.filename.encode("utf-8")
        header = bytearray()
        header += MAGIC
        header += self.salt
        header += self.nonce
        header += struct.pack(">I", self.iterations)
        header += struct.pack(">H", len(name))
        header += name
        header += struct.pack(">Q", self.original_size)
        return bytes(header)

    @classmethod
    def read_from(cls, inf: BinaryIO) -> "ContainerHeader":
        """Parse a complete header from ``inf``, leaving it positioned at the first record."""
        magic = inf.read(4)
        if magic == LEGACY_MAGIC:
            raise FormatError("Unsupported legacy container (ENC1)")
        if magic != MAGIC:
            raise FormatError("Invalid file format (magic mismatch)")

        salt = _read_exact(inf, SALT_LEN, "salt")
        nonce = _read_exact(inf, NONCE_LEN, "nonce")
        (iterations,) = struct.unpack(">I", _read_exact(inf, 4, "iteration count"))
        if iterations == 0:
            raise FormatError("Invalid header: iteration count is zero")
        (name_len,) = struct.unpack(">H", _read_exact(inf, 2, "filename length"))
        raw_name = _read_exact(inf, name_len, "filename")
        try:
            filename = raw_name.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FormatError("Invalid header: filename is not valid UTF-8") from exc
        (original_size,) = struct.unpack(">Q", _read_exact(inf, 8, "original size"))

        logger.debug(
            "parsed header: iterations=%d filename_len=%d original_size=%d",
            iterations, name_len, original_size,
        )
        return cls(
            salt=salt,
            nonce=nonce,
            iterations=iterations,
            filename=filename,
            original_size=original_size,
        )

    @classmethod
    def decode(cls, data: bytes) -> "ContainerHeader":
        return cls.read_from(io.BytesIO(data))


def record_size(chunk_size: int) -> int:
    return chunk_size + TAG_LEN


def encode_record(ciphertext: bytes, tag: bytes) -> bytes:
    return bytes(ciphertext) + bytes(tag)


def split_record(record: bytes) -> Tuple[bytes, bytes]:
    """Split one record into (ciphertext, tag)."""
    if len(record) < TAG_LEN:
        raise FormatError("truncated chunk record")
    return record[:-TAG_LEN], record[-TAG_LEN:]


def record_count(original_size: int, chunk_size: int) -> int:
    return -(-original_size // chunk_size)


def container_size(header: ContainerHeader, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    """Total container length for ``header`` framed with ``chunk_size`` records."""
    records = record_count(header.original_size, chunk_size)
    return header.encoded_len + header.original_size + records * TAG_LEN
