"""Twist layer: per-chunk ChaCha20 keystream whitening.

The twist key is derived from the master key and the file identity
(see :func:`twistbox.security.kdf.twist_context`), so the keystream changes
whenever the filename or size changes.

Keystream for chunk ``i`` is ChaCha20(twist_key) with a 96-bit nonce of
``u32be(i) || 0^8`` and the block counter starting at zero. Distinct chunk
indices therefore never share keystream.
"""
import struct

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms

MAX_CHUNK_INDEX = 0xFFFFFFFF


def _chacha_nonce(chunk_index: int) -> bytes:
    if not 0 <= chunk_index <= MAX_CHUNK_INDEX:
        raise ValueError(f"chunk index out of range: {chunk_index}")
    # cryptography takes counter(4, little-endian) || nonce(12)
    return b"\x00" * 4 + struct.pack(">I", chunk_index) + b"\x00" * 8


def _encryptor(twist_key: bytes, chunk_index: int):
    cipher = Cipher(algorithms.ChaCha20(bytes(twist_key), _chacha_nonce(chunk_index)), mode=None)
    return cipher.encryptor()


def keystream(twist_key: bytes, chunk_index: int, length: int) -> bytes:
    """Return ``length`` keystream bytes for ``chunk_index``."""
    if length < 0:
        raise ValueError("length must be non-negative")
    return _encryptor(twist_key, chunk_index).update(b"\x00" * length)


def apply_twist(data: bytes, twist_key: bytes, chunk_index: int) -> bytes:
    """XOR ``data`` with the chunk keystream. Self-inverse."""
    if not data:
        return b""
    return _encryptor(twist_key, chunk_index).update(bytes(data))
