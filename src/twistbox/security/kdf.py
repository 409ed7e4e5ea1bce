"""Key derivation for TwistBox: PBKDF2 master keys and HMAC twist keys."""
import hashlib
import hmac
import os
import struct
from typing import Dict

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

SALT_LEN = 16
NONCE_LEN = 12
KEY_LEN = 32
DEFAULT_ITERATIONS = 100_000


def generate_salt(length: int = SALT_LEN) -> bytes:
    """Return a cryptographically secure random salt."""
    return os.urandom(length)


def generate_nonce(length: int = NONCE_LEN) -> bytes:
    """Return a fresh random AEAD nonce."""
    return os.urandom(length)


def derive_master_key(
    password: bytes,
    salt: bytes,
    iterations: int = DEFAULT_ITERATIONS,
    key_len: int = KEY_LEN,
) -> bytearray:
    """
    Derive a master key from a password using PBKDF2-HMAC-SHA256.
    Returns the raw key in a bytearray so the caller can wipe it.
    """
    if isinstance(password, str):
        password = password.encode("utf-8")
    if iterations < 1:
        raise ValueError("iterations must be a positive integer")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=key_len,
        salt=salt,
        iterations=iterations,
    )
    return bytearray(kdf.derive(password))


def twist_context(filename: str, size: int) -> bytes:
    # utf8(filename) || u64be(size)
    return filename.encode("utf-8") + struct.pack(">Q", size)


def derive_twist_key(master_key: bytes, context: bytes) -> bytearray:
    """HMAC-SHA256 over ``context`` keyed with ``master_key``."""
    return bytearray(hmac.new(bytes(master_key), context, hashlib.sha256).digest())


def kdf_params_to_dict(salt: bytes, iterations: int) -> Dict:
    return {
        "algo": "pbkdf2-sha256",
        "salt": salt.hex(),
        "iterations": iterations,
    }
