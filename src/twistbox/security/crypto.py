"""AEAD primitives used by the streaming pipeline.

AES-256-GCM with no associated data. Ciphertext and tag are handled as
separate buffers so the container codec decides where the tag lives.
"""
from typing import Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from twistbox.core.exceptions import AuthenticationFailure

TAG_LEN = 16


def aead_encrypt(key: bytes, nonce: bytes, plaintext: bytes) -> Tuple[bytes, bytes]:
    sealed = AESGCM(bytes(key)).encrypt(nonce, plaintext, None)
    return sealed[:-TAG_LEN], sealed[-TAG_LEN:]


def aead_decrypt(key: bytes, nonce: bytes, ciphertext: bytes, tag: bytes) -> bytes:
    """Verify ``tag`` and return the plaintext, or raise AuthenticationFailure.

    Nothing is returned unless the tag verifies.
    """
    if len(tag) != TAG_LEN:
        raise AuthenticationFailure("authentication tag has the wrong length")
    try:
        return AESGCM(bytes(key)).decrypt(nonce, bytes(ciphertext) + bytes(tag), None)
    except InvalidTag as exc:
        raise AuthenticationFailure(
            "authentication failed: wrong passphrase or corrupted data"
        ) from exc


def wipe(buf) -> None:
    """Best-effort overwrite of a mutable secret buffer."""
    if buf is None:
        return
    for i in range(len(buf)):
        buf[i] = 0
