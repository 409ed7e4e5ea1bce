"""Security package of TwistBox: the file encryption engine.

This package provides:
- PBKDF2-HMAC-SHA256 master key derivation and HMAC twist-key derivation
- a ChaCha20 "twist" keystream that whitens each chunk before sealing
- the ENC2 container codec (header + per-chunk AES-256-GCM records)
- the streaming pipeline and a worker-process execution host
"""

from .kdf import generate_salt, generate_nonce, derive_master_key, derive_twist_key
from .crypto import aead_encrypt, aead_decrypt
from .twist import keystream, apply_twist
from .container import ContainerHeader, MAGIC, DEFAULT_CHUNK_SIZE
from .stream import (
    encrypt_file_stream,
    decrypt_file_stream,
    encrypt_bytes,
    decrypt_bytes,
)
from .worker import (
    CryptoJob,
    Direction,
    Progress,
    Succeeded,
    Failed,
    start_encrypt,
    start_decrypt,
    encrypt,
    decrypt,
)

__all__ = [
    "generate_salt",
    "generate_nonce",
    "derive_master_key",
    "derive_twist_key",
    "aead_encrypt",
    "aead_decrypt",
    "keystream",
    "apply_twist",
    "ContainerHeader",
    "MAGIC",
    "DEFAULT_CHUNK_SIZE",
    "encrypt_file_stream",
    "decrypt_file_stream",
    "encrypt_bytes",
    "decrypt_bytes",
    "CryptoJob",
    "Direction",
    "Progress",
    "Succeeded",
    "Failed",
    "start_encrypt",
    "start_decrypt",
    "encrypt",
    "decrypt",
]
