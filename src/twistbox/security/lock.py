"""Master-password gate for the TwistBox front ends.

The password is never stored. A salted PBKDF2 verifier (salt, iteration
count and a MAC over a fixed label) is kept in the settings file instead,
and unlocking re-derives it and compares in constant time.
"""
import hashlib
import hmac

from twistbox.core.settings import Settings
from twistbox.security.crypto import wipe
from twistbox.security.kdf import DEFAULT_ITERATIONS, derive_master_key, generate_salt, kdf_params_to_dict

_LABEL = b"twistbox-master-password"


def _verifier(password: str, salt: bytes, iterations: int) -> bytes:
    key = derive_master_key(password, salt, iterations=iterations)
    try:
        return hmac.new(bytes(key), _LABEL, hashlib.sha256).digest()
    finally:
        wipe(key)


def is_configured(settings: Settings) -> bool:
    return bool(settings.master_password)


def set_master_password(settings: Settings, password: str, iterations: int = DEFAULT_ITERATIONS) -> None:
    if not password:
        raise ValueError("Please enter a valid password.")
    salt = generate_salt()
    record = kdf_params_to_dict(salt, iterations)
    record["sentinel"] = _verifier(password, salt, iterations).hex()
    settings.master_password = record
    settings.save()


def verify_master_password(settings: Settings, password: str) -> bool:
    record = settings.master_password
    if not record:
        raise RuntimeError("no master password configured")
    salt = bytes.fromhex(record["salt"])
    iterations = int(record.get("iterations", DEFAULT_ITERATIONS))
    expected = bytes.fromhex(record["sentinel"])
    return hmac.compare_digest(_verifier(password, salt, iterations), expected)
