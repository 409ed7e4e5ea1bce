"""Unit tests for the Key Derivation Function (KDF) module."""

import hashlib
import hmac

import pytest
from twistbox.security.kdf import (
    DEFAULT_ITERATIONS,
    derive_master_key,
    derive_twist_key,
    generate_nonce,
    generate_salt,
    kdf_params_to_dict,
    twist_context,
)


def test_generate_salt_defaults():
    """Ensure salt generation returns bytes of the default length (16)."""
    salt = generate_salt()
    assert isinstance(salt, bytes)
    assert len(salt) == 16


def test_generate_nonce_defaults():
    nonce = generate_nonce()
    assert isinstance(nonce, bytes)
    assert len(nonce) == 12


def test_salts_and_nonces_are_fresh():
    assert generate_salt() != generate_salt()
    assert generate_nonce() != generate_nonce()


def test_default_iterations():
    assert DEFAULT_ITERATIONS == 100_000


def test_derive_master_key_matches_pbkdf2_reference():
    """The derivation is plain PBKDF2-HMAC-SHA256 with a 32-byte output."""
    salt = b"\x01" * 16
    key = derive_master_key("test_passphrase", salt, iterations=1000)

    expected = hashlib.pbkdf2_hmac("sha256", b"test_passphrase", salt, 1000, 32)
    assert bytes(key) == expected
    assert len(key) == 32


def test_derive_master_key_is_deterministic():
    salt = generate_salt()
    first = derive_master_key(b"password123", salt, iterations=500)
    second = derive_master_key(b"password123", salt, iterations=500)
    assert first == second


def test_derive_master_key_string_and_bytes_agree():
    """Ensure passing the same password as string or bytes yields the same key."""
    salt = generate_salt()
    key_from_str = derive_master_key("pässword", salt, iterations=500)
    key_from_bytes = derive_master_key("pässword".encode("utf-8"), salt, iterations=500)
    assert key_from_str == key_from_bytes


def test_derive_master_key_depends_on_salt_and_iterations():
    salt = generate_salt()
    base = derive_master_key(b"pw", salt, iterations=500)
    assert derive_master_key(b"pw", generate_salt(), iterations=500) != base
    assert derive_master_key(b"pw", salt, iterations=501) != base


def test_derive_master_key_rejects_zero_iterations():
    with pytest.raises(ValueError):
        derive_master_key(b"pw", generate_salt(), iterations=0)


def test_derive_master_key_returns_wipeable_buffer():
    key = derive_master_key(b"pw", generate_salt(), iterations=10)
    assert isinstance(key, bytearray)


def test_twist_context_layout():
    context = twist_context("notes.txt", 258)
    assert context == b"notes.txt" + b"\x00" * 6 + b"\x01\x02"


def test_derive_twist_key_is_hmac_sha256():
    master = bytes(range(32))
    context = twist_context("a.bin", 10)
    expected = hmac.new(master, context, hashlib.sha256).digest()
    assert bytes(derive_twist_key(master, context)) == expected


def test_derive_twist_key_depends_on_identity():
    master = bytes(range(32))
    key = derive_twist_key(master, twist_context("a.bin", 10))
    assert derive_twist_key(master, twist_context("b.bin", 10)) != key
    assert derive_twist_key(master, twist_context("a.bin", 11)) != key


def test_kdf_params_to_dict():
    salt = b"\xaa" * 16
    result = kdf_params_to_dict(salt=salt, iterations=1234)

    assert result == {
        "algo": "pbkdf2-sha256",
        "salt": "aa" * 16,
        "iterations": 1234,
    }
