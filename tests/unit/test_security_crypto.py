"""Unit tests for the AES-256-GCM primitives."""

import os

import pytest

from twistbox.core.exceptions import AuthenticationFailure
from twistbox.security.crypto import TAG_LEN, aead_decrypt, aead_encrypt, wipe

KEY = bytes(range(32))
NONCE = bytes(12)


def test_encrypt_returns_ciphertext_and_tag():
    ciphertext, tag = aead_encrypt(KEY, NONCE, b"attack at dawn")
    assert len(ciphertext) == len(b"attack at dawn")
    assert len(tag) == TAG_LEN


def test_encrypt_decrypt_roundtrip():
    data = os.urandom(1000)
    ciphertext, tag = aead_encrypt(KEY, NONCE, data)
    assert aead_decrypt(KEY, NONCE, ciphertext, tag) == data


def test_accepts_bytearray_key():
    ciphertext, tag = aead_encrypt(bytearray(KEY), NONCE, b"data")
    assert aead_decrypt(bytearray(KEY), NONCE, ciphertext, tag) == b"data"


def test_decrypt_fails_on_flipped_ciphertext():
    ciphertext, tag = aead_encrypt(KEY, NONCE, b"hello world")
    tampered = bytes([ciphertext[0] ^ 0x01]) + ciphertext[1:]
    with pytest.raises(AuthenticationFailure):
        aead_decrypt(KEY, NONCE, tampered, tag)


def test_decrypt_fails_on_flipped_tag():
    ciphertext, tag = aead_encrypt(KEY, NONCE, b"hello world")
    tampered = tag[:-1] + bytes([tag[-1] ^ 0x80])
    with pytest.raises(AuthenticationFailure):
        aead_decrypt(KEY, NONCE, ciphertext, tampered)


def test_decrypt_fails_with_wrong_key():
    ciphertext, tag = aead_encrypt(KEY, NONCE, b"hello world")
    with pytest.raises(AuthenticationFailure, match="wrong passphrase or corrupted data"):
        aead_decrypt(bytes(32), NONCE, ciphertext, tag)


def test_decrypt_rejects_short_tag():
    ciphertext, tag = aead_encrypt(KEY, NONCE, b"hello")
    with pytest.raises(AuthenticationFailure):
        aead_decrypt(KEY, NONCE, ciphertext, tag[:8])


def test_wipe_zeroes_buffer():
    buf = bytearray(b"secret key material")
    wipe(buf)
    assert buf == bytearray(len(b"secret key material"))


def test_wipe_accepts_none():
    wipe(None)
