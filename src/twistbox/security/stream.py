"""Chunked streaming encryption and decryption over the ENC2 container.

Encryption reads the input in ``chunk_size`` pieces, XORs each piece with
its twist keystream, seals it with AES-256-GCM and appends the record.
Decryption reverses the steps record by record. Both directions report a
non-decreasing progress fraction and can be cancelled between chunks.

Secrets (passphrase bytes, master key, twist key) live in bytearrays that
are wiped on every exit path.
"""
from __future__ import annotations

import io
import logging
import os
from pathlib import Path
from typing import BinaryIO, Callable, Optional

from twistbox.core.exceptions import (
    AuthenticationFailure,
    CancelledOperation,
    IOFailure,
)
from twistbox.security.container import (
    DEFAULT_CHUNK_SIZE,
    ContainerHeader,
    encode_record,
    record_count,
    record_size,
    split_record,
)
from twistbox.security.crypto import TAG_LEN, aead_decrypt, aead_encrypt, wipe
from twistbox.security.kdf import (
    DEFAULT_ITERATIONS,
    derive_master_key,
    derive_twist_key,
    generate_nonce,
    generate_salt,
    twist_context,
)
from twistbox.security.twist import apply_twist

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class _Progress:
    """Clamp and de-duplicate progress so callers only ever see it go up."""

    def __init__(self, callback: Optional[ProgressCallback]):
        self._callback = callback
        self.last = 0.0
        self._emitted = False

    def report(self, done: int, total: int) -> None:
        fraction = done / total if total > 0 else 0.0
        fraction = min(max(fraction, 0.0), 1.0)
        if self._emitted and fraction <= self.last:
            return
        self.last = fraction
        self._emitted = True
        if self._callback is not None:
            self._callback(fraction)

    def finish(self) -> None:
        if not self._emitted or self.last < 1.0:
            self.last = 1.0
            self._emitted = True
            if self._callback is not None:
                self._callback(1.0)


def _check_cancel(cancel_event) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise CancelledOperation("operation cancelled")


def _check_chunk_size(chunk_size: int) -> None:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be a positive integer")


def _read_full(inf: BinaryIO, n: int) -> bytes:
    # Short reads only at end of stream so both sides agree on chunk boundaries.
    buf = bytearray()
    while len(buf) < n:
        piece = inf.read(n - len(buf))
        if not piece:
            break
        buf += piece
    return bytes(buf)


def _derive_keys(passphrase, salt: bytes, iterations: int, filename: str, size: int):
    secret = bytearray(passphrase.encode("utf-8") if isinstance(passphrase, str) else passphrase)
    try:
        master_key = derive_master_key(secret, salt, iterations=iterations)
    finally:
        wipe(secret)
    twist_key = derive_twist_key(master_key, twist_context(filename, size))
    return master_key, twist_key


def encrypt_stream(
    inf: BinaryIO,
    outf: BinaryIO,
    passphrase,
    *,
    filename: str,
    total_size: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    iterations: int = DEFAULT_ITERATIONS,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event=None,
) -> int:
    """Encrypt ``total_size`` bytes from ``inf`` into a container on ``outf``.

    ``filename`` and ``total_size`` form the file identity bound into the
    twist key. Returns the number of container bytes written.
    """
    _check_chunk_size(chunk_size)
    progress = _Progress(on_progress)
    salt = generate_salt()
    nonce = generate_nonce()
    master_key = twist_key = None
    try:
        master_key, twist_key = _derive_keys(passphrase, salt, iterations, filename, total_size)

        header = ContainerHeader(
            salt=salt,
            nonce=nonce,
            iterations=iterations,
            filename=filename,
            original_size=total_size,
        )
        outf.write(header.encode())
        written = header.encoded_len

        chunk_index = 0
        processed = 0
        while True:
            _check_cancel(cancel_event)
            chunk = _read_full(inf, chunk_size)
            if not chunk:
                break
            twisted = apply_twist(chunk, twist_key, chunk_index)
            ciphertext, tag = aead_encrypt(master_key, nonce, twisted)
            outf.write(encode_record(ciphertext, tag))
            written += len(ciphertext) + len(tag)

            chunk_index += 1
            processed += len(chunk)
            progress.report(processed, total_size)
            if len(chunk) < chunk_size:
                break

        if processed != total_size:
            raise IOFailure(
                f"input size changed during encryption (expected {total_size}, read {processed})"
            )
        outf.flush()
        progress.finish()
        return written
    finally:
        wipe(master_key)
        wipe(twist_key)


def decrypt_stream(
    inf: BinaryIO,
    outf: BinaryIO,
    passphrase,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event=None,
    header: Optional[ContainerHeader] = None,
) -> int:
    """Decrypt a container read from ``inf`` onto ``outf``.

    The header is parsed in full before any key is derived, so a foreign
    file fails with FormatError without spending PBKDF2 time. Pass an
    already-parsed ``header`` when ``inf`` is positioned just past it.
    Returns the number of plaintext bytes written.

    Plaintext is written chunk by chunk as each tag verifies; if a later
    chunk fails, the output written so far is not trustworthy.
    """
    _check_chunk_size(chunk_size)
    progress = _Progress(on_progress)
    if header is None:
        header = ContainerHeader.read_from(inf)

    rec_size = record_size(chunk_size)
    body_len = header.original_size + record_count(header.original_size, chunk_size) * TAG_LEN

    master_key = twist_key = None
    try:
        master_key, twist_key = _derive_keys(
            passphrase, header.salt, header.iterations, header.filename, header.original_size
        )

        chunk_index = 0
        consumed = 0
        written = 0
        while True:
            _check_cancel(cancel_event)
            record = _read_full(inf, rec_size)
            if not record:
                break
            ciphertext, tag = split_record(record)
            twisted = aead_decrypt(master_key, header.nonce, ciphertext, tag)
            written += len(twisted)
            if written > header.original_size:
                raise AuthenticationFailure("container holds more data than its header declares")
            outf.write(apply_twist(twisted, twist_key, chunk_index))

            chunk_index += 1
            consumed += len(record)
            progress.report(consumed, body_len)
            if len(record) < rec_size:
                break

        if written != header.original_size:
            raise AuthenticationFailure(
                "container is shorter than its header declares; data is missing"
            )
        outf.flush()
        progress.finish()
        return written
    finally:
        wipe(master_key)
        wipe(twist_key)


# ----------------------------------------------------------------------
# Path-level entry points
# ----------------------------------------------------------------------


def validate_paths(in_path, out_path) -> None:
    """Fail fast on an unreadable input or unwritable output location."""
    src = Path(in_path)
    dst = Path(out_path)
    if not src.is_file():
        raise IOFailure(f"input file not found: {src}")
    if not os.access(src, os.R_OK):
        raise IOFailure(f"input file is not readable: {src}")
    parent = dst.parent if str(dst.parent) else Path(".")
    if not parent.is_dir():
        raise IOFailure(f"output directory does not exist: {parent}")
    if dst.exists() and not os.access(dst, os.W_OK):
        raise IOFailure(f"output file is not writable: {dst}")
    if not dst.exists() and not os.access(parent, os.W_OK):
        raise IOFailure(f"output directory is not writable: {parent}")
    if dst.exists() and src.resolve() == dst.resolve():
        raise IOFailure("input and output must be different files")


def encrypt_file_stream(
    in_path,
    out_path,
    passphrase,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    iterations: int = DEFAULT_ITERATIONS,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event=None,
) -> int:
    validate_paths(in_path, out_path)
    src = Path(in_path)
    logger.info("encrypting %s -> %s", src, out_path)
    try:
        with open(src, "rb") as inf, open(out_path, "wb") as outf:
            total_size = os.fstat(inf.fileno()).st_size
            written = encrypt_stream(
                inf,
                outf,
                passphrase,
                filename=src.name,
                total_size=total_size,
                chunk_size=chunk_size,
                iterations=iterations,
                on_progress=on_progress,
                cancel_event=cancel_event,
            )
    except OSError as exc:
        raise IOFailure(f"I/O error during encryption: {exc}") from exc
    logger.info("encrypted %s (%d bytes written)", src.name, written)
    return written


def decrypt_file_stream(
    in_path,
    out_path,
    passphrase,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event=None,
) -> int:
    validate_paths(in_path, out_path)
    logger.info("decrypting %s -> %s", in_path, out_path)
    try:
        with open(in_path, "rb") as inf:
            # a foreign file must not truncate an existing output
            header = ContainerHeader.read_from(inf)
            with open(out_path, "wb") as outf:
                written = decrypt_stream(
                    inf,
                    outf,
                    passphrase,
                    chunk_size=chunk_size,
                    on_progress=on_progress,
                    cancel_event=cancel_event,
                    header=header,
                )
    except OSError as exc:
        raise IOFailure(f"I/O error during decryption: {exc}") from exc
    logger.info("decrypted %s (%d bytes written)", in_path, written)
    return written


# ----------------------------------------------------------------------
# In-memory helpers
# ----------------------------------------------------------------------


def encrypt_bytes(
    data: bytes,
    passphrase,
    filename: str = "data",
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    iterations: int = DEFAULT_ITERATIONS,
) -> bytes:
    out = io.BytesIO()
    encrypt_stream(
        io.BytesIO(data),
        out,
        passphrase,
        filename=filename,
        total_size=len(data),
        chunk_size=chunk_size,
        iterations=iterations,
    )
    return out.getvalue()


def decrypt_bytes(blob: bytes, passphrase, chunk_size: int = DEFAULT_CHUNK_SIZE) -> bytes:
    out = io.BytesIO()
    decrypt_stream(io.BytesIO(blob), out, passphrase, chunk_size=chunk_size)
    return out.getvalue()
