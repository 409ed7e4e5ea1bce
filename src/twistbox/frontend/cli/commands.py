"""
Headless command line for TwistBox.

Usage:
    twistbox encrypt report.pdf report.pdf.enc
    twistbox decrypt report.pdf.enc report.pdf --passphrase-env MY_SECRET

The passphrase comes from ``--passphrase``, from the environment variable
named by ``--passphrase-env`` (default ``TWISTBOX_PASSPHRASE``) or from an
interactive prompt, in that order.

Exit status: 0 success, 1 other failure, 2 format error,
3 authentication failure, 130 cancelled.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import sys
from typing import Optional

from twistbox.core.exceptions import (
    AuthenticationFailure,
    CancelledOperation,
    FormatError,
    SettingsError,
    TwistBoxError,
)
from twistbox.core.settings import load_settings
from twistbox.frontend.cli.context import discard_output
from twistbox.frontend.cli.logging_config import configure_logging
from twistbox.security.worker import CryptoJob, Direction

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_FORMAT = 2
EXIT_AUTH = 3
EXIT_CANCELLED = 130


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1: {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="twistbox",
        description="Encrypt and decrypt files into passphrase-protected ENC2 containers.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    parser.add_argument("--home", default=None, help="settings directory (default ~/.twistbox)")
    sub = parser.add_subparsers(dest="command", required=True)

    for name in ("encrypt", "decrypt"):
        cmd = sub.add_parser(name, help=f"{name} a file")
        cmd.add_argument("input", help="input file path")
        cmd.add_argument("output", help="output file path")
        cmd.add_argument("--passphrase", default=None, help="passphrase (prefer the env var or prompt)")
        cmd.add_argument(
            "--passphrase-env",
            default="TWISTBOX_PASSPHRASE",
            help="environment variable holding the passphrase",
        )
        cmd.add_argument("--chunk-size", type=positive_int, default=None, help="chunk size in bytes")
        cmd.add_argument("--quiet", action="store_true", help="do not print progress")
        if name == "encrypt":
            cmd.add_argument("--iterations", type=positive_int, default=None, help="PBKDF2 iteration count")
    return parser


def resolve_passphrase(args: argparse.Namespace, confirm: bool) -> str:
    if args.passphrase:
        return args.passphrase
    env_value = os.getenv(args.passphrase_env) if args.passphrase_env else None
    if env_value:
        return env_value
    passphrase = getpass.getpass("Passphrase: ")
    if confirm and getpass.getpass("Repeat passphrase: ") != passphrase:
        raise ValueError("passphrases do not match")
    if not passphrase:
        raise ValueError("passphrase must not be empty")
    return passphrase


def _print_progress(fraction: float) -> None:
    sys.stderr.write(f"\r{fraction * 100:6.2f}%")
    sys.stderr.flush()


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        settings = load_settings(args.home)
    except SettingsError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    direction = Direction(args.command)
    chunk_size = args.chunk_size if args.chunk_size is not None else settings.chunk_size
    iterations = getattr(args, "iterations", None)
    if iterations is None:
        iterations = settings.iterations

    try:
        passphrase = resolve_passphrase(args, confirm=direction == Direction.ENCRYPT)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    job = CryptoJob(
        direction,
        args.input,
        args.output,
        passphrase,
        chunk_size=chunk_size,
        iterations=iterations,
        on_progress=None if args.quiet else _print_progress,
    )

    try:
        job.start()
        result = job.wait()
    except (KeyboardInterrupt, CancelledOperation):
        message = "\nCancelled."
        if job.started and job.cancel():
            discard_output(job.out_path)
            message = "\nCancelled; the incomplete output was removed."
        print(message, file=sys.stderr)
        return EXIT_CANCELLED
    except FormatError as exc:
        print(f"\nFormat error: {exc}", file=sys.stderr)
        return EXIT_FORMAT
    except AuthenticationFailure as exc:
        print(f"\nAuthentication failed: {exc}", file=sys.stderr)
        return EXIT_AUTH
    except TwistBoxError as exc:
        print(f"\nError: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    if not args.quiet:
        sys.stderr.write("\n")
    print(f"{direction.value}ed {args.input} -> {args.output} ({result.bytes_written} bytes)")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
