"""Small helper to build a TwistBox app context for the front ends."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from twistbox.core.settings import Settings, load_settings
from twistbox.security.lock import is_configured

ENC_SUFFIX = ".enc"


@dataclass
class AppContext:
    """Container for runtime objects the UI needs."""

    settings: Settings
    first_run: bool = False
    unlocked: bool = False


def build_context(home: Optional[str | Path] = None) -> AppContext:
    """
    Load settings and report whether a master password still has to be set.

    ``first_run`` is True until a master password verifier exists in the
    settings file; the UI then asks the user to choose one instead of
    unlocking.
    """
    settings = load_settings(home)
    return AppContext(settings=settings, first_run=not is_configured(settings))


def is_encrypted_name(path: str | Path) -> bool:
    return Path(path).name.endswith(ENC_SUFFIX)


def default_output_path(input_path: str | Path, output_directory: str | Path) -> Path:
    """
    Output location for ``input_path``: ``<name>.enc`` when encrypting,
    the name with ``.enc`` stripped when decrypting.
    """
    name = Path(input_path).name
    if is_encrypted_name(name):
        stem = name[: -len(ENC_SUFFIX)] or "decrypted"
        return Path(output_directory) / stem
    return Path(output_directory) / f"{name}{ENC_SUFFIX}"


def discard_output(path: str | Path) -> None:
    """Remove the incomplete output a cancelled job leaves behind."""
    Path(path).unlink(missing_ok=True)
