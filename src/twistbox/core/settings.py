"""
Persisted user preferences for TwistBox front ends.

Settings live in ``settings.json`` under the application home
(``~/.twistbox`` unless ``TWISTBOX_HOME`` is set). The engine itself never
reads them; front ends pass the relevant values in explicitly.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from twistbox.core.exceptions import SettingsError
from twistbox.security.container import DEFAULT_CHUNK_SIZE
from twistbox.security.kdf import DEFAULT_ITERATIONS

logger = logging.getLogger(__name__)

HOME_ENV = "TWISTBOX_HOME"
ITERATIONS_ENV = "TWISTBOX_ITERATIONS"
SETTINGS_FILE = "settings.json"


def app_home() -> Path:
    return Path(os.getenv(HOME_ENV) or Path.home() / ".twistbox").expanduser()


@dataclass
class Settings:
    output_directory: str
    chunk_size: int = DEFAULT_CHUNK_SIZE
    iterations: int = DEFAULT_ITERATIONS
    # PBKDF2 verifier for the app lock; see twistbox.security.lock
    master_password: Optional[Dict[str, Any]] = None
    path: Optional[Path] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "output_directory": self.output_directory,
            "chunk_size": self.chunk_size,
            "iterations": self.iterations,
            "master_password": self.master_password,
        }

    def save(self) -> None:
        if self.path is None:
            raise SettingsError("settings have no backing file")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    def set_output_directory(self, directory: str | Path) -> None:
        directory = Path(directory).expanduser()
        directory.mkdir(parents=True, exist_ok=True)
        self.output_directory = str(directory)
        self.save()


def load_settings(home: Optional[str | Path] = None) -> Settings:
    """
    Load settings from ``home`` (default :func:`app_home`).

    On first use the file is created with an ``output`` folder under the
    home directory as the default output location.
    """
    home = Path(home) if home is not None else app_home()
    path = home / SETTINGS_FILE

    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                meta = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise SettingsError(f"cannot read settings file {path}: {exc}") from exc
        settings = Settings(
            output_directory=meta.get("output_directory") or str(home / "output"),
            chunk_size=int(meta.get("chunk_size", DEFAULT_CHUNK_SIZE)),
            iterations=int(meta.get("iterations", DEFAULT_ITERATIONS)),
            master_password=meta.get("master_password"),
            path=path,
        )
    else:
        settings = Settings(output_directory=str(home / "output"), path=path)
        Path(settings.output_directory).mkdir(parents=True, exist_ok=True)
        settings.save()
        logger.info("created default settings at %s", path)

    override = os.getenv(ITERATIONS_ENV)
    if override:
        try:
            settings.iterations = int(override)
        except ValueError as exc:
            raise SettingsError(f"{ITERATIONS_ENV} must be an integer") from exc

    return settings
