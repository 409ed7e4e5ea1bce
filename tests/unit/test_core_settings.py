"""Unit tests for persisted settings."""

import json

import pytest

from twistbox.core.exceptions import SettingsError
from twistbox.core.settings import ITERATIONS_ENV, Settings, app_home, load_settings


def test_first_load_creates_defaults(tmp_path):
    settings = load_settings(tmp_path)

    assert settings.output_directory == str(tmp_path / "output")
    assert (tmp_path / "output").is_dir()
    assert settings.chunk_size == 65536
    assert settings.iterations == 100_000
    assert settings.master_password is None
    assert json.loads((tmp_path / "settings.json").read_text())["chunk_size"] == 65536


def test_save_and_reload(tmp_path):
    settings = load_settings(tmp_path)
    settings.chunk_size = 4096
    settings.master_password = {"salt": "aa", "iterations": 1, "sentinel": "bb"}
    settings.save()

    reloaded = load_settings(tmp_path)
    assert reloaded.chunk_size == 4096
    assert reloaded.master_password == {"salt": "aa", "iterations": 1, "sentinel": "bb"}


def test_set_output_directory_creates_it(tmp_path):
    settings = load_settings(tmp_path)
    target = tmp_path / "elsewhere" / "deep"
    settings.set_output_directory(target)

    assert target.is_dir()
    assert load_settings(tmp_path).output_directory == str(target)


def test_corrupt_settings_file(tmp_path):
    (tmp_path / "settings.json").write_text("{not json")
    with pytest.raises(SettingsError):
        load_settings(tmp_path)


def test_iterations_env_override(tmp_path, monkeypatch):
    monkeypatch.setenv(ITERATIONS_ENV, "1234")
    assert load_settings(tmp_path).iterations == 1234


def test_iterations_env_override_must_be_int(tmp_path, monkeypatch):
    monkeypatch.setenv(ITERATIONS_ENV, "lots")
    with pytest.raises(SettingsError):
        load_settings(tmp_path)


def test_app_home_env(tmp_path, monkeypatch):
    monkeypatch.setenv("TWISTBOX_HOME", str(tmp_path))
    assert app_home() == tmp_path


def test_save_without_path():
    with pytest.raises(SettingsError):
        Settings(output_directory="/tmp").save()
