"""Unit tests for the master-password gate."""

import pytest

from twistbox.core.settings import load_settings
from twistbox.security.lock import is_configured, set_master_password, verify_master_password


@pytest.fixture
def settings(tmp_path):
    return load_settings(tmp_path)


def test_not_configured_initially(settings):
    assert not is_configured(settings)


def test_set_and_verify(settings):
    set_master_password(settings, "open sesame", iterations=1000)

    assert is_configured(settings)
    assert verify_master_password(settings, "open sesame")
    assert not verify_master_password(settings, "open says me")


def test_password_is_not_stored(settings, tmp_path):
    set_master_password(settings, "open sesame", iterations=1000)
    raw = (tmp_path / "settings.json").read_text()
    assert "open sesame" not in raw
    assert settings.master_password["algo"] == "pbkdf2-sha256"


def test_verifier_survives_reload(settings, tmp_path):
    set_master_password(settings, "pw", iterations=1000)
    assert verify_master_password(load_settings(tmp_path), "pw")


def test_empty_password_rejected(settings):
    with pytest.raises(ValueError):
        set_master_password(settings, "")


def test_verify_without_password_configured(settings):
    with pytest.raises(RuntimeError):
        verify_master_password(settings, "anything")
