import os
from datetime import timedelta

import pytest

from donorsync.config import ConfigError, Settings, load_settings


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.startswith("DONORSYNC_"):
            monkeypatch.delenv(key)
    yield tmp_path
    # load_dotenv writes straight into os.environ
    for key in list(os.environ):
        if key.startswith("DONORSYNC_"):
            del os.environ[key]


def test_defaults(clean_env):
    settings = load_settings(env_file=str(clean_env / "missing.env"))
    assert settings == Settings()
    assert settings.alert_cooldown is None


def test_env_file_is_read(clean_env):
    env = clean_env / ".env"
    env.write_text("DONORSYNC_DB=/tmp/bank.db\nDONORSYNC_ALERT_COOLDOWN_MINUTES=15\n")
    settings = load_settings(env_file=str(env))
    assert settings.db_path == "/tmp/bank.db"
    assert settings.alert_cooldown == timedelta(minutes=15)


def test_environment_beats_env_file(clean_env, monkeypatch):
    env = clean_env / ".env"
    env.write_text("DONORSYNC_REFRESH_SECONDS=90\n")
    monkeypatch.setenv("DONORSYNC_REFRESH_SECONDS", "30")
    assert load_settings(env_file=str(env)).refresh_seconds == 30


def test_overrides_beat_environment(clean_env, monkeypatch):
    monkeypatch.setenv("DONORSYNC_ACTOR", "nurse")
    monkeypatch.setenv("DONORSYNC_ESCALATION_STEP_MINUTES", "10")
    settings = load_settings(env_file=str(clean_env / "missing.env"), actor="admin",
                             escalation_step_minutes=None)
    assert settings.actor == "admin"
    assert settings.escalation_step_minutes == 10


@pytest.mark.parametrize("raw", ["abc", "0", "-5"])
def test_bad_integers_are_rejected(clean_env, monkeypatch, raw):
    monkeypatch.setenv("DONORSYNC_REFRESH_SECONDS", raw)
    with pytest.raises(ConfigError):
        load_settings(env_file=str(clean_env / "missing.env"))


def test_unknown_override(clean_env):
    with pytest.raises(ConfigError):
        load_settings(env_file=str(clean_env / "missing.env"), colour="red")
