"""
Tests for boot-time configuration.
"""
import pytest

from prize_portal.config import ConfigurationError, Settings, get_bool_env

VALID_KEY = "ab" * 32


@pytest.fixture
def env(monkeypatch):
    monkeypatch.setenv("BANK_ENCRYPTION_KEY", VALID_KEY)
    monkeypatch.setenv("ALLOWED_EMAIL_DOMAIN", "school.edu")
    return monkeypatch


def test_loads_key_as_bytes(env):
    settings = Settings()

    assert settings.bank_encryption_key == bytes.fromhex(VALID_KEY)
    assert len(settings.bank_encryption_key) == 32


def test_missing_key_fails_fast(env):
    env.delenv("BANK_ENCRYPTION_KEY")

    with pytest.raises(ConfigurationError):
        Settings()


@pytest.mark.parametrize("key", ["ab" * 16, "zz" * 32, "ab" * 33])
def test_malformed_key_fails_fast(env, key):
    env.setenv("BANK_ENCRYPTION_KEY", key)

    with pytest.raises(ConfigurationError):
        Settings()


@pytest.mark.parametrize("domain", ["", "localhost"])
def test_bad_domain_fails_fast(env, domain):
    env.setenv("ALLOWED_EMAIL_DOMAIN", domain)

    with pytest.raises(ConfigurationError):
        Settings()


def test_domain_normalized(env):
    env.setenv("ALLOWED_EMAIL_DOMAIN", " @School.EDU ")

    assert Settings().allowed_email_domain == "school.edu"


def test_key_not_in_repr(env):
    assert VALID_KEY not in repr(Settings())


def test_bad_port_rejected(env):
    env.setenv("EMAIL_PORT", "smtp")

    with pytest.raises(ConfigurationError):
        Settings()


def test_origins_split(env):
    env.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example,,")

    assert Settings().allowed_origins == ["https://a.example", "https://b.example"]


@pytest.mark.parametrize("raw, expected", [("true", True), ("1", True), ("on", True), ("false", False), ("no", False)])
def test_bool_env(monkeypatch, raw, expected):
    monkeypatch.setenv("SOME_FLAG", raw)
    assert get_bool_env("SOME_FLAG") is expected
