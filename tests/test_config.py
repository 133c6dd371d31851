"""
tests/test_config.py -- Unit tests for core/config.py Settings validation.

Covers:
  - dev mode generates a SECRET_KEY when none is set
  - production mode refuses to start without SECRET_KEY
  - short keys and non-positive token lifetimes are rejected
  - a seed admin password the login endpoint would refuse is rejected
  - environment variables override defaults
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("DEBUG", "SECRET_KEY", "TOKEN_EXPIRE_SECONDS", "JWT_ISSUER", "ADMIN_PASSWORD"):
        monkeypatch.delenv(name, raising=False)


def test_debug_generates_key():
    settings = Settings(_env_file=None, debug=True)
    assert len(settings.secret_key) >= 32


def test_production_requires_key():
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(_env_file=None, debug=False)


def test_short_key_rejected():
    with pytest.raises(ValidationError, match="at least 32"):
        Settings(_env_file=None, secret_key="too-short")


def test_non_positive_lifetime_rejected():
    with pytest.raises(ValidationError, match="TOKEN_EXPIRE_SECONDS"):
        Settings(_env_file=None, secret_key="k" * 32, token_expire_seconds=0)


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "s" * 40)
    monkeypatch.setenv("TOKEN_EXPIRE_SECONDS", "120")
    monkeypatch.setenv("JWT_ISSUER", "issuer-under-test")
    settings = Settings(_env_file=None)
    assert settings.secret_key == "s" * 40
    assert settings.token_expire_seconds == 120
    assert settings.jwt_issuer == "issuer-under-test"
    assert settings.jwt_audience == "gatekeeper-clients"


@pytest.mark.parametrize("password", ["short", "x" * 101])
def test_unusable_admin_password_rejected(password):
    with pytest.raises(ValidationError, match="ADMIN_PASSWORD"):
        Settings(_env_file=None, secret_key="k" * 32, admin_email="root@example.com", admin_password=password)


def test_admin_seed_disabled_or_valid_is_accepted():
    assert Settings(_env_file=None, secret_key="k" * 32).admin_password == ""
    assert Settings(_env_file=None, secret_key="k" * 32, admin_password="Root123*").admin_password == "Root123*"
