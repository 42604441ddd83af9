"""Tests for Settings validation."""
from decimal import Decimal

import pytest
from pydantic import ValidationError

from rpay.core.config import Settings


REQUIRED = {
    "session_secret": "a-long-enough-session-secret",
    "admin_password": "strong-admin-password",
    "atlantic_api_key": "upstream-key",
}


def _settings(**overrides):
    return Settings(_env_file=None, **{**REQUIRED, **overrides})


def test_defaults():
    s = _settings()
    assert s.port == 3000
    assert s.settlement_fee_rate == Decimal("0.014")
    assert s.settlement_fee_flat == 300
    assert s.cors_origins_list == ["*"]


def test_short_session_secret_rejected():
    with pytest.raises(ValidationError):
        _settings(session_secret="short")


@pytest.mark.parametrize("password", ["", "admin", "admin123", "password"])
def test_weak_admin_password_rejected(password):
    with pytest.raises(ValidationError):
        _settings(admin_password=password)


def test_base_url_trailing_slash_stripped():
    assert _settings(atlantic_base_url="https://h2h.example/").atlantic_base_url == "https://h2h.example"


def test_list_properties():
    s = _settings(cors_origins="https://a.example, https://b.example,", trusted_proxy_ips="10.0.0.1, 10.0.0.2")
    assert s.cors_origins_list == ["https://a.example", "https://b.example"]
    assert s.trusted_proxy_ips_set == {"10.0.0.1", "10.0.0.2"}
