"""Tests for core/config.py -- Settings validation and AuthConfig."""

from __future__ import annotations

import dataclasses
import logging

import pytest
from pydantic import ValidationError

from core.config import AuthConfig, Settings

_ACCESS = "a" * 40
_REFRESH = "r" * 40


def _settings(**overrides) -> Settings:
    values = {"debug": False, "jwt_secret": _ACCESS, "jwt_refresh_secret": _REFRESH}
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestSecrets:
    @pytest.mark.parametrize("missing", ["jwt_secret", "jwt_refresh_secret"])
    def test_production_refuses_missing_secret(self, missing):
        with pytest.raises(ValidationError, match="required in production mode"):
            _settings(**{missing: ""})

    def test_debug_generates_secrets_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="assetdesk.config"):
            settings = _settings(debug=True, jwt_secret="", jwt_refresh_secret="")
        assert len(settings.jwt_secret) == 64
        assert len(settings.jwt_refresh_secret) == 64
        assert settings.jwt_secret != settings.jwt_refresh_secret
        assert "JWT_SECRET" in caplog.text
        assert "JWT_REFRESH_SECRET" in caplog.text

    def test_short_secret_rejected(self):
        with pytest.raises(ValidationError, match="at least 32 characters"):
            _settings(jwt_secret="too-short")

    def test_equal_secrets_rejected(self):
        with pytest.raises(ValidationError, match="must differ"):
            _settings(jwt_refresh_secret=_ACCESS)


class TestLifetimesAndRounds:
    def test_defaults(self):
        config = _settings().auth_config()
        assert config.access_ttl_seconds == 86400
        assert config.refresh_ttl_seconds == 604800
        assert config.algorithm == "HS256"
        assert config.access_secret == _ACCESS
        assert config.refresh_secret == _REFRESH

    def test_refresh_must_outlive_access(self):
        with pytest.raises(ValidationError, match="must be longer"):
            _settings(jwt_expires_in=3600, jwt_refresh_expires_in=3600)

    @pytest.mark.parametrize("field", ["jwt_expires_in", "jwt_refresh_expires_in"])
    def test_non_positive_lifetime_rejected(self, field):
        with pytest.raises(ValidationError):
            _settings(**{field: 0})

    @pytest.mark.parametrize("rounds", [4, 9, 17])
    def test_bcrypt_rounds_out_of_range(self, rounds):
        with pytest.raises(ValidationError, match="BCRYPT_ROUNDS"):
            _settings(bcrypt_rounds=rounds)

    def test_algorithm_normalised(self):
        assert _settings(jwt_algorithm=" hs512 ").jwt_algorithm == "HS512"

    def test_unsupported_algorithm(self):
        with pytest.raises(ValidationError):
            _settings(jwt_algorithm="RS256")


class TestAuthConfig:
    def test_frozen(self):
        config = AuthConfig(access_secret=_ACCESS, refresh_secret=_REFRESH)
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.access_secret = "x" * 40

    def test_repr_hides_secrets(self):
        text = repr(AuthConfig(access_secret=_ACCESS, refresh_secret=_REFRESH))
        assert _ACCESS not in text
        assert _REFRESH not in text
        assert "HS256" in text
