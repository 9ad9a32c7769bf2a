"""
Unit tests for application settings.
"""

import pytest
from pydantic import ValidationError

from storefront.src.config import Settings, clear_settings_cache, get_settings


class TestDefaults:
    """Tests for default values and computed properties."""

    def test_pinned_test_environment(self, settings):
        assert settings.environment == "test"
        assert settings.rate_limit_enabled is False
        assert settings.cache_enabled is False

    def test_defaults(self):
        settings = Settings()

        assert settings.port == 1337
        assert settings.api_prefix == "/api"
        assert settings.stripe_currency == "eur"
        assert settings.stripe_minimum_amount == 50
        assert settings.cache_resource_ttls["artists-works"] == 7200

    def test_rate_limit_string(self):
        settings = Settings(rate_limit_requests=30, rate_limit_window=10)

        assert settings.rate_limit_string == "30 per 10 second"

    def test_environment_flags(self):
        assert Settings(environment="development").is_development
        assert Settings(environment="production").is_production

    def test_settings_are_cached(self):
        assert get_settings() is get_settings()

    def test_cache_clear_reloads_environment(self, monkeypatch):
        monkeypatch.setenv("STOREFRONT_PORT", "8080")
        clear_settings_cache()

        assert get_settings().port == 8080


class TestStripeSettings:
    """Tests for payment configuration."""

    def test_disabled_without_key(self):
        settings = Settings()

        assert settings.stripe_enabled is False
        assert settings.stripe_mode is None

    @pytest.mark.parametrize("key, mode", [
        ("sk_live_abc", "live"),
        ("sk_test_abc", "test"),
        ("rk_test_abc", "test"),
    ])
    def test_mode_from_key(self, key, mode):
        settings = Settings(stripe_secret_key=key)

        assert settings.stripe_enabled
        assert settings.stripe_mode == mode

    def test_currency_is_lowercased(self):
        assert Settings(stripe_currency="EUR").stripe_currency == "eur"

    def test_currency_must_be_iso(self):
        with pytest.raises(ValidationError):
            Settings(stripe_currency="euro")


class TestValidators:
    """Tests for field validation."""

    def test_log_level_normalised(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            Settings(log_level="VERBOSE")

    def test_unknown_environment(self):
        with pytest.raises(ValidationError):
            Settings(environment="qa")

    def test_unsupported_jwt_algorithm(self):
        with pytest.raises(ValidationError):
            Settings(jwt_algorithm="none")

    def test_short_jwt_secret(self):
        with pytest.raises(ValidationError):
            Settings(jwt_secret_key="short")

    def test_empty_cors_origins_allow_all(self):
        assert Settings(cors_origins=[]).cors_origins == ["*"]

    def test_s3_needs_endpoint_and_bucket(self):
        assert not Settings(s3_endpoint="https://s3.example.com").s3_enabled
        assert Settings(s3_endpoint="https://s3.example.com", s3_bucket="prints").s3_enabled
