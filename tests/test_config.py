"""Tests for configuration validation.

Invalid settings must be rejected when the application starts.
"""

import pytest
from pydantic import ValidationError

from deltapay.core.config import Settings

GOOD_SECRET = "a-reasonably-long-signing-secret-0123456789-" + "Zq7" * 8


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **{"jwt_secret_key": GOOD_SECRET, **overrides})


class TestJwtSettings:
    def test_valid_secret_accepted(self):
        assert _settings().jwt_secret_key == GOOD_SECRET

    def test_short_secret_rejected(self):
        with pytest.raises(ValidationError, match="at least 64 characters"):
            _settings(jwt_secret_key="too-short")

    def test_secret_shorter_than_hs512_block_rejected(self):
        with pytest.raises(ValidationError, match="at least 64 characters"):
            _settings(jwt_secret_key=GOOD_SECRET[:63])

    @pytest.mark.parametrize("algorithm", ["HS256", "HS384", "HS512"])
    def test_hmac_algorithms_accepted(self, algorithm):
        assert _settings(jwt_algorithm=algorithm).jwt_algorithm == algorithm

    @pytest.mark.parametrize("algorithm", ["none", "RS256", "hs512"])
    def test_other_algorithms_rejected(self, algorithm):
        with pytest.raises(ValidationError):
            _settings(jwt_algorithm=algorithm)


class TestPolicySettings:
    def test_defaults(self):
        settings = _settings(rate_limit_enabled=True)

        assert settings.lockout_threshold == 5
        assert settings.lockout_duration_minutes == 30
        assert settings.session_token_expire_hours == 24
        assert settings.jwt_algorithm == "HS512"
        assert settings.storage_backend == "memory"
        assert settings.log_retention_days == 90

    @pytest.mark.parametrize(
        "field", ["lockout_threshold", "lockout_duration_minutes", "session_token_expire_hours"]
    )
    def test_non_positive_values_rejected(self, field):
        with pytest.raises(ValidationError, match="positive integer"):
            _settings(**{field: 0})

    def test_unknown_storage_backend_rejected(self):
        with pytest.raises(ValidationError):
            _settings(storage_backend="redis")

    def test_cors_origins_list(self):
        settings = _settings(cors_origins=" https://pay.example.com, ,http://localhost:3000 ")

        assert settings.cors_origins_list == ["https://pay.example.com", "http://localhost:3000"]


class TestSecurityWarnings:
    def test_low_variety_secret(self):
        warnings = _settings(jwt_secret_key="a" * 64).check_security_configuration()

        assert "JWT_SECRET_KEY has very low character variety" in warnings

    def test_placeholder_secret(self):
        warnings = _settings(
            jwt_secret_key="your-super-secret-key-change-me-please-" + "0123456789" * 3
        ).check_security_configuration()

        assert "JWT_SECRET_KEY looks like a placeholder value" in warnings

    def test_disabled_rate_limiting(self):
        warnings = _settings(rate_limit_enabled=False).check_security_configuration()

        assert "Rate limiting is disabled" in warnings

    def test_orphan_bootstrap_password(self):
        warnings = _settings(bootstrap_employee_password="x").check_security_configuration()

        assert any("BOOTSTRAP_EMPLOYEE_PASSWORD" in w for w in warnings)

    def test_database_backend_without_issues(self):
        warnings = _settings(
            storage_backend="database", rate_limit_enabled=True, debug=False
        ).check_security_configuration()

        assert warnings == []
