"""
Unit tests for the application configuration (Settings).

Tests cover:
- Default values
- Polling-context validation (role, admin scope, investor id)
"""

import pytest

from invest_sync.core.config import Settings
from invest_sync.models import UserRole


def make_settings(**overrides) -> Settings:
    """Settings from defaults plus ``overrides`` only, ignoring any local .env."""
    return Settings(_env_file=None, **overrides)  # type: ignore[call-arg]


class TestSettingsDefaults:
    def test_api_version_prefix(self):
        assert make_settings().API_V1_STR == "/api/v1"

    def test_cache_and_propagation_defaults(self):
        s = make_settings()
        assert s.CACHE_MAX_AGE == 300.0
        assert s.AUTO_REFRESH_INTERVAL == 30.0
        assert s.AUTO_REFRESH_MAX_RETRIES == 5
        assert s.DEBOUNCE_DELAY == 1.0
        assert s.CROSS_TAB_KEY == "realtime_update"

    def test_circuit_breaker_settings_have_defaults(self):
        s = make_settings()
        assert s.CB_FAILURE_THRESHOLD > 0
        assert s.CB_RECOVERY_TIMEOUT > 0

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("CACHE_MAX_AGE", "60")
        monkeypatch.setenv("AUTO_REFRESH_ENABLED", "false")
        s = make_settings()
        assert s.CACHE_MAX_AGE == 60.0
        assert s.AUTO_REFRESH_ENABLED is False


class TestRefreshContextValidation:
    def test_superadmin_needs_nothing_else(self):
        assert make_settings(REFRESH_ROLE="superadmin").REFRESH_ROLE == "superadmin"

    def test_admin_without_scope_raises(self):
        with pytest.raises(Exception, match="REFRESH_SCOPE_ID"):
            make_settings(REFRESH_ROLE="admin")

    def test_admin_with_scope(self):
        s = make_settings(REFRESH_ROLE="admin", REFRESH_SCOPE_ID="sc-1")
        assert s.REFRESH_SCOPE_ID == "sc-1"

    def test_investor_without_user_raises(self):
        with pytest.raises(Exception, match="REFRESH_USER_ID"):
            make_settings(REFRESH_ROLE="investor")

    def test_unknown_role_raises(self):
        with pytest.raises(Exception, match="REFRESH_ROLE must be one of"):
            make_settings(REFRESH_ROLE="auditor")

    def test_every_user_role_is_accepted(self):
        for role in UserRole:
            overrides = {"REFRESH_SCOPE_ID": "sc-1", "REFRESH_USER_ID": "u-1"}
            assert make_settings(REFRESH_ROLE=role.value, **overrides).REFRESH_ROLE == role.value
