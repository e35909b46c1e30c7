import importlib
import os
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))


def reload_config_module():
    config_module = sys.modules.get("receipt_reminders.config")
    if config_module:
        config_module.get_settings.cache_clear()
        sys.modules.pop("receipt_reminders.config", None)
    return importlib.import_module("receipt_reminders.config")


def test_missing_cron_secret_fails_closed(monkeypatch):
    monkeypatch.setenv("CRON_SECRET", "")

    config_module = reload_config_module()
    config_module.get_settings.cache_clear()

    with pytest.raises(Exception, match="cron_secret|CRON_SECRET"):
        config_module.get_settings()


def test_placeholder_cron_secret_fails_closed(monkeypatch):
    monkeypatch.setenv("CRON_SECRET", "changeme-in-production-changeme-in-production")

    config_module = reload_config_module()
    config_module.get_settings.cache_clear()

    with pytest.raises(Exception, match="cron_secret|CRON_SECRET"):
        config_module.get_settings()


def test_low_entropy_cron_secret_fails_closed(monkeypatch):
    monkeypatch.setenv("CRON_SECRET", "a" * 64)

    config_module = reload_config_module()
    config_module.get_settings.cache_clear()

    with pytest.raises(Exception, match="CRON_SECRET entropy"):
        config_module.get_settings()


def test_non_positive_time_budget_rejected(monkeypatch):
    monkeypatch.setenv(
        "CRON_SECRET",
        "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef",
    )
    monkeypatch.setenv("RUN_TIME_BUDGET_SECONDS", "0")

    config_module = reload_config_module()
    config_module.get_settings.cache_clear()

    with pytest.raises(Exception, match="RUN_TIME_BUDGET_SECONDS"):
        config_module.get_settings()


def test_strong_cron_secret_passes(monkeypatch):
    monkeypatch.setenv(
        "CRON_SECRET",
        "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef",
    )
    monkeypatch.delenv("RUN_TIME_BUDGET_SECONDS", raising=False)

    config_module = reload_config_module()
    config_module.get_settings.cache_clear()
    settings = config_module.get_settings()

    assert settings.cron_secret
    assert settings.run_time_budget_seconds is None
