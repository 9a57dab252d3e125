from __future__ import annotations

import pytest

from folio.config import get_settings


@pytest.fixture
def fresh_settings():
  get_settings.cache_clear()
  yield get_settings
  get_settings.cache_clear()


def test_env_overrides_defaults(monkeypatch, fresh_settings) -> None:
  monkeypatch.setenv("FOLIO_REDIS_URL", "redis://cache:6379/2")
  monkeypatch.setenv("FOLIO_LOGIN_LOCK_THRESHOLD", "7")
  monkeypatch.setenv("FOLIO_RENDER_READY_TIMEOUT", "12.5")
  monkeypatch.setenv("FOLIO_ALLOWED_ORIGINS", "https://a.example, https://b.example")
  monkeypatch.delenv("FOLIO_BROKER_URL", raising=False)

  settings = fresh_settings()

  assert settings.redis_url == "redis://cache:6379/2"
  assert settings.broker_url == settings.redis_url
  assert settings.login_lock_threshold == 7
  assert settings.render_timeouts.ready == 12.5
  assert settings.allowed_origins == ("https://a.example", "https://b.example")


@pytest.mark.parametrize(("name", "value"), [("FOLIO_TASK_SERVICE_PROVIDER", "cloud-tasks"), ("FOLIO_JOB_MAX_ATTEMPTS", "0"), ("FOLIO_RENDER_FONTS_TIMEOUT", "-1")])
def test_invalid_values_fail_fast(monkeypatch, fresh_settings, name, value) -> None:
  monkeypatch.setenv(name, value)
  with pytest.raises(ValueError):
    fresh_settings()
