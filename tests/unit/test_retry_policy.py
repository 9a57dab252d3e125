from __future__ import annotations

from folio.jobs.retry import RetryPolicy


def test_delay_doubles_and_caps() -> None:
  policy = RetryPolicy(max_attempts=10, base_delay=2.0, max_delay=20.0, jitter=0.0)
  assert [policy.delay_for(attempt) for attempt in range(1, 7)] == [2.0, 4.0, 8.0, 16.0, 20.0, 20.0]


def test_jitter_adds_at_most_its_fraction() -> None:
  policy = RetryPolicy(base_delay=10.0, jitter=0.1, rng=lambda: 1.0)
  assert policy.delay_for(1) == 11.0


def test_should_retry_stops_at_max_attempts() -> None:
  policy = RetryPolicy(max_attempts=3)
  assert [policy.should_retry(attempt) for attempt in (1, 2, 3)] == [True, True, False]


def test_from_settings(settings) -> None:
  policy = RetryPolicy.from_settings(settings)
  assert policy.max_attempts == settings.job_max_attempts
  assert policy.base_delay == settings.job_backoff_base_seconds
