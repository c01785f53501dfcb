import httpx
import pytest

from moltbot_client import health
from moltbot_client.polling import max_attempts, wait_until_ready


def test_max_attempts_rounds_up() -> None:
    assert max_attempts(30, 1) == 30
    assert max_attempts(30, 4) == 8
    assert max_attempts(1, 5) == 1


def test_max_attempts_rejects_zero_interval() -> None:
    with pytest.raises(ValueError):
        max_attempts(30, 0)


def test_wait_stops_at_first_success() -> None:
    probes: list[str] = []
    sleeps: list[float] = []

    def _probe(url: str) -> bool:
        probes.append(url)
        return len(probes) == 4

    outcome = wait_until_ready(
        "http://localhost:18789/health",
        timeout_s=30,
        interval_s=1,
        probe_fn=_probe,
        sleep=sleeps.append,
    )
    assert outcome.ready
    assert outcome.attempts == 4
    assert len(probes) == 4
    assert sleeps == [1, 1, 1]


def test_wait_gives_up_after_budget() -> None:
    calls = {"count": 0}
    sleeps: list[float] = []

    def _probe(_url: str) -> bool:
        calls["count"] += 1
        return False

    outcome = wait_until_ready("http://x/health", timeout_s=30, interval_s=1, probe_fn=_probe, sleep=sleeps.append)
    assert not outcome.ready
    assert calls["count"] == 30
    assert outcome.attempts == outcome.max_attempts == 30
    assert len(sleeps) == 29


def test_wait_reports_each_attempt() -> None:
    seen: list[tuple[int, bool]] = []
    wait_until_ready(
        "http://x/health",
        timeout_s=3,
        interval_s=1,
        probe_fn=lambda _url: False,
        sleep=lambda _s: None,
        on_attempt=lambda attempt, healthy: seen.append((attempt, healthy)),
    )
    assert seen == [(1, False), (2, False), (3, False)]


def test_probe_accepts_any_2xx(monkeypatch) -> None:
    captured = {}

    def _fake_get(url, *, timeout):
        captured["timeout"] = timeout
        return httpx.Response(204)

    monkeypatch.setattr(httpx, "get", _fake_get)
    assert health.probe("http://localhost:18789/health")
    assert captured["timeout"] == 1.0


def test_probe_rejects_error_status(monkeypatch) -> None:
    monkeypatch.setattr(httpx, "get", lambda *_args, **_kwargs: httpx.Response(503))
    assert not health.probe("http://localhost:18789/health")


def test_probe_treats_connection_errors_as_unhealthy(monkeypatch) -> None:
    def _fake_get(url, **_kwargs):
        raise httpx.ConnectError("connection refused", request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx, "get", _fake_get)
    assert not health.probe("http://localhost:18789/health")


def test_probe_treats_timeouts_as_unhealthy(monkeypatch) -> None:
    def _fake_get(url, **_kwargs):
        raise httpx.ReadTimeout("timed out", request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx, "get", _fake_get)
    assert not health.probe("http://localhost:18789/health")
