from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

import carebook.rate_limiter as rate_limiter
from carebook.rate_limiter import check_rate_limit, create_rate_limiter
from carebook.shared.errors import RateLimited


@pytest.fixture(autouse=True)
def fresh_counters(monkeypatch):
    monkeypatch.setattr(rate_limiter, "memory_cache", {})


def fake_request(ip="203.0.113.7"):
    return SimpleNamespace(
        headers={}, client=SimpleNamespace(host=ip), state=SimpleNamespace()
    )


def test_memory_only_counting_without_redis():
    results = [check_rate_limit("booking:1.2.3.4", 3, 60, None) for _ in range(4)]

    assert [allowed for allowed, _, _ in results] == [True, True, True, False]
    assert results[-1][1] == 3
    assert 0 < results[-1][2] <= 60


def test_separate_keys_do_not_share_a_window():
    for _ in range(2):
        check_rate_limit("booking:a", 2, 60, None)
    assert check_rate_limit("booking:b", 2, 60, None)[0] is True


def test_window_resumes_from_redis_count():
    client = MagicMock()
    client.get.return_value = "5"
    client.ttl.return_value = 30

    allowed, count, ttl = check_rate_limit("booking:resume", 5, 60, client)

    assert allowed is False
    assert count == 5
    assert ttl == 30


def test_redis_errors_fall_back_to_memory():
    client = MagicMock()
    client.get.side_effect = ConnectionError("redis down")
    client.set.side_effect = ConnectionError("redis down")

    allowed, count, _ = check_rate_limit("booking:flaky", 5, 60, client)

    assert allowed is True
    assert count == 1


@pytest.mark.asyncio
async def test_dependency_raises_rate_limited(monkeypatch):
    def no_redis():
        raise ConnectionError("redis unavailable")

    monkeypatch.setattr(rate_limiter, "get_redis_client", no_redis)
    limiter = create_rate_limiter(limit=2, window_seconds=60, key_prefix="booking")
    request = fake_request()

    await limiter(request)
    await limiter(request)
    assert request.state.rate_limit_remaining == 0

    with pytest.raises(RateLimited) as exc_info:
        await limiter(request)
    assert exc_info.value.status_code == 429


@pytest.mark.asyncio
async def test_forwarded_for_identifies_the_client(monkeypatch):
    monkeypatch.setattr(rate_limiter, "get_redis_client", lambda: None)
    limiter = create_rate_limiter(limit=1, window_seconds=60, key_prefix="booking")

    first = fake_request()
    first.headers = {"X-Forwarded-For": "198.51.100.1, 10.0.0.1"}
    await limiter(first)

    assert "booking:198.51.100.1" in rate_limiter.memory_cache
