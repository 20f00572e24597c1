from __future__ import annotations

import os
import time
import uuid
from collections.abc import Callable, Iterator
from functools import lru_cache

import pytest

from todoagent.observability import reset_metrics

DEFAULT_REDIS_URL = "redis://localhost:6379/0"


def _wait_until(timeout_s: float, pause_s: float, check: Callable[[], bool]) -> bool:
    deadline = time.time() + timeout_s
    while time.time() < deadline:
        if check():
            return True
        time.sleep(pause_s)
    return False


def _redis_ping(url: str) -> bool:
    try:
        import redis

        r = redis.Redis.from_url(url, socket_connect_timeout=0.5)
        return bool(r.ping())
    except Exception:
        return False


@lru_cache(maxsize=1)
def _reachable_redis_url() -> str | None:
    env_url = os.getenv("REDIS_URL")
    if env_url and _wait_until(5.0, 0.2, lambda: _redis_ping(env_url)):
        return env_url
    if _redis_ping(DEFAULT_REDIS_URL):
        return DEFAULT_REDIS_URL
    return None


@pytest.fixture(scope="session")
def redis_url() -> str:
    """Provide a reachable Redis URL (REDIS_URL first, then localhost) or skip."""
    url = _reachable_redis_url()
    if url is None:
        pytest.skip("Redis not available; set REDIS_URL or start a local Redis")
    return url


@pytest.fixture()
def key_prefix() -> str:
    # unique per test so parallel runs and leftovers never collide
    return f"test:todo:{uuid.uuid4().hex[:12]}"


@pytest.fixture(autouse=True)
def _fresh_metrics() -> Iterator[None]:
    reset_metrics()
    yield
    reset_metrics()


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip tests marked ``redis`` up front when no Redis is reachable."""
    if _reachable_redis_url() is not None:
        return
    skip = pytest.mark.skip(reason="Redis not available; set REDIS_URL or start a local Redis")
    for item in items:
        if "redis" in item.keywords:
            item.add_marker(skip)
