from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Iterator

import pytest
from redis import Redis

from offlink.config import QueueConfig

DEFAULT_TEST_REDIS_URL = "redis://127.0.0.1:6379/0"


@pytest.fixture(scope="session")
def redis_url() -> str:
    """
    Redis connection URL for tests marked `redis`.

    Prefer setting OFFLINK_TEST_REDIS_URL explicitly.
    """
    return os.environ.get("OFFLINK_TEST_REDIS_URL", DEFAULT_TEST_REDIS_URL)


@pytest.fixture(scope="session")
def redis_client(redis_url: str) -> Iterator[Redis]:
    """
    Session-scoped Redis client for tests.

    We fail fast if Redis is unreachable, so failures are actionable.
    """
    client = Redis.from_url(redis_url, decode_responses=False)
    try:
        client.ping()
    except Exception as exc:  # pragma: no cover
        pytest.fail(
            "Redis test server is not reachable.\n"
            f"- OFFLINK_TEST_REDIS_URL={redis_url!r}\n"
            f"- Underlying error: {exc}",
            pytrace=False,
        )

    yield client
    client.close()


@pytest.fixture
def stream_config_factory(
    redis_client: Redis,
    request: pytest.FixtureRequest,
) -> Iterator[Callable[[], QueueConfig]]:
    """
    Factory fixture creating per-test configs with unique stream keys.
    """
    created: list[str] = []

    def _create() -> QueueConfig:
        stream_key = f"test_stream_{request.node.name[:30]}_{uuid.uuid4().hex[:10]}"
        created.append(stream_key)
        return QueueConfig(name=stream_key)

    yield _create

    for stream_key in created:
        redis_client.delete(stream_key)


@pytest.fixture
def stream_config(stream_config_factory: Callable[[], QueueConfig]) -> QueueConfig:
    return stream_config_factory()
