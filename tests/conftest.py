from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from offlink.config import QueueConfig
from offlink.queue import SqlQueueStore
from offlink.serializer import OperationSerializer


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """
    Skip tests that need a live Redis server unless selected with `-m redis`.
    """
    expr = getattr(config.option, "markexpr", "") or ""
    if "redis" in expr:
        return

    skip_redis = pytest.mark.skip(
        reason="Skipped: run with `pytest -m redis` against a live Redis server."
    )
    for item in items:
        if item.get_closest_marker("redis") is not None:
            item.add_marker(skip_redis)


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'offline.db'}"


@pytest.fixture
def engine(db_url: str) -> Iterator[Engine]:
    eng = create_engine(db_url)
    yield eng
    eng.dispose()


@pytest.fixture
def queue_config() -> QueueConfig:
    return QueueConfig(name="offline_mutations")


@pytest.fixture
def store(engine: Engine, queue_config: QueueConfig) -> SqlQueueStore:
    return SqlQueueStore(engine, queue_config)


@pytest.fixture
def serializer() -> OperationSerializer:
    return OperationSerializer()

