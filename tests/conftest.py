"""Shared fixtures."""

from datetime import datetime

import pytest

from config import Config, SyncConfig, StorageConfig
from domain import FixedClock
from infrastructure import CalDAVClient, JsonFileRepository
from tests.fake_caldav import FakeCalDAVServer


# A Wednesday, away from any DST transition.
START = datetime(2024, 6, 12, 10, 0, 0)


@pytest.fixture
def clock():
    return FixedClock(START)


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / 'data'


@pytest.fixture
def repository(data_dir):
    return JsonFileRepository(data_dir)


@pytest.fixture
def local_config(data_dir):
    return Config(storage=StorageConfig(data_dir=str(data_dir)))


@pytest.fixture
def caldav_server():
    server = FakeCalDAVServer().start()
    yield server
    server.stop()


@pytest.fixture
def sync_config(data_dir, caldav_server):
    return Config(
        default_list='remote',
        sync=SyncConfig(
            enabled=True,
            url=caldav_server.url,
            username=caldav_server.username,
            password=caldav_server.password,
            timeout=5
        ),
        storage=StorageConfig(data_dir=str(data_dir))
    )


@pytest.fixture
def client(caldav_server, clock):
    return CalDAVClient(
        caldav_server.url,
        caldav_server.username,
        caldav_server.password,
        timeout=5,
        clock=clock
    )
