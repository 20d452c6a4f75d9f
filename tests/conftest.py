import pytest

from cacheperf import create_app
from cacheperf.cache import RegionCache
from cacheperf.config import Settings
from cacheperf.db import connect, init_db

from .fakes import FakeRedis


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def region_cache(fake_redis):
    return RegionCache(fake_redis)


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "performance.db")
    init_db(path)
    return path


@pytest.fixture
def empty_db_path(tmp_path):
    path = str(tmp_path / "empty.db")
    init_db(path, seed=False)
    return path


@pytest.fixture
def db_conn(db_path):
    conn = connect(db_path)
    yield conn
    conn.close()


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "app.db"))
    return Settings()


@pytest.fixture
def app(settings, fake_redis):
    return create_app(settings, redis_client=fake_redis, sleep=lambda seconds: None)


@pytest.fixture
def client(app):
    return app.test_client()
