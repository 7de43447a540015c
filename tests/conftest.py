import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import Iterator

import pytest

os.environ.setdefault("ALLOWED_HOSTS", "testserver")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from fastapi.testclient import TestClient  # noqa: E402

from linkt.config import Settings, get_settings  # noqa: E402
from linkt.main import app, get_store  # noqa: E402
from linkt.store import ShareStore  # noqa: E402

CLEANUP_SECRET = "test-secret"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc))


def make_store(tmp_path, clock=None, **kwargs) -> ShareStore:
    store = ShareStore(tmp_path / "uploads", tmp_path / "data" / "shares.db", clock=clock, **kwargs)
    asyncio.run(store.init())
    return store


@pytest.fixture()
def store(tmp_path, clock) -> ShareStore:
    return make_store(tmp_path, clock)


@pytest.fixture()
def client(store: ShareStore) -> Iterator[TestClient]:
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_settings] = lambda: Settings(cleanup_secret=CLEANUP_SECRET)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def stored_files(store: ShareStore):
    if not store.root.exists():
        return []
    return sorted(p.relative_to(store.root).as_posix() for p in store.root.rglob("*") if p.is_file())
