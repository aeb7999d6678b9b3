from datetime import datetime, timedelta, timezone

import pytest

from anondrop.lifecycle import LifecycleManager
from anondrop.repository import RecordRepository

from fakes import FakeObjectStore, FlakyMetadataStore, FrozenClock

OBJECT_TTL = timedelta(hours=1)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def metadata_store():
    return FlakyMetadataStore()


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def repository(metadata_store):
    return RecordRepository(metadata_store)


@pytest.fixture
def manager(repository, object_store, clock):
    return LifecycleManager(
        repository,
        object_store,
        object_ttl=OBJECT_TTL,
        signed_url_ttl=3600,
        clock=clock,
    )
