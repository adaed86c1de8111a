import pytest

from datalayer.data_store import DataStore
from tests.fake_remote import InMemoryRemoteStore, seed_rows


@pytest.fixture
def remote():
    return InMemoryRemoteStore()


@pytest.fixture
def seeded_remote(remote):
    seed_rows(remote)
    return remote


@pytest.fixture
async def store(remote):
    data_store = DataStore(remote)
    await data_store.start()
    yield data_store
    await data_store.close()


@pytest.fixture
async def seeded_store(seeded_remote):
    data_store = DataStore(seeded_remote)
    await data_store.start()
    yield data_store
    await data_store.close()


