import os

os.environ.setdefault("APP_OTEL_ENABLED", "false")
os.environ.setdefault("APP_SEED_DATA", "false")

import mongomock  # noqa: E402
import pytest  # noqa: E402

from bookstore.allocator import IdAllocator  # noqa: E402
from bookstore.db import prepare_database  # noqa: E402
from bookstore.repository import BookRepository  # noqa: E402


@pytest.fixture()
def collection():
    client = mongomock.MongoClient()
    yield prepare_database(client, "bookstore-test", "books")
    client.close()


@pytest.fixture()
def allocator(collection):
    return IdAllocator(collection)


@pytest.fixture()
def repository(collection, allocator):
    return BookRepository(collection, allocator)


@pytest.fixture()
def anyio_backend():
    return "asyncio"
