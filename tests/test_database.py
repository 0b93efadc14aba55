from unittest.mock import MagicMock

import mongomock
import pytest
from pymongo.errors import ServerSelectionTimeoutError

from bookstore.allocator import IdAllocator
from bookstore.db import SAMPLE_BOOKS, ping, prepare_database, seed_books
from bookstore.errors import StoreUnavailable


def test_prepare_database_creates_collection_and_indexes():
    client = mongomock.MongoClient()
    assert "information" not in client["exercise-2"].list_collection_names()

    collection = prepare_database(client, "exercise-2", "information")

    assert "information" in client["exercise-2"].list_collection_names()
    indexes = collection.index_information()
    assert indexes["id_unique"]["unique"] is True
    assert indexes["book_identity_unique"]["unique"] is True


def test_prepare_database_is_idempotent():
    client = mongomock.MongoClient()
    prepare_database(client, "exercise-2", "information")
    collection = prepare_database(client, "exercise-2", "information")
    assert collection.name == "information"


def test_seed_books_inserts_once(collection, allocator):
    assert seed_books(collection, allocator) == len(SAMPLE_BOOKS)
    assert seed_books(collection, IdAllocator(collection)) == 0

    ids = sorted(doc["id"] for doc in collection.find({}, {"id": 1}))
    assert ids == ["1000000", "1000001", "1000002"]


def test_ping_raises_store_unavailable():
    client = MagicMock()
    client.admin.command.side_effect = ServerSelectionTimeoutError("no servers")
    with pytest.raises(StoreUnavailable):
        ping(client)
