from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import mongomock
import pytest
from pymongo.errors import ServerSelectionTimeoutError

from bookstore.allocator import START_ID, IdAllocator


@pytest.fixture()
def ids():
    # No indexes: the documents below only carry an id.
    return mongomock.MongoClient().db.ids


def test_empty_store_starts_at_base_and_counts_up(allocator):
    assert allocator.next_id() == "1000000"
    assert allocator.next_id() == "1000001"


def test_resumes_after_highest_stored_id(ids):
    ids.insert_many([{"id": "1000004"}, {"id": "1000012"}, {"id": "1000009"}])
    allocator = IdAllocator(ids)
    assert allocator.next_id() == "1000013"
    assert allocator.next_id() == "1000014"


def test_max_is_numeric_not_lexicographic(ids):
    ids.insert_many([{"id": "9999999"}, {"id": "10000000"}])
    assert IdAllocator(ids).next_id() == "10000001"


def test_non_decimal_ids_are_ignored(ids):
    ids.insert_many([{"id": "abc"}, {"id": "12x"}])
    assert IdAllocator(ids).next_id() == str(START_ID)


def test_deleted_top_id_is_not_reused(ids):
    allocator = IdAllocator(ids)
    ids.insert_one({"id": allocator.next_id()})
    ids.delete_many({})
    assert allocator.next_id() == "1000001"


def test_store_failure_falls_back_to_counter():
    broken = MagicMock()
    broken.aggregate.side_effect = ServerSelectionTimeoutError("no servers")
    allocator = IdAllocator(broken, start=42)
    assert allocator.next_id() == "42"
    assert allocator.next_id() == "43"


def test_concurrent_callers_get_distinct_ids(allocator):
    with ThreadPoolExecutor(max_workers=16) as pool:
        issued = list(pool.map(lambda _: allocator.next_id(), range(200)))
    assert len(set(issued)) == 200
    assert sorted(issued) == [str(n) for n in range(START_ID, START_ID + 200)]
