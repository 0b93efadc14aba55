import logging
import threading

from pymongo.collection import Collection
from pymongo.errors import PyMongoError

START_ID = 1_000_000

# IDs are strings, so convert before sorting to get the numeric maximum.
# Eighteen digits always fit in a signed 64-bit long.
MAX_ID_PIPELINE = [
    {"$match": {"id": {"$regex": "^[0-9]{1,18}$"}}},
    {"$addFields": {"n": {"$toLong": "$id"}}},
    {"$sort": {"n": -1}},
    {"$limit": 1},
    {"$project": {"_id": 0, "n": 1}},
]

logger = logging.getLogger("bookstore.allocator")


class IdAllocator:
    """Hands out decimal record IDs.

    The store's highest numeric ``id`` wins over the in-process counter, so a
    restarted process resumes after the last stored record. When the lookup
    fails or the store is empty the counter alone is used. The counter never
    moves backwards, so a deleted top record does not get its ID reused.
    """

    def __init__(self, collection: Collection, start: int = START_ID):
        self.collection = collection
        self._counter = start
        self._lock = threading.Lock()

    def next_id(self) -> str:
        stored_max = self._max_stored_id()
        with self._lock:
            if stored_max is not None and stored_max >= self._counter:
                self._counter = stored_max + 1
            book_id = self._counter
            self._counter += 1
        return str(book_id)

    def _max_stored_id(self) -> int | None:
        try:
            top = list(self.collection.aggregate(MAX_ID_PIPELINE))
        except PyMongoError as exc:
            logger.warning("Max id lookup failed, using in-process counter: %s", exc)
            return None
        return int(top[0]["n"]) if top else None
