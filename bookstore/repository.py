import logging
import re
from collections.abc import Callable
from typing import Any

from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from .allocator import IdAllocator
from .entities import BookRecord
from .errors import BadRequest, DuplicateRecord, NotFound
from .otel import book_writes

# "edition" is matched too so documents written with a separate edition key stay searchable.
SEARCH_FIELDS = ("title", "author", "isbn", "edition")

_DECIMAL_ID = re.compile(r"^[0-9]+$")

logger = logging.getLogger("bookstore.repository")


class BookRepository:
    def __init__(self, collection: Collection, allocator: IdAllocator):
        self.collection = collection
        self.allocator = allocator

    def exists(self, candidate: BookRecord) -> bool:
        return self.collection.find_one(candidate.comparable(), {"_id": 1}) is not None

    def insert(self, fields: dict[str, Any], book_id: str = "") -> BookRecord:
        if book_id and not _DECIMAL_ID.match(book_id):
            raise BadRequest("Book id must be a decimal number")

        candidate = BookRecord(id=book_id, **fields)
        if self.exists(candidate):
            raise DuplicateRecord(candidate.title, candidate.author)

        record = candidate.model_copy(update={"id": book_id or self.allocator.next_id()})
        try:
            self.collection.insert_one(record.to_document())
        except DuplicateKeyError as exc:
            # Lost a race against a concurrent writer, or the id is taken.
            raise DuplicateRecord(record.title, record.author) from exc
        logger.info("book.created", extra={"book_id": record.id})
        book_writes.add(1, {"operation": "create"})
        return record

    def update_by_id(self, book_id: str, fields: dict[str, Any]) -> BookRecord:
        record = BookRecord(id=book_id, **fields)
        try:
            result = self.collection.update_one({"id": book_id}, {"$set": record.comparable()})
        except DuplicateKeyError as exc:
            raise DuplicateRecord(record.title, record.author) from exc
        if result.matched_count == 0:
            raise NotFound(book_id)
        logger.info("book.updated", extra={"book_id": book_id})
        book_writes.add(1, {"operation": "update"})
        return record

    def delete_by_id(self, book_id: str) -> None:
        result = self.collection.delete_one({"id": book_id})
        if result.deleted_count == 0:
            raise NotFound(book_id)
        logger.info("book.deleted", extra={"book_id": book_id})
        book_writes.add(1, {"operation": "delete"})

    def get_by_id(self, book_id: str) -> BookRecord:
        document = self.collection.find_one({"id": book_id}, {"_id": 0})
        if document is None:
            raise NotFound(book_id)
        return BookRecord.from_document(document)

    def list_all(self) -> list[BookRecord]:
        return [BookRecord.from_document(doc) for doc in self.collection.find({}, {"_id": 0})]

    def search(self, query: str) -> list[BookRecord]:
        """Case-insensitive substring match over title, author, ISBN and edition.

        The query is escaped, so ``"c++"`` matches literally rather than as a
        pattern.
        """
        pattern = re.escape(query)
        search_filter = {"$or": [{field: {"$regex": pattern, "$options": "i"}} for field in SEARCH_FIELDS]}
        return [BookRecord.from_document(doc) for doc in self.collection.find(search_filter, {"_id": 0})]

    def group_by_author(self) -> dict[str, list[str]]:
        return self._group_titles(lambda record: record.author)

    def group_by_year(self) -> dict[str, list[str]]:
        return self._group_titles(lambda record: str(record.year))

    def _group_titles(self, key: Callable[[BookRecord], str]) -> dict[str, list[str]]:
        groups: dict[str, list[str]] = {}
        for record in self.list_all():
            if not record.title or not record.isbn:
                continue
            groups.setdefault(key(record), []).append(record.title)
        return groups
