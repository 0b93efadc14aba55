import logging
from typing import Optional

from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import OperationFailure, PyMongoError

from .allocator import IdAllocator
from .config import get_settings
from .entities import COMPARABLE_FIELDS
from .errors import DuplicateRecord, StoreUnavailable
from .repository import BookRepository

logger = logging.getLogger("bookstore.db")

SAMPLE_BOOKS = [
    {"title": "The Vortex", "author": "José Eustasio Rivera", "isbn": "958-30-0804-4", "pages": 292, "year": 1924},
    {"title": "Frankenstein", "author": "Mary Shelley", "isbn": "978-3-649-64609-9", "pages": 280, "year": 1818},
    {"title": "The Black Cat", "author": "Edgar Allan Poe", "isbn": "978-3-99168-238-7", "pages": 280, "year": 1843},
]

_client = None
_collection = None
_allocator = None


def get_client(uri: Optional[str] = None) -> MongoClient:
    global _client
    if _client is None:
        settings = get_settings()
        _client = MongoClient(
            uri or settings.database_uri,
            serverSelectionTimeoutMS=settings.connect_timeout_ms,
            connectTimeoutMS=settings.connect_timeout_ms,
        )
    return _client


def get_collection() -> Collection:
    global _collection
    if _collection is None:
        settings = get_settings()
        _collection = get_client()[settings.database_name][settings.collection_name]
    return _collection


def get_allocator() -> IdAllocator:
    global _allocator
    if _allocator is None:
        _allocator = IdAllocator(get_collection())
    return _allocator


def ping(client: MongoClient) -> None:
    try:
        client.admin.command("ping")
    except PyMongoError as exc:
        raise StoreUnavailable("Failed to connect to MongoDB, make sure the database is running") from exc


def prepare_database(client: MongoClient, db_name: str, collection_name: str) -> Collection:
    """Create the collection if missing and ensure its unique indexes."""
    database = client[db_name]
    if collection_name not in database.list_collection_names():
        database.create_collection(collection_name)
        logger.info("db.collection_created", extra={"collection": collection_name})

    collection = database[collection_name]
    collection.create_index([("id", ASCENDING)], unique=True, name="id_unique")
    try:
        collection.create_index(
            [(field, ASCENDING) for field in COMPARABLE_FIELDS],
            unique=True,
            name="book_identity_unique",
        )
    except OperationFailure as exc:
        # Existing duplicates block the index; inserts still run the exists() check.
        logger.warning("Could not create book identity index: %s", exc)
    return collection


def seed_books(collection: Collection, allocator: IdAllocator) -> int:
    repository = BookRepository(collection, allocator)
    inserted = 0
    for fields in SAMPLE_BOOKS:
        try:
            record = repository.insert(dict(fields))
        except DuplicateRecord:
            logger.debug("seed.skip", extra={"title": fields["title"]})
            continue
        inserted += 1
        logger.info("seed.inserted", extra={"book_id": record.id, "title": record.title})
    return inserted


def init_db() -> Collection:
    global _collection
    settings = get_settings()
    client = get_client()
    ping(client)
    _collection = prepare_database(client, settings.database_name, settings.collection_name)
    if settings.seed_data:
        seed_books(_collection, get_allocator())
    return _collection


def close_db() -> None:
    global _client, _collection, _allocator
    if _client is not None:
        _client.close()
    _client = None
    _collection = None
    _allocator = None
