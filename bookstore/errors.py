class BookstoreError(Exception):
    """Base class for catalog errors raised by the data-access layer."""


class DuplicateRecord(BookstoreError):
    def __init__(self, title: str, author: str):
        super().__init__(f"book already exists: {title!r} by {author!r}")
        self.title = title
        self.author = author


class NotFound(BookstoreError):
    def __init__(self, book_id: str):
        super().__init__(f"book not found: {book_id}")
        self.book_id = book_id


class BadRequest(BookstoreError):
    pass


class StoreUnavailable(BookstoreError):
    pass
