import re
from typing import Any

from pydantic import BaseModel

from .entities import BookRecord
from .errors import BadRequest

_LEADING_INT = re.compile(r"\s*([+-]?[0-9]+)")

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def coerce_int(value: Any) -> int:
    """Parse a leading integer from ``value``, falling back to 0.

    Invalid input is never an error: ``"12abc"`` gives 12, ``"abc"``, ``""``
    and ``None`` give 0, and so does anything outside the signed 64-bit range
    BSON can store.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        number = value
    else:
        match = _LEADING_INT.match(str(value))
        if not match:
            return 0
        try:
            number = int(match.group(1))
        except ValueError:
            # Longer than the interpreter allows for str-to-int conversion.
            return 0
    return number if INT64_MIN <= number <= INT64_MAX else 0


def coerce_pages(value: Any) -> int:
    return max(coerce_int(value), 0)


class BookRequest(BaseModel):
    id: str | int | None = None
    title: str = ""
    author: str = ""
    pages: str | int | None = None
    edition: str = ""
    year: str | int | None = None

    def requested_id(self) -> str:
        return str(self.id).strip() if self.id is not None else ""

    def to_fields(self) -> dict[str, Any]:
        if not self.title.strip() or not self.author.strip():
            raise BadRequest("Title and author are required")
        return {
            "title": self.title,
            "author": self.author,
            "isbn": self.edition,
            "pages": coerce_pages(self.pages),
            "year": coerce_int(self.year),
        }


class BookResponse(BaseModel):
    id: str
    title: str
    author: str
    pages: str
    edition: str
    year: str

    @classmethod
    def from_record(cls, record: BookRecord) -> "BookResponse":
        return cls(
            id=record.id,
            title=record.title,
            author=record.author,
            pages=str(record.pages),
            edition=record.isbn,
            year=str(record.year),
        )


class MessageResponse(BaseModel):
    message: str


class CreatedResponse(MessageResponse):
    id: str
