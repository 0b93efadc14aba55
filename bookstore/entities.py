from typing import Any

from pydantic import BaseModel

# Fields that together identify a book for duplicate detection.
COMPARABLE_FIELDS = ("title", "author", "year", "pages", "isbn")


class BookRecord(BaseModel):
    id: str
    title: str
    author: str
    isbn: str = ""
    pages: int = 0
    year: int = 0

    def comparable(self) -> dict[str, Any]:
        return {field: getattr(self, field) for field in COMPARABLE_FIELDS}

    def to_document(self) -> dict[str, Any]:
        return self.model_dump()

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "BookRecord":
        return cls(
            id=str(document.get("id", "")),
            title=document.get("title") or "",
            author=document.get("author") or "",
            isbn=document.get("isbn") or "",
            pages=document.get("pages") or 0,
            year=document.get("year") or 0,
        )
