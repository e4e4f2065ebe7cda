from __future__ import annotations


class Book:
    """A single title held by the library."""

    def __init__(self, id: int, name: str) -> None:
        self.id = id
        self.name = name

    def __str__(self) -> str:
        return f"{self.id} - {self.name}"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}

    @staticmethod
    def from_dict(data: dict) -> "Book":
        return Book(id=data["id"], name=data["name"])


class User:
    """A library member."""

    def __init__(self, id: int, name: str) -> None:
        self.id = id
        self.name = name

    def __str__(self) -> str:
        return f"{self.id} - {self.name}"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}

    @staticmethod
    def from_dict(data: dict) -> "User":
        return User(id=data["id"], name=data["name"])


class Borrow:
    """One lending of a book to a user.

    ``returned_at`` is None while the borrow is active. ``user_score`` is only
    ever filled in together with ``returned_at``. ``book_name`` is populated
    when the row was read joined with its book.
    """

    def __init__(self, id: int, user_id: int, book_id: int, borrowed_at: str,
                 returned_at: str | None = None, user_score: int | None = None,
                 book_name: str | None = None) -> None:
        self.id = id
        self.user_id = user_id
        self.book_id = book_id
        self.borrowed_at = borrowed_at
        self.returned_at = returned_at
        self.user_score = user_score
        self.book_name = book_name

    @property
    def is_active(self) -> bool:
        return self.returned_at is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "book_id": self.book_id,
            "borrowed_at": self.borrowed_at,
            "returned_at": self.returned_at,
            "user_score": self.user_score,
            "book_name": self.book_name,
        }

    @staticmethod
    def from_dict(data: dict) -> "Borrow":
        return Borrow(
            id=data["id"],
            user_id=data["user_id"],
            book_id=data["book_id"],
            borrowed_at=data["borrowed_at"],
            returned_at=data.get("returned_at"),
            user_score=data.get("user_score"),
            book_name=data.get("book_name"),
        )
