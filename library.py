import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Union

from database import ActiveBorrowExists, utc_now
from errors import BadRequest, Conflict, NotFound
from models import Book, Borrow, User

logger = logging.getLogger(__name__)

NO_SCORE = -1


def average_score(borrows: Iterable[Borrow]) -> Union[str, int]:
    """Mean ``user_score`` of the scored borrows as a two-decimal string.

    Returns the integer ``-1`` when nothing has been scored yet. Ties round
    away from zero on the binary mean, matching a fixed-decimal formatter.
    """
    scores = [b.user_score for b in borrows if b.user_score is not None]
    if not scores:
        return NO_SCORE
    mean = sum(scores) / len(scores)
    return str(Decimal(mean).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def split_user_borrows(borrows: Iterable[Borrow]) -> Dict[str, List[Dict[str, Any]]]:
    """Partition a user's borrows into ``past`` (returned and scored) and ``present``.

    Returned borrows without a score appear in neither list.
    """
    past: List[Dict[str, Any]] = []
    present: List[Dict[str, Any]] = []
    for borrow in borrows:
        if borrow.returned_at is None:
            present.append({"name": borrow.book_name})
        elif borrow.user_score is not None:
            past.append({"name": borrow.book_name, "user_score": borrow.user_score})
    return {"past": past, "present": present}


class Library:
    """Books, users and the borrow/return lifecycle over a record store."""

    def __init__(self, store) -> None:
        self.store = store

    # ------------------------- Books ------------------------- #
    def list_books(self) -> List[Book]:
        return self.store.list_books()

    def get_book(self, book_id: int) -> Dict[str, Any]:
        """Book with its average score, or NotFound."""
        book = self.store.get_book(book_id)
        if not book:
            raise NotFound("Book not found")
        borrows = self.store.list_borrows_for_book(book_id)
        return {"id": book.id, "name": book.name, "score": average_score(borrows)}

    def create_book(self, name: str) -> Book:
        book = self.store.create_book(name)
        logger.info("Book created: id=%s", book.id)
        return book

    # ------------------------- Users ------------------------- #
    def list_users(self) -> List[User]:
        return self.store.list_users()

    def get_user(self, user_id: int) -> Dict[str, Any]:
        """User with the books they hold now and the ones they returned with a score."""
        user = self.store.get_user(user_id)
        if not user:
            raise NotFound("User not found")
        borrows = self.store.list_borrows_for_user(user_id)
        return {"id": user.id, "name": user.name, "books": split_user_borrows(borrows)}

    def create_user(self, name: str) -> User:
        user = self.store.create_user(name)
        logger.info("User created: id=%s", user.id)
        return user

    # ------------------------- Lifecycle ------------------------- #
    def borrow_book(self, user_id: int, book_id: int) -> Borrow:
        """Start an active borrow of ``book_id`` by ``user_id``.

        Checks run in order: user exists, book exists, book not already out.
        """
        if not self.store.get_user(user_id):
            raise NotFound("User not found")
        if not self.store.get_book(book_id):
            raise NotFound("Book not found")
        if self.store.find_active_borrow(book_id):
            logger.warning("Borrow rejected: book %s already borrowed", book_id)
            raise Conflict("Book already borrowed")

        try:
            borrow = self.store.create_borrow(user_id, book_id, utc_now())
        except ActiveBorrowExists as e:
            # Lost the race against a concurrent borrow of the same book
            logger.warning("Borrow rejected: %s", e)
            raise Conflict("Book already borrowed") from e

        logger.info("Book %s borrowed by user %s (borrow %s)", book_id, user_id, borrow.id)
        return borrow

    def return_book(self, user_id: int, book_id: int, score: int) -> None:
        """Close the active borrow held by this exact user and record the score."""
        borrow = self.store.find_active_borrow(book_id, user_id=user_id)
        if not borrow or not self.store.mark_returned(borrow.id, utc_now(), score):
            logger.warning("Return rejected: no active borrow of book %s by user %s", book_id, user_id)
            raise BadRequest("Borrow record not found or already returned")
        logger.info("Book %s returned by user %s with score %s", book_id, user_id, score)
