import logging
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from models import Book, Borrow, User

logger = logging.getLogger(__name__)


class ActiveBorrowExists(Exception):
    """The store refused a second active borrow for the same book."""


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_db_connection(db_file: str) -> sqlite3.Connection:
    """Open a connection to the SQLite database with foreign keys enforced."""
    conn = sqlite3.connect(db_file)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def create_tables(db_file: str) -> None:
    """Create the tables and indexes if they do not exist yet."""
    conn = get_db_connection(db_file)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL CHECK(length(name) BETWEEN 1 AND 200)
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL CHECK(length(name) BETWEEN 1 AND 100)
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS borrows (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(id),
                book_id INTEGER NOT NULL REFERENCES books(id),
                borrowed_at TEXT NOT NULL,
                returned_at TEXT,
                user_score INTEGER CHECK(user_score BETWEEN 1 AND 10),
                CHECK(user_score IS NULL OR returned_at IS NOT NULL)
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_borrows_user_id ON borrows(user_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_borrows_book_id ON borrows(book_id)")
        # A book has at most one active borrower
        cursor.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS idx_borrows_one_active_per_book
            ON borrows(book_id) WHERE returned_at IS NULL
        """)
        conn.commit()
    finally:
        conn.close()


def initialize_database(db_file: str) -> None:
    """Initialize the database, creating the schema when needed."""
    create_tables(db_file)
    logger.info("Database ready at %s", db_file)


class RecordStore:
    """sqlite3-backed access to books, users and borrows.

    Every method opens its own connection and commits before returning, so a
    single call is the unit of atomicity. Any object exposing the same methods
    can stand in for it (the tests use an in-memory fake).
    """

    def __init__(self, db_file: str) -> None:
        self.db_file = db_file

    def initialize(self) -> None:
        initialize_database(self.db_file)

    def close(self) -> None:
        """Connections are per-call, so there is nothing held open."""
        return None

    def ping(self) -> bool:
        conn = get_db_connection(self.db_file)
        try:
            conn.execute("SELECT 1")
            return True
        finally:
            conn.close()

    # ------------------------- Books ------------------------- #
    def list_books(self) -> List[Book]:
        conn = get_db_connection(self.db_file)
        try:
            rows = conn.execute("SELECT id, name FROM books ORDER BY id").fetchall()
            return [Book.from_dict(dict(row)) for row in rows]
        finally:
            conn.close()

    def get_book(self, book_id: int) -> Optional[Book]:
        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute("SELECT id, name FROM books WHERE id = ?", (book_id,)).fetchone()
            return Book.from_dict(dict(row)) if row else None
        finally:
            conn.close()

    def create_book(self, name: str) -> Book:
        conn = get_db_connection(self.db_file)
        try:
            cursor = conn.execute("INSERT INTO books (name) VALUES (?)", (name,))
            conn.commit()
            return Book(id=cursor.lastrowid, name=name)
        finally:
            conn.close()

    # ------------------------- Users ------------------------- #
    def list_users(self) -> List[User]:
        conn = get_db_connection(self.db_file)
        try:
            rows = conn.execute("SELECT id, name FROM users ORDER BY id").fetchall()
            return [User.from_dict(dict(row)) for row in rows]
        finally:
            conn.close()

    def get_user(self, user_id: int) -> Optional[User]:
        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute("SELECT id, name FROM users WHERE id = ?", (user_id,)).fetchone()
            return User.from_dict(dict(row)) if row else None
        finally:
            conn.close()

    def create_user(self, name: str) -> User:
        conn = get_db_connection(self.db_file)
        try:
            cursor = conn.execute("INSERT INTO users (name) VALUES (?)", (name,))
            conn.commit()
            return User(id=cursor.lastrowid, name=name)
        finally:
            conn.close()

    # ------------------------- Borrows ------------------------- #
    def list_borrows_for_book(self, book_id: int) -> List[Borrow]:
        conn = get_db_connection(self.db_file)
        try:
            rows = conn.execute("""
                SELECT br.*, b.name AS book_name
                FROM borrows br JOIN books b ON b.id = br.book_id
                WHERE br.book_id = ?
                ORDER BY br.id
            """, (book_id,)).fetchall()
            return [Borrow.from_dict(dict(row)) for row in rows]
        finally:
            conn.close()

    def list_borrows_for_user(self, user_id: int) -> List[Borrow]:
        conn = get_db_connection(self.db_file)
        try:
            rows = conn.execute("""
                SELECT br.*, b.name AS book_name
                FROM borrows br JOIN books b ON b.id = br.book_id
                WHERE br.user_id = ?
                ORDER BY br.id
            """, (user_id,)).fetchall()
            return [Borrow.from_dict(dict(row)) for row in rows]
        finally:
            conn.close()

    def find_active_borrow(self, book_id: int, user_id: Optional[int] = None) -> Optional[Borrow]:
        """Return the active borrow of a book, optionally only if held by ``user_id``."""
        query = "SELECT * FROM borrows WHERE book_id = ? AND returned_at IS NULL"
        params: list = [book_id]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute(query, params).fetchone()
            return Borrow.from_dict(dict(row)) if row else None
        finally:
            conn.close()

    def create_borrow(self, user_id: int, book_id: int, borrowed_at: str) -> Borrow:
        """Insert an active borrow.

        Raises ActiveBorrowExists when the book already has an active borrow;
        the partial unique index makes this check and the insert one step.
        """
        conn = get_db_connection(self.db_file)
        try:
            cursor = conn.execute(
                "INSERT INTO borrows (user_id, book_id, borrowed_at) VALUES (?, ?, ?)",
                (user_id, book_id, borrowed_at),
            )
            conn.commit()
            return Borrow(id=cursor.lastrowid, user_id=user_id, book_id=book_id, borrowed_at=borrowed_at)
        except sqlite3.IntegrityError as e:
            if "UNIQUE" in str(e):
                raise ActiveBorrowExists(f"Book {book_id} already has an active borrow") from e
            raise
        finally:
            conn.close()

    def mark_returned(self, borrow_id: int, returned_at: str, user_score: int) -> bool:
        """Close an active borrow. Returns False if it was no longer active."""
        conn = get_db_connection(self.db_file)
        try:
            cursor = conn.execute(
                "UPDATE borrows SET returned_at = ?, user_score = ? WHERE id = ? AND returned_at IS NULL",
                (returned_at, user_score, borrow_id),
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()
