import subprocess
import sys
from typing import Optional

import typer
from rich.console import Console

from config import settings
from database import RecordStore
from errors import LendingError, ValidationFailure
from library import Library
from ui_helpers import set_output_mode, print_list_result, print_book_detail, print_user_detail
from validators import BookCreateModel, ReturnBookModel, UserCreateModel, validate

APP_NAME = "Library CLI"

console = Console()

app = typer.Typer(help=APP_NAME)


def get_library() -> Library:
    """Library over the configured sqlite store, schema ensured."""
    store = RecordStore(settings.database_file())
    store.initialize()
    return Library(store)


def _fail(error: LendingError) -> None:
    if isinstance(error, ValidationFailure):
        for message in error.messages:
            print(f"Error: {message}")
    else:
        print(f"Error: {error.message}")
    raise typer.Exit(code=1)


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global CLI options (e.g. output mode)."""
    if output:
        set_output_mode(output)


@app.command("init-db")
def cli_init_db():
    """Create the schema in the configured database."""
    get_library()
    print(f"Database initialized: {settings.database_file()}")


@app.command("books")
def cli_books():
    """List all books."""
    print_list_result(get_library().list_books(), kind="books")


@app.command("users")
def cli_users():
    """List all users."""
    print_list_result(get_library().list_users(), kind="users")


@app.command("book")
def cli_book(book_id: int):
    """Show a book and its average score."""
    try:
        print_book_detail(get_library().get_book(book_id))
    except LendingError as e:
        _fail(e)


@app.command("user")
def cli_user(user_id: int):
    """Show a user with present and past borrows."""
    try:
        print_user_detail(get_library().get_user(user_id))
    except LendingError as e:
        _fail(e)


@app.command("add-book")
def cli_add_book(name: str):
    """Add a book by name."""
    try:
        payload = validate(BookCreateModel, {"name": name})
        book = get_library().create_book(payload.name)
        print(f"Book added: {book}")
    except LendingError as e:
        _fail(e)


@app.command("add-user")
def cli_add_user(name: str):
    """Add a user by name."""
    try:
        payload = validate(UserCreateModel, {"name": name})
        user = get_library().create_user(payload.name)
        print(f"User added: {user}")
    except LendingError as e:
        _fail(e)


@app.command("borrow")
def cli_borrow(user_id: int, book_id: int):
    """Lend a book to a user."""
    try:
        get_library().borrow_book(user_id, book_id)
        print(f"Book {book_id} borrowed by user {user_id}.")
    except LendingError as e:
        _fail(e)


@app.command("return")
def cli_return(user_id: int, book_id: int, score: int):
    """Return a borrowed book with a 1-10 score."""
    try:
        payload = validate(ReturnBookModel, {"score": score})
        get_library().return_book(user_id, book_id, payload.score)
        print(f"Book {book_id} returned by user {user_id}.")
    except LendingError as e:
        _fail(e)


@app.command("serve")
def serve(host: Optional[str] = None, port: Optional[int] = None):
    """Start the API with uvicorn."""
    host = host or settings.api_host
    port = int(port or settings.api_port)
    console.print(f"[green]Starting API on http://{host}:{port}/[/]")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "api:app",
        "--host", host,
        "--port", str(port),
        "--log-level", settings.log_level.lower(),
    ]
    try:
        subprocess.run(args, check=False)
    except KeyboardInterrupt:
        console.print("[yellow]Server stopped.[/]")


if __name__ == "__main__":
    app()
