import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated, List, Union

from fastapi import Depends, FastAPI, Path, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from database import RecordStore
from errors import LendingError, Unexpected, ValidationFailure
from library import Library
from validators import BookCreateModel, ReturnBookModel, UserCreateModel, format_errors

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

# sqlite INTEGER is a signed 64-bit value
MAX_ROW_ID = 2**63 - 1
RowId = Annotated[int, Path(ge=-MAX_ROW_ID - 1, le=MAX_ROW_ID)]


# --- Response models ---
class BookSummaryModel(BaseModel):
    id: int
    name: str


class BookDetailModel(BaseModel):
    id: int
    name: str
    # "X.XX" string once scored, -1 before that
    score: Union[str, int]


class UserModel(BaseModel):
    id: int
    name: str


class PastBookModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    user_score: int = Field(alias="userScore")


class PresentBookModel(BaseModel):
    name: str


class UserBooksModel(BaseModel):
    past: List[PastBookModel]
    present: List[PresentBookModel]


class UserDetailModel(BaseModel):
    id: int
    name: str
    books: UserBooksModel


# --- Error rendering ---
def render_error(error: LendingError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def handle_lending_error(request: Request, exc: LendingError) -> JSONResponse:
    return render_error(exc)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return render_error(ValidationFailure(format_errors(exc.errors())))


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)},
                        headers=getattr(exc, "headers", None))


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return render_error(Unexpected(exc))


# --- Dependencies ---
def get_library(request: Request) -> Library:
    return Library(request.app.state.store)


# --- Application factory ---
def create_app(store=None) -> FastAPI:
    """Build the API around ``store``; defaults to the sqlite store from settings."""
    if store is None:
        store = RecordStore(settings.database_file())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.store.initialize()
        try:
            yield
        finally:
            app.state.store.close()

    app = FastAPI(title=settings.app_name, version=settings.app_version,
                  debug=settings.debug, lifespan=lifespan)
    app.state.store = store

    app.add_exception_handler(LendingError, handle_lending_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path,
                    response.status_code, elapsed_ms)
        return response

    @app.get("/", response_class=PlainTextResponse)
    def read_root():
        return "Library Management API is working!"

    @app.get("/health")
    def health(request: Request):
        """Lightweight health check with a quick store round-trip."""
        db_ok = True
        try:
            request.app.state.store.ping()
        except Exception:
            logger.warning("Health check: store unreachable", exc_info=True)
            db_ok = False
        return {
            "status": "healthy" if db_ok else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "db": db_ok,
        }

    # --- Books ---
    @app.get("/books", response_model=List[BookSummaryModel])
    def list_books(library: Library = Depends(get_library)):
        """List every book as id and name."""
        return [BookSummaryModel(**b.to_dict()) for b in library.list_books()]

    @app.get("/books/{book_id}", response_model=BookDetailModel)
    def get_book(book_id: RowId, library: Library = Depends(get_library)):
        """Single book with its average user score."""
        return BookDetailModel(**library.get_book(book_id))

    @app.post("/books", status_code=201)
    def create_book(payload: BookCreateModel, library: Library = Depends(get_library)):
        library.create_book(payload.name)
        return Response(status_code=201)

    # --- Users ---
    @app.get("/users", response_model=List[UserModel])
    def list_users(library: Library = Depends(get_library)):
        """List every user as id and name."""
        return [UserModel(**u.to_dict()) for u in library.list_users()]

    @app.get("/users/{user_id}", response_model=UserDetailModel)
    def get_user(user_id: RowId, library: Library = Depends(get_library)):
        """Single user with present and past borrows."""
        return UserDetailModel(**library.get_user(user_id))

    @app.post("/users", response_model=UserModel, status_code=201)
    def create_user(payload: UserCreateModel, library: Library = Depends(get_library)):
        user = library.create_user(payload.name)
        return UserModel(**user.to_dict())

    @app.post("/users/{user_id}/borrow/{book_id}", status_code=204)
    def borrow_book(user_id: RowId, book_id: RowId, library: Library = Depends(get_library)):
        library.borrow_book(user_id, book_id)
        return Response(status_code=204)

    @app.post("/users/{user_id}/return/{book_id}", status_code=204)
    def return_book(user_id: RowId, book_id: RowId, payload: ReturnBookModel,
                    library: Library = Depends(get_library)):
        library.return_book(user_id, book_id, payload.score)
        return Response(status_code=204)

    return app


app = create_app()
