from typing import List, Optional


class LendingError(Exception):
    """Base for every error the API turns into a response.

    Each subclass fixes the HTTP status it maps to.
    """

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class NotFound(LendingError):
    status_code = 404


class BadRequest(LendingError):
    status_code = 400


class Conflict(BadRequest):
    """The book already has an active borrower."""


class ValidationFailure(BadRequest):
    """A request body or path parameter failed its schema."""

    def __init__(self, messages: List[str]) -> None:
        super().__init__("; ".join(messages))
        self.messages = list(messages)

    def to_dict(self) -> dict:
        return {"errors": self.messages}


class Unexpected(LendingError):
    """Anything that is not a domain rule violation. The cause stays server-side."""

    def __init__(self, cause: Optional[BaseException] = None) -> None:
        super().__init__("Internal Server Error")
        self.cause = cause
