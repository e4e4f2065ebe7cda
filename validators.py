from typing import Any, Dict, Iterable, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from errors import ValidationFailure


class BookCreateModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=200)


class UserCreateModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=100)


class ReturnBookModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    score: int = Field(ge=1, le=10)

    @field_validator("score", mode="before")
    @classmethod
    def reject_booleans(cls, value):
        # JSON true/false would otherwise coerce to 1/0
        if isinstance(value, bool):
            raise ValueError("Input should be a valid integer")
        return value


def format_errors(errors: Iterable[Dict[str, Any]]) -> List[str]:
    """Render pydantic error dicts as ``"<field>: <message>"`` lines.

    The leading location segment (body/path/query) is dropped when a field
    name follows it, so ``("body", "name")`` reads as ``name``. Positional
    segments (a JSON decode offset) collapse to the prefix alone.
    """
    messages = []
    for err in errors:
        parts = list(err.get("loc", ()))
        if len(parts) > 1 and parts[0] in ("body", "path", "query"):
            parts = parts[1:] if isinstance(parts[1], str) else parts[:1]
        loc = [str(part) for part in parts]
        field = ".".join(loc) or "body"
        messages.append(f"{field}: {err.get('msg', 'Invalid value')}")
    return messages


def validate(model: type, data: Any):
    """Validate ``data`` against ``model`` collecting every failure, not just the first."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ValidationFailure(format_errors(e.errors())) from e
