import pytest

from errors import ValidationFailure
from validators import ReturnBookModel, format_errors, validate


def test_format_errors_strips_location_prefix_before_field():
    errors = [{"loc": ("body", "name"), "msg": "Field required"}]
    assert format_errors(errors) == ["name: Field required"]


def test_format_errors_keeps_prefix_for_positional_location():
    errors = [{"loc": ("body", 1), "msg": "JSON decode error"}]
    assert format_errors(errors) == ["body: JSON decode error"]


def test_format_errors_lone_prefix():
    assert format_errors([{"loc": ("body",), "msg": "Field required"}]) == ["body: Field required"]


@pytest.mark.parametrize("score", [True, False])
def test_return_model_rejects_booleans(score):
    with pytest.raises(ValidationFailure) as excinfo:
        validate(ReturnBookModel, {"score": score})
    assert excinfo.value.messages[0].startswith("score:")


def test_return_model_coerces_numeric_strings():
    assert validate(ReturnBookModel, {"score": "10"}).score == 10
