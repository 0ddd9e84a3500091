"""Compile a form's field list into a submission validator.

Each non-layout field becomes one attribute of a dynamically created pydantic
model, read from the field's value key, with a single validator enforcing the
field's type rules, bounds and required-ness. Because every field carries
exactly one validator, a failing payload yields at most one error per field,
in field order. Unknown payload keys are dropped.

The schema is cheap to build and must be rebuilt from the current field list
on every validation; field definitions change between builder sessions.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field as dataclass_field
from typing import Annotated, Any, Callable, Iterable, Mapping, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import (
    AfterValidator,
    AnyUrl,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    create_model,
)
from pydantic_core import PydanticCustomError

from .consts import DATE_PATTERN, DEFAULT_MAX_RATING, NUMBER_PATTERN, PHONE_PATTERN
from .enums import LAYOUT_TYPES, FieldType
from .errors import SubmissionValidationError
from .fields import BaseField, parse_field
from .utils import format_number

logger = logging.getLogger(__name__)

Rule = Callable[[Any], Any]

_DATE_RE = re.compile(DATE_PATTERN, re.ASCII)
_PHONE_RE = re.compile(PHONE_PATTERN, re.ASCII)
_NUMBER_RE = re.compile(NUMBER_PATTERN, re.ASCII)
_URL_ADAPTER = TypeAdapter(AnyUrl)

# Types whose empty-string answer means "not answered" when optional.
_FORMATTED_TYPES = frozenset(
    {
        FieldType.EMAIL,
        FieldType.NUMBER,
        FieldType.PHONE,
        FieldType.URL,
        FieldType.DATE,
        FieldType.RATING,
    }
)


@dataclass(frozen=True, slots=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass(slots=True)
class ValidationResult:
    ok: bool
    data: Optional[dict[str, Any]] = None
    errors: list[FieldError] = dataclass_field(default_factory=list)

    def raise_for_errors(self) -> dict[str, Any]:
        """Return the validated payload or raise ``SubmissionValidationError``."""
        if not self.ok:
            raise SubmissionValidationError(self.errors)
        return self.data or {}


def _reject(kind: str, message: str) -> PydanticCustomError:
    return PydanticCustomError(kind, "{reason}", {"reason": message})


def _is_missing(value: Any) -> bool:
    if value is None or value == "":
        return True
    return isinstance(value, (list, dict)) and not value


# ==================== Per-type checks ====================
# Each check receives a value that is present and returns the coerced value.


def _check_string(value: Any) -> str:
    if not isinstance(value, str):
        raise _reject("string_type", "Expected a string")
    return value


def _check_email(value: Any) -> str:
    value = _check_string(value)
    # Bare addresses only; "Name <addr>" display forms are rejected.
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        raise _reject("email", "Invalid email address") from None
    return value


def _check_url(value: Any) -> str:
    value = _check_string(value)
    try:
        _URL_ADAPTER.validate_python(value)
    except ValidationError:
        raise _reject("url", "Invalid URL format") from None
    return value


def _check_date(value: Any) -> str:
    value = _check_string(value)
    if not _DATE_RE.fullmatch(value):
        raise _reject("date", "Invalid date format")
    return value


def _check_phone(value: Any) -> str:
    value = _check_string(value)
    if not _PHONE_RE.fullmatch(value):
        raise _reject("phone", "Invalid phone number")
    return value


def _finite(number: int | float) -> int | float | None:
    # Integers too large for a float are as unusable as infinity.
    try:
        return number if math.isfinite(number) else None
    except OverflowError:
        return None


def _parse_number(value: Any) -> int | float | None:
    """Numbers pass through, plain decimal strings are parsed, anything else is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _finite(value)
    if isinstance(value, str):
        text = value.strip()
        if not _NUMBER_RE.fullmatch(text):
            return None
        try:
            return _finite(int(text))
        except ValueError:
            pass
        return _finite(float(text))
    return None


def _number_check(minimum: float | None, maximum: float | None) -> Rule:
    def check(value: Any) -> int | float:
        number = _parse_number(value)
        if number is None:
            raise _reject("number", "Please enter a valid number")
        if minimum is not None and number < minimum:
            raise _reject("number_min", f"Value must be at least {format_number(minimum)}")
        if maximum is not None and number > maximum:
            raise _reject("number_max", f"Value must be at most {format_number(maximum)}")
        return number

    return check


def _rating_check(max_rating: int) -> Rule:
    def check(value: Any) -> int:
        # Unparseable ratings coerce to 0 and fail the lower bound.
        number = _parse_number(value)
        if number is None:
            number = 0
        if not float(number).is_integer():
            raise _reject("rating_int", "Rating must be a whole number")
        if number < 1:
            raise _reject("rating_min", "Rating must be at least 1")
        if number > max_rating:
            raise _reject("rating_max", f"Rating must be at most {max_rating}")
        return int(number)

    return check


def _check_string_list(value: Any) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise _reject("list_type", "Expected a list of options")
    return value


def _check_matrix(value: Any) -> dict[str, str]:
    if not isinstance(value, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    ):
        raise _reject("matrix_type", "Expected one answer per row")
    return value


def _value_check(field: BaseField) -> Rule:
    kind = FieldType(field.type)

    if kind in (
        FieldType.TEXT,
        FieldType.LONGTEXT,
        FieldType.RADIO,
        FieldType.DROPDOWN,
        FieldType.PICTURE_CHOICE,
        FieldType.SIGNATURE,
    ):
        return _check_string
    if kind == FieldType.EMAIL:
        return _check_email
    if kind == FieldType.URL:
        return _check_url
    if kind == FieldType.DATE:
        return _check_date
    if kind == FieldType.PHONE:
        return _check_phone
    if kind == FieldType.NUMBER:
        return _number_check(field.config.min, field.config.max)
    if kind == FieldType.RATING:
        return _rating_check(field.config.max_rating or DEFAULT_MAX_RATING)
    if kind == FieldType.RANKING:
        return _check_string_list
    if kind == FieldType.MATRIX:
        return _check_matrix

    raise ValueError(f"No value rule for field type: {kind.value}")


# ==================== Field rules ====================


def _checkbox_rule(field: BaseField) -> Rule:
    label = field.label
    required = field.required

    def rule(value: Any) -> Any:
        if value is None:
            if required:
                raise _reject("required", f"{label} is required")
            return None
        selected = _check_string_list(value)
        if required and not selected:
            raise _reject("required", f"{label} is required")
        return selected

    return rule


def _file_rule(value: Any) -> Any:
    # Uploads are handled outside the schema; anything passes.
    return value


def field_rule(field: BaseField) -> Optional[Rule]:
    """Build the validator for one field, or None for layout-only fields."""
    kind = FieldType(field.type)
    if kind in LAYOUT_TYPES:
        return None
    if kind == FieldType.FILE:
        return _file_rule
    if kind == FieldType.CHECKBOX:
        return _checkbox_rule(field)

    check = _value_check(field)
    label = field.label

    if field.required:

        def required_rule(value: Any) -> Any:
            if _is_missing(value):
                raise _reject("required", f"{label} is required")
            return check(value)

        return required_rule

    blank_is_absent = kind in _FORMATTED_TYPES

    def optional_rule(value: Any) -> Any:
        if value is None or (blank_is_absent and value == ""):
            return None
        return check(value)

    return optional_rule


# ==================== Schema ====================


class SubmissionSchema:
    """A compiled validator for one snapshot of a form's fields.

    The model's attributes carry internal names (``field_0``, ``field_1``...)
    and ``names`` maps each one to the payload key it reads, so keys that are
    empty or not valid identifiers still work.
    """

    def __init__(self, model: type[BaseModel], names: dict[str, str]):
        self.model = model
        self.names = names

    @property
    def keys(self) -> list[str]:
        return list(self.names.values())

    def validate(self, payload: Any) -> ValidationResult:
        if not isinstance(payload, Mapping):
            return ValidationResult(
                ok=False,
                errors=[FieldError(field="", message="Submission must be an object")],
            )

        values = {name: payload[key] for name, key in self.names.items() if key in payload}
        try:
            instance = self.model.model_validate(values)
        except ValidationError as e:
            return ValidationResult(ok=False, errors=self._collect_errors(e))

        data = {}
        for name, key in self.names.items():
            value = getattr(instance, name)
            if value is not None:
                data[key] = value
        return ValidationResult(ok=True, data=data)

    def _collect_errors(self, exc: ValidationError) -> list[FieldError]:
        errors = []
        for error in exc.errors():
            loc = error.get("loc") or ("",)
            key = self.names.get(str(loc[0]), str(loc[0]))
            errors.append(FieldError(field=key, message=error["msg"]))
        return errors


def compile_schema(fields: Iterable[BaseField | Mapping[str, Any]]) -> SubmissionSchema:
    """Compile ``fields`` (models or their wire dicts) into a ``SubmissionSchema``.

    Fields are visited in the given order; dividers and page breaks are
    skipped. Two fields whose labels derive the same value key both read the
    same payload entry and the later one wins in the output.
    """
    definitions: dict[str, Any] = {}
    names: dict[str, str] = {}

    for index, raw in enumerate(fields):
        field = parse_field(dict(raw)) if isinstance(raw, Mapping) else raw
        rule = field_rule(field)
        if rule is None:
            continue

        name = f"field_{index}"
        names[name] = field.value_key
        definitions[name] = (
            Annotated[Any, AfterValidator(rule)],
            Field(default=None, validate_default=True),
        )

    model = create_model(
        "SubmissionPayload",
        __config__=ConfigDict(extra="ignore"),
        **definitions,
    )
    logger.debug(f"Compiled submission schema with {len(names)} fields")
    return SubmissionSchema(model, names)


def validate_submission(
    fields: Iterable[BaseField | Mapping[str, Any]], payload: Any
) -> ValidationResult:
    """Compile a fresh schema from ``fields`` and validate ``payload`` against it."""
    return compile_schema(fields).validate(payload)
