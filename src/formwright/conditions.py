"""Conditional visibility.

A field carrying a ``condition`` is shown only while the condition holds for
the current answers. Conditions fail open: a missing target or an unknown
operator leaves the field visible, because hiding a field forever would block
otherwise valid submissions. Visibility is a presentation concern only; the
submission schema does not consult it.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Iterable, Mapping, Sequence

from .consts import NUMBER_PATTERN
from .enums import ConditionOperator
from .fields import BaseField, FieldCondition
from .utils import format_number

logger = logging.getLogger(__name__)

_MISSING = object()

_NUMBER_RE = re.compile(NUMBER_PATTERN, re.ASCII)
_INFINITIES = {"Infinity": math.inf, "+Infinity": math.inf, "-Infinity": -math.inf}


def stringify(value: Any) -> str:
    """Render a value for textual comparison.

    Absent values become ``""``, booleans ``"true"``/``"false"``, integral
    floats lose their ``.0`` and lists are comma-joined.
    """
    if value is None or value is _MISSING:
        return ""
    if isinstance(value, (bool, int, float)):
        return format_number(value)
    if isinstance(value, (list, tuple)):
        return ",".join(stringify(v) for v in value)
    return str(value)


def to_number(value: Any) -> float:
    """Coerce like JavaScript's ``Number()``; unparseable input gives NaN."""
    if value is _MISSING:
        return math.nan
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, float):
        return value
    if isinstance(value, int):
        try:
            return float(value)
        except OverflowError:
            return math.inf if value > 0 else -math.inf
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        if text in _INFINITIES:
            return _INFINITIES[text]
        # Plain ASCII decimals only: no "1_000", "nan" or non-ASCII digits.
        if not _NUMBER_RE.fullmatch(text):
            return math.nan
        return float(text)
    if isinstance(value, (list, tuple)):
        if not value:
            return 0.0
        if len(value) == 1:
            return to_number(value[0])
    return math.nan


def is_blank(value: Any) -> bool:
    if value is None or value is _MISSING or value is False:
        return True
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if value == 0 or (isinstance(value, float) and math.isnan(value)):
            return True
    return not stringify(value).strip()


def _find_field(fields: Iterable[BaseField], field_id: str) -> BaseField | None:
    for field in fields:
        if field.id == field_id:
            return field
    return None


def evaluate(
    condition: FieldCondition,
    values: Mapping[str, Any],
    fields: Sequence[BaseField],
) -> bool:
    """Decide whether a field guarded by ``condition`` is visible.

    ``values`` maps value keys to the current answers. The target field is
    looked up by id, then its value key addresses ``values``. Never raises.
    """
    target = _find_field(fields, condition.target_field_id)
    if target is None:
        return True

    actual = values.get(target.value_key, _MISSING)
    expected = condition.value
    operator = condition.operator

    if operator == ConditionOperator.EQUALS:
        return stringify(actual) == stringify(expected)
    if operator == ConditionOperator.NOT_EQUALS:
        return stringify(actual) != stringify(expected)
    if operator == ConditionOperator.CONTAINS:
        return stringify(expected) in stringify(actual)
    if operator == ConditionOperator.NOT_CONTAINS:
        return stringify(expected) not in stringify(actual)
    if operator == ConditionOperator.GREATER_THAN:
        # NaN on either side compares False
        return to_number(actual) > to_number(expected)
    if operator == ConditionOperator.LESS_THAN:
        return to_number(actual) < to_number(expected)
    if operator == ConditionOperator.IS_EMPTY:
        return is_blank(actual)
    if operator == ConditionOperator.IS_NOT_EMPTY:
        return not is_blank(actual)

    logger.debug(f"Unknown condition operator {operator!r}, treating field as visible")
    return True


def is_visible(field: BaseField, values: Mapping[str, Any], fields: Sequence[BaseField]) -> bool:
    condition = field.condition
    if condition is None:
        return True
    return evaluate(condition, values, fields)


def resolve_visible(fields: Sequence[BaseField], values: Mapping[str, Any]) -> list[BaseField]:
    """Fields to render for the given answers, in their original order.

    Recompute on every answer change; any upstream answer can flip a
    downstream field.
    """
    return [field for field in fields if is_visible(field, values, fields)]
