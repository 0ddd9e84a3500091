"""Plain-text form authoring.

One field per non-blank line::

    Name                                  -> text field "Name"
    *Email                                -> required text field "Email"
    /email Work email                     -> field of type email
    What's your color? Red, Blue, Green   -> radio with three options
    -                                     -> divider

Lines are parsed independently. Parsing the same text twice yields the same
fields apart from their generated ids.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import ValidationError

from .enums import FieldType
from .fields import FieldDefinition, parse_field
from .utils import generate_field_id

logger = logging.getLogger(__name__)

_TYPED_LINE = re.compile(r"^/(\w+)\s+(.+)$")


def _parse_line(line: str) -> dict[str, Any] | None:
    """Turn one trimmed line into a raw field dict, or None if it yields nothing."""
    if line.startswith("/"):
        match = _TYPED_LINE.match(line)
        if not match:
            logger.debug(f"Skipping type marker without a label: {line!r}")
            return None
        field_type, label = match.groups()
        return {"type": field_type.lower(), "label": label.strip(), "config": {"required": False}}

    if line.startswith("*"):
        return {"type": FieldType.TEXT.value, "label": line[1:].strip(), "config": {"required": True}}

    if line.startswith("-"):
        return {"type": FieldType.DIVIDER.value, "label": "", "config": {}}

    if "?" in line:
        label, _, options_text = line.partition("?")
        options = [o.strip() for o in options_text.split(",") if o.strip()]
        if options:
            return {
                "type": FieldType.RADIO.value,
                "label": f"{label.strip()}?",
                "config": {"required": False, "options": options},
            }

    return {"type": FieldType.TEXT.value, "label": line, "config": {"required": False}}


def parse_text(text: str) -> list[FieldDefinition]:
    """Parse text-builder input into an ordered field list.

    Unknown ``/type`` markers are dropped with a warning; every produced field
    gets a fresh id and ``order`` follows the surviving lines from 0.
    """
    fields: list[FieldDefinition] = []

    for lineno, raw_line in enumerate((text or "").splitlines(), start=1):
        line = raw_line.strip()
        if not line:
            continue

        data = _parse_line(line)
        if data is None:
            continue

        data["id"] = generate_field_id()
        data["order"] = len(fields)
        try:
            fields.append(parse_field(data))
        except ValidationError as e:
            logger.warning(f"Line {lineno}: unsupported field type {data['type']!r}, skipped ({e.error_count()} errors)")

    return fields
