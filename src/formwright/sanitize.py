"""Markup stripping for user-authored strings.

Everything a user types (labels, placeholders, titles, descriptions and
submitted values) passes through here before it reaches the store or the
schema compiler, so derived value keys are computed from the cleaned text.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from lxml import etree, html

logger = logging.getLogger(__name__)

_ANGLE_BRACKETS = re.compile(r"[<>]")


def strip_markup(text: str | None) -> str:
    """Remove HTML tags, keeping only the text content.

    Examples:
        >>> strip_markup("<b>Hello</b> <i>world</i>")
        'Hello world'
    """
    if not text:
        return ""
    if "<" not in text:
        return text

    try:
        fragment = html.fragment_fromstring(text, create_parent="div")
    except (etree.ParserError, ValueError) as e:
        logger.debug(f"Markup could not be parsed, dropping tags by pattern: {e}")
        return re.sub(r"<[^>]*>", "", text)

    for element in fragment.xpath(".//script|.//style"):
        element.drop_tree()
    return str(fragment.text_content())


def sanitize_text(text: str | None) -> str:
    """Strip markup and stray angle brackets, then trim."""
    return _ANGLE_BRACKETS.sub("", strip_markup(text)).strip()


def sanitize_value(value: Any) -> Any:
    if isinstance(value, str):
        return sanitize_text(value)
    if isinstance(value, list):
        return [sanitize_text(v) if isinstance(v, str) else v for v in value]
    if isinstance(value, dict):
        return {k: sanitize_text(v) if isinstance(v, str) else v for k, v in value.items()}
    return value


def sanitize_submission(data: dict[str, Any]) -> dict[str, Any]:
    """Sanitize every string (and string list item) of a validated submission."""
    return {key: sanitize_value(value) for key, value in data.items()}
