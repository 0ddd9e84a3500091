"""Utility functions for Formwright application"""

import logging
import math
import re
import secrets
import time
import unicodedata
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

_WHITESPACE_RUN = re.compile(r"\s+")
_SLUG_STRIP = re.compile(r"[^a-z0-9\s-]")
_SLUG_SEPARATORS = re.compile(r"[\s_-]+")


def canonicalify(p: Path | str) -> Path:
    return Path(p).expanduser().resolve()


def ensure_path(p: Path | str) -> Path:
    path = canonicalify(p)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_now(timezone: ZoneInfo) -> datetime:
    """Get current time in specified timezone

    Args:
        timezone: Timezone object

    Returns:
        Current time with timezone info
    """
    return datetime.now(timezone)


def derive_value_key(label: str) -> str:
    """Derive the payload key that addresses a field's value.

    The same key names the field in submission payloads, in condition
    lookups and in the compiled schema. Labels are lower-cased and every
    whitespace run becomes a single underscore. Nothing is trimmed and
    punctuation is kept, so two labels that differ only by case or spacing
    collide.

    Examples:
        >>> derive_value_key("Has Pet")
        'has_pet'
        >>> derive_value_key("What's  your\\tcolor?")
        "what's_your_color?"
    """
    return _WHITESPACE_RUN.sub("_", (label or "").lower())


def generate_field_id() -> str:
    """Generate a client-side field identifier, e.g. ``field-1718000000000-k3j9x2a``."""
    millis = int(time.time() * 1000)
    return f"field-{millis}-{secrets.token_hex(4)[:7]}"


def slugify(text: str) -> str:
    """Turn a title into a lower-case, dash separated URL slug.

    Examples:
        >>> slugify("Customer Feedback (2024)!")
        'customer-feedback-2024'
    """
    normalized = unicodedata.normalize("NFKD", text or "")
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii").lower()
    ascii_text = _SLUG_STRIP.sub("", ascii_text)
    return _SLUG_SEPARATORS.sub("-", ascii_text).strip("-")


def generate_unique_slug(base_slug: str) -> str:
    millis = int(time.time() * 1000)
    return f"{base_slug}-{millis}-{secrets.token_hex(3)[:5]}"


def format_number(value: float | int) -> str:
    """Render a number the way it is shown to form users.

    Integral floats drop the trailing ``.0`` so bounds read ``120`` rather
    than ``120.0``.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    return str(value)
