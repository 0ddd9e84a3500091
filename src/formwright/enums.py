"""Enumeration type definitions"""

from enum import Enum


class FieldType(str, Enum):
    TEXT = "text"
    EMAIL = "email"
    LONGTEXT = "longtext"
    NUMBER = "number"
    PHONE = "phone"
    URL = "url"
    DATE = "date"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    DROPDOWN = "dropdown"
    RATING = "rating"
    FILE = "file"
    MATRIX = "matrix"
    RANKING = "ranking"
    PICTURE_CHOICE = "picture_choice"
    SIGNATURE = "signature"
    PAGE_BREAK = "page_break"
    DIVIDER = "divider"


class FieldCategory(str, Enum):
    """Palette groups shown in the builder"""

    BASIC = "basic"
    CHOICE = "choice"
    ADVANCED = "advanced"
    LAYOUT = "layout"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"


class FormStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


LAYOUT_TYPES = frozenset({FieldType.DIVIDER, FieldType.PAGE_BREAK})
