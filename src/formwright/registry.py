"""Catalog of the field types offered in the builder palette."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .consts import DEFAULT_MAX_RATING
from .enums import FieldCategory, FieldType


@dataclass(frozen=True, slots=True)
class FieldTypeInfo:
    type: FieldType
    label: str
    icon: str
    category: FieldCategory

    def to_dict(self) -> dict[str, str]:
        return {
            "type": self.type.value,
            "label": self.label,
            "icon": self.icon,
            "category": self.category.value,
        }


FIELD_TYPES: tuple[FieldTypeInfo, ...] = (
    FieldTypeInfo(FieldType.TEXT, "Short Text", "Type", FieldCategory.BASIC),
    FieldTypeInfo(FieldType.LONGTEXT, "Long Text", "FileText", FieldCategory.BASIC),
    FieldTypeInfo(FieldType.EMAIL, "Email", "Mail", FieldCategory.BASIC),
    FieldTypeInfo(FieldType.NUMBER, "Number", "Hash", FieldCategory.BASIC),
    FieldTypeInfo(FieldType.PHONE, "Phone", "Phone", FieldCategory.BASIC),
    FieldTypeInfo(FieldType.URL, "URL", "Link", FieldCategory.BASIC),
    FieldTypeInfo(FieldType.DATE, "Date", "Calendar", FieldCategory.BASIC),
    FieldTypeInfo(FieldType.CHECKBOX, "Checkbox", "CheckSquare", FieldCategory.CHOICE),
    FieldTypeInfo(FieldType.RADIO, "Radio", "Circle", FieldCategory.CHOICE),
    FieldTypeInfo(FieldType.DROPDOWN, "Dropdown", "ChevronDown", FieldCategory.CHOICE),
    FieldTypeInfo(FieldType.PICTURE_CHOICE, "Picture Choice", "Image", FieldCategory.CHOICE),
    FieldTypeInfo(FieldType.RATING, "Rating", "Star", FieldCategory.ADVANCED),
    FieldTypeInfo(FieldType.MATRIX, "Matrix", "Grid3x3", FieldCategory.ADVANCED),
    FieldTypeInfo(FieldType.RANKING, "Ranking", "ListOrdered", FieldCategory.ADVANCED),
    FieldTypeInfo(FieldType.FILE, "File Upload", "Upload", FieldCategory.ADVANCED),
    FieldTypeInfo(FieldType.SIGNATURE, "Signature", "PenTool", FieldCategory.ADVANCED),
    FieldTypeInfo(FieldType.PAGE_BREAK, "Page Break", "SeparatorHorizontal", FieldCategory.LAYOUT),
    FieldTypeInfo(FieldType.DIVIDER, "Divider", "Minus", FieldCategory.LAYOUT),
)

_BY_TYPE = {info.type: info for info in FIELD_TYPES}

_DEFAULT_LABELS = {
    FieldType.TEXT: "Short Text",
    FieldType.LONGTEXT: "Long Text",
    FieldType.EMAIL: "Email",
    FieldType.NUMBER: "Number",
    FieldType.PHONE: "Phone",
    FieldType.URL: "URL",
    FieldType.DATE: "Date",
    FieldType.CHECKBOX: "Checkbox",
    FieldType.RADIO: "Radio",
    FieldType.DROPDOWN: "Dropdown",
    FieldType.RATING: "Rating",
    FieldType.MATRIX: "Matrix Question",
    FieldType.RANKING: "Ranking",
    FieldType.PICTURE_CHOICE: "Picture Choice",
    FieldType.SIGNATURE: "Signature",
    FieldType.FILE: "File Upload",
    FieldType.PAGE_BREAK: "Page Break",
    FieldType.DIVIDER: "Divider",
}


def list_field_types() -> list[FieldTypeInfo]:
    return list(FIELD_TYPES)


def get_field_type(field_type: FieldType | str) -> FieldTypeInfo | None:
    try:
        return _BY_TYPE.get(FieldType(field_type))
    except ValueError:
        return None


def default_label(field_type: FieldType | str) -> str:
    try:
        return _DEFAULT_LABELS[FieldType(field_type)]
    except ValueError:
        return "Field"


def default_config(field_type: FieldType | str) -> dict[str, Any]:
    """Starting config for a freshly added field of ``field_type``."""
    field_type = FieldType(field_type)
    config: dict[str, Any] = {"required": False}

    if field_type in (FieldType.RADIO, FieldType.CHECKBOX, FieldType.DROPDOWN):
        config["options"] = ["Option 1"]
    elif field_type == FieldType.RATING:
        config["max_rating"] = DEFAULT_MAX_RATING
    elif field_type == FieldType.MATRIX:
        config["rows"] = ["Row 1"]
        config["columns"] = ["Column 1"]
    elif field_type == FieldType.RANKING:
        config["options"] = ["Option 1", "Option 2", "Option 3"]
    elif field_type == FieldType.PICTURE_CHOICE:
        config["options"] = []
        config["image_urls"] = []

    return config
