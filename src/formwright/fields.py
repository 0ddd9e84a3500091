"""Form and field definition models.

A field is a tagged union keyed on ``type``: every field type has its own
model whose ``config`` carries only the settings that type understands.
Payloads on the wire use camelCase (``maxRating``, ``imageUrls``,
``targetFieldId``); Python code uses the snake_case attribute names. Both
spellings are accepted on input.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Iterable, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel, to_snake

from .consts import DEFAULT_FORM_TITLE, DEFAULT_MAX_RATING, DEFAULT_THANK_YOU_MESSAGE
from .enums import LAYOUT_TYPES, ConditionOperator, FieldType, FormStatus
from .utils import derive_value_key, generate_field_id


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class FieldCondition(WireModel):
    """Show the owning field only when another field's value matches."""

    target_field_id: str = Field(
        default="",
        validation_alias=AliasChoices("targetFieldId", "target_field_id", "fieldId"),
    )
    # Unknown operators are kept as plain strings and evaluate as visible.
    operator: Union[ConditionOperator, str] = ConditionOperator.EQUALS
    value: Any = None


# ==================== Field configs ====================


class FieldConfig(WireModel):
    required: bool = False
    placeholder: Optional[str] = None
    condition: Optional[FieldCondition] = None

    @field_validator("required", mode="before")
    @classmethod
    def coerce_required(cls, v):
        return False if v is None else v


class LongTextConfig(FieldConfig):
    help_text: Optional[str] = None


class ChoiceConfig(FieldConfig):
    options: list[str] = Field(default_factory=list)


class PictureChoiceConfig(ChoiceConfig):
    image_urls: list[str] = Field(default_factory=list)


class NumberConfig(FieldConfig):
    min: Optional[float] = None
    max: Optional[float] = None


class RatingConfig(FieldConfig):
    max_rating: int = Field(default=DEFAULT_MAX_RATING, ge=1)


class MatrixConfig(FieldConfig):
    rows: list[str] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)


class FileConfig(FieldConfig):
    file_types: list[str] = Field(default_factory=list)
    max_file_size: Optional[int] = Field(default=None, ge=0)


# ==================== Field variants ====================

# Settings that may also be given next to the field attributes instead of
# inside ``config``.
_FLAT_CONFIG_KEYS = frozenset(
    {
        "required",
        "placeholder",
        "condition",
        "options",
        "min",
        "max",
        "maxRating",
        "max_rating",
        "rows",
        "columns",
        "imageUrls",
        "image_urls",
        "helpText",
        "help_text",
        "fileTypes",
        "file_types",
        "maxFileSize",
        "max_file_size",
    }
)


class BaseField(WireModel):
    id: str = Field(default_factory=generate_field_id)
    persisted_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("persistedId", "persisted_id", "dbId"),
    )
    label: str = ""
    order: int = Field(default=0, ge=0)
    config: FieldConfig = Field(default_factory=FieldConfig)

    @model_validator(mode="before")
    @classmethod
    def fold_flat_config(cls, data):
        if not isinstance(data, dict):
            return data
        flat = {k: v for k, v in data.items() if k in _FLAT_CONFIG_KEYS}
        config = data.get("config")
        if not flat or not (config is None or isinstance(config, dict)):
            return data
        data = {k: v for k, v in data.items() if k not in _FLAT_CONFIG_KEYS}
        data["config"] = {**flat, **(config or {})}
        return data

    @property
    def value_key(self) -> str:
        return derive_value_key(self.label)

    @property
    def required(self) -> bool:
        return self.config.required

    @property
    def condition(self) -> Optional[FieldCondition]:
        return self.config.condition

    @property
    def is_layout(self) -> bool:
        return FieldType(self.type) in LAYOUT_TYPES


class TextField(BaseField):
    type: Literal["text"] = "text"


class EmailField(BaseField):
    type: Literal["email"] = "email"


class LongTextField(BaseField):
    type: Literal["longtext"] = "longtext"
    config: LongTextConfig = Field(default_factory=LongTextConfig)


class NumberField(BaseField):
    type: Literal["number"] = "number"
    config: NumberConfig = Field(default_factory=NumberConfig)


class PhoneField(BaseField):
    type: Literal["phone"] = "phone"


class UrlField(BaseField):
    type: Literal["url"] = "url"


class DateField(BaseField):
    type: Literal["date"] = "date"


class CheckboxField(BaseField):
    type: Literal["checkbox"] = "checkbox"
    config: ChoiceConfig = Field(default_factory=ChoiceConfig)


class RadioField(BaseField):
    type: Literal["radio"] = "radio"
    config: ChoiceConfig = Field(default_factory=ChoiceConfig)


class DropdownField(BaseField):
    type: Literal["dropdown"] = "dropdown"
    config: ChoiceConfig = Field(default_factory=ChoiceConfig)


class RatingField(BaseField):
    type: Literal["rating"] = "rating"
    config: RatingConfig = Field(default_factory=RatingConfig)


class FileField(BaseField):
    type: Literal["file"] = "file"
    config: FileConfig = Field(default_factory=FileConfig)


class MatrixField(BaseField):
    type: Literal["matrix"] = "matrix"
    config: MatrixConfig = Field(default_factory=MatrixConfig)


class RankingField(BaseField):
    type: Literal["ranking"] = "ranking"
    config: ChoiceConfig = Field(default_factory=ChoiceConfig)


class PictureChoiceField(BaseField):
    type: Literal["picture_choice"] = "picture_choice"
    config: PictureChoiceConfig = Field(default_factory=PictureChoiceConfig)


class SignatureField(BaseField):
    type: Literal["signature"] = "signature"


class PageBreakField(BaseField):
    type: Literal["page_break"] = "page_break"


class DividerField(BaseField):
    type: Literal["divider"] = "divider"


FieldDefinition = Annotated[
    Union[
        TextField,
        EmailField,
        LongTextField,
        NumberField,
        PhoneField,
        UrlField,
        DateField,
        CheckboxField,
        RadioField,
        DropdownField,
        RatingField,
        FileField,
        MatrixField,
        RankingField,
        PictureChoiceField,
        SignatureField,
        PageBreakField,
        DividerField,
    ],
    Field(discriminator="type"),
]

field_adapter: TypeAdapter[FieldDefinition] = TypeAdapter(FieldDefinition)
field_list_adapter: TypeAdapter[list[FieldDefinition]] = TypeAdapter(list[FieldDefinition])


def parse_field(data: dict[str, Any] | BaseField) -> FieldDefinition:
    """Validate one field from its wire or attribute form.

    Raises:
        pydantic.ValidationError: unknown ``type`` or ill-typed settings
    """
    if isinstance(data, BaseField):
        return data
    return field_adapter.validate_python(data)


def parse_fields(data: Iterable[dict[str, Any] | BaseField]) -> list[FieldDefinition]:
    return [parse_field(item) for item in data]


def dump_fields(fields: Iterable[BaseField]) -> list[dict[str, Any]]:
    return [f.to_wire() for f in fields]


def _snake_keys(data: dict[str, Any]) -> dict[str, Any]:
    return {to_snake(k): v for k, v in data.items()}


def apply_changes(field: BaseField, changes: dict[str, Any] | BaseModel) -> FieldDefinition:
    """Return a copy of ``field`` with ``changes`` merged in.

    Top-level attributes are replaced; ``config`` is merged one level deep so
    a change carrying only ``{"config": {"required": True}}`` keeps the
    existing options, bounds and condition. Changing ``type`` re-validates
    the config against the new variant and drops settings it doesn't know.
    """
    if isinstance(changes, BaseModel):
        changes = changes.model_dump(exclude_unset=True)

    data = field.model_dump()
    for key, value in _snake_keys(changes).items():
        if key == "config":
            if isinstance(value, BaseModel):
                value = value.model_dump(exclude_unset=True)
            data["config"] = {**data["config"], **_snake_keys(value or {})}
        elif key in _FLAT_CONFIG_KEYS:
            data["config"][key] = value
        else:
            data[key] = value
    return parse_field(data)


# ==================== Forms ====================


class FormSettings(WireModel):
    """Presentation and post-submit behaviour of a form."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    theme: str = "default"
    layout: str = "classic"
    thank_you_message: str = DEFAULT_THANK_YOU_MESSAGE
    redirect_url: Optional[str] = None
    webhook_url: Optional[str] = None
    webhook_enabled: bool = False
    enable_honeypot: bool = False
    show_progress_bar: bool = False
    remove_branding: bool = False
    allow_multiple_submissions: bool = True


class FormSnapshot(WireModel):
    """Everything an editor sends when it saves."""

    title: str = DEFAULT_FORM_TITLE
    description: Optional[str] = None
    settings: FormSettings = Field(default_factory=FormSettings)
    fields: list[FieldDefinition] = Field(default_factory=list)


class FormDefinition(FormSnapshot):
    id: Optional[int] = None
    owner: Optional[str] = None
    slug: Optional[str] = None
    status: FormStatus = FormStatus.DRAFT
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_published(self) -> bool:
        return self.status == FormStatus.PUBLISHED


class Submission(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    form_id: int
    submitted_at: datetime
    data: dict[str, Any] = Field(default_factory=dict)
