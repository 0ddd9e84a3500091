"""In-memory form builder state.

``FormEditor`` owns the ordered field list of one form being edited plus the
selection, dirty flag and preview toggle. Every structural operation keeps
``order`` values dense: after it returns, the orders are exactly
``0..n-1`` and the list is sorted by them.

``EditorSession`` is the single entry point a UI drives. It dispatches
editor commands, re-arms auto-save after each edit and debounces the
text builder.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, Optional

from pydantic import ValidationError
from pydantic.alias_generators import to_snake

from .consts import AUTOSAVE_DELAY, DEFAULT_FORM_TITLE, TEXT_PARSE_DELAY
from .enums import FieldType
from .errors import StoreError
from .fields import (
    BaseField,
    FieldDefinition,
    FormSettings,
    FormSnapshot,
    apply_changes,
    parse_field,
    parse_fields,
)
from .registry import default_config, default_label
from .scheduler import Debouncer, SaveScheduler
from .text_dsl import parse_text
from .utils import generate_field_id

logger = logging.getLogger(__name__)

Persist = Callable[[FormSnapshot], Awaitable[Any]]

# Attributes that only structural operations may change.
_PROTECTED_KEYS = frozenset({"id", "order", "persisted_id", "persistedId"})


def _renumber(fields: Iterable[BaseField]) -> list[FieldDefinition]:
    return [f if f.order == i else f.model_copy(update={"order": i}) for i, f in enumerate(fields)]


class FormEditor:
    def __init__(
        self,
        fields: Iterable[dict[str, Any] | BaseField] = (),
        title: str = DEFAULT_FORM_TITLE,
        description: Optional[str] = None,
        settings: FormSettings | dict[str, Any] | None = None,
        persist: Optional[Persist] = None,
    ):
        self.fields: list[FieldDefinition] = _renumber(
            sorted(parse_fields(fields), key=lambda f: f.order)
        )
        self.title = title
        self.description = description
        self.settings = FormSettings.model_validate(settings or {})
        self.selected_field_id: Optional[str] = None
        self.has_unsaved_changes = False
        self.last_saved: Optional[datetime] = None
        self.is_preview_mode = False
        self._persist = persist
        self._revision = 0

    @classmethod
    def from_snapshot(cls, snapshot: FormSnapshot, persist: Optional[Persist] = None) -> "FormEditor":
        return cls(
            fields=snapshot.fields,
            title=snapshot.title,
            description=snapshot.description,
            settings=snapshot.settings,
            persist=persist,
        )

    # ==================== Lookups ====================

    def field(self, field_id: str) -> Optional[FieldDefinition]:
        for f in self.fields:
            if f.id == field_id:
                return f
        return None

    def _index(self, field_id: str) -> int:
        for i, f in enumerate(self.fields):
            if f.id == field_id:
                return i
        return -1

    @property
    def selected_field(self) -> Optional[FieldDefinition]:
        if self.selected_field_id is None:
            return None
        return self.field(self.selected_field_id)

    def value_key(self, field_id: str) -> Optional[str]:
        f = self.field(field_id)
        return f.value_key if f else None

    def condition_candidates(self, field_id: str) -> list[FieldDefinition]:
        """Fields a condition on ``field_id`` may sensibly target.

        Only fields placed earlier in the form are offered, and never layout
        fields or the field itself.
        """
        f = self.field(field_id)
        limit = f.order if f else len(self.fields)
        return [c for c in self.fields if c.order < limit and not c.is_layout]

    def forward_references(self) -> list[tuple[FieldDefinition, str]]:
        """Conditions whose target is missing or not placed before the field.

        Both still evaluate (a missing target fails open) but usually point
        at a mistake left behind by a reorder or delete.
        """
        found = []
        for f in self.fields:
            condition = f.condition
            if condition is None:
                continue
            target = self.field(condition.target_field_id)
            if target is None or target.order >= f.order:
                found.append((f, condition.target_field_id))
        return found

    def key_collisions(self) -> dict[str, list[str]]:
        """Value keys derived by more than one input field, mapped to their field ids."""
        by_key: dict[str, list[str]] = {}
        for f in self.fields:
            if f.is_layout:
                continue
            by_key.setdefault(f.value_key, []).append(f.id)
        return {key: ids for key, ids in by_key.items() if len(ids) > 1}

    # ==================== Edits ====================

    def _touch(self) -> None:
        self._revision += 1
        self.has_unsaved_changes = True

    def add(self, field_type: FieldType | str, order: Optional[int] = None) -> FieldDefinition:
        """Insert a new field of ``field_type`` with the type's default config.

        Without ``order`` the field is appended; otherwise it lands at
        ``order`` (clamped to the list bounds) and later fields shift down.
        The new field becomes the selection.
        """
        field_type = FieldType(field_type)
        position = len(self.fields) if order is None else max(0, min(order, len(self.fields)))

        new_field = parse_field(
            {
                "id": generate_field_id(),
                "type": field_type.value,
                "label": default_label(field_type),
                "order": position,
                "config": default_config(field_type),
            }
        )

        fields = list(self.fields)
        fields.insert(position, new_field)
        self.fields = _renumber(fields)
        self.selected_field_id = new_field.id
        self._touch()
        return new_field

    def update(self, field_id: str, changes: dict[str, Any]) -> Optional[FieldDefinition]:
        """Merge ``changes`` into one field.

        Unknown ids are ignored. Changes that would produce an invalid field
        are logged and discarded. ``id`` and ``order`` cannot be changed here;
        use ``reorder`` to move fields.
        """
        index = self._index(field_id)
        if index < 0:
            logger.debug(f"Ignoring update for unknown field {field_id}")
            return None

        ignored = _PROTECTED_KEYS.intersection(changes)
        if ignored:
            logger.debug(f"Ignoring protected attributes in update: {sorted(ignored)}")
            changes = {k: v for k, v in changes.items() if k not in _PROTECTED_KEYS}

        try:
            updated = apply_changes(self.fields[index], changes)
        except ValidationError as e:
            logger.warning(f"Rejected update for field {field_id}: {e.error_count()} invalid values")
            return None

        self.fields[index] = updated
        self._touch()
        return updated

    def delete(self, field_id: str) -> bool:
        index = self._index(field_id)
        if index < 0:
            return False

        fields = list(self.fields)
        del fields[index]
        self.fields = _renumber(fields)
        if self.selected_field_id == field_id:
            self.selected_field_id = None
        self._touch()
        return True

    def duplicate(self, field_id: str) -> Optional[FieldDefinition]:
        """Insert a deep copy of a field right after it and select the copy."""
        index = self._index(field_id)
        if index < 0:
            return None

        source = self.fields[index]
        clone = source.model_copy(
            update={"id": generate_field_id(), "persisted_id": None, "order": index + 1},
            deep=True,
        )

        fields = list(self.fields)
        fields.insert(index + 1, clone)
        self.fields = _renumber(fields)
        self.selected_field_id = clone.id
        self._touch()
        return clone

    def reorder(self, from_index: int, to_index: int) -> bool:
        """Move the field at ``from_index`` to ``to_index`` and renumber.

        Indices address the current ordered list. Out-of-range indices leave
        everything untouched.
        """
        size = len(self.fields)
        if not (0 <= from_index < size and 0 <= to_index < size):
            logger.debug(f"Ignoring reorder {from_index} -> {to_index} on {size} fields")
            return False

        fields = list(self.fields)
        moved = fields.pop(from_index)
        fields.insert(to_index, moved)
        self.fields = _renumber(fields)
        self._touch()
        return True

    def select(self, field_id: Optional[str]) -> None:
        self.selected_field_id = field_id

    def set_fields(self, fields: Iterable[dict[str, Any] | BaseField]) -> None:
        """Replace the whole field list, sorting by ``order`` and renumbering."""
        self.fields = _renumber(sorted(parse_fields(fields), key=lambda f: f.order))
        if self.selected_field_id is not None and self.field(self.selected_field_id) is None:
            self.selected_field_id = None
        self._touch()

    def apply_text(self, text: str) -> list[FieldDefinition]:
        fields = parse_text(text)
        self.set_fields(fields)
        logger.debug(f"Applied text builder input: {len(fields)} fields")
        return self.fields

    def set_title(self, title: str) -> None:
        self.title = title
        self._touch()

    def set_description(self, description: Optional[str]) -> None:
        self.description = description
        self._touch()

    def update_settings(self, changes: dict[str, Any]) -> FormSettings:
        changes = {to_snake(k): v for k, v in changes.items()}
        try:
            self.settings = FormSettings.model_validate({**self.settings.model_dump(), **changes})
        except ValidationError as e:
            logger.warning(f"Rejected settings update: {e.error_count()} invalid values")
            return self.settings
        self._touch()
        return self.settings

    def toggle_preview(self) -> bool:
        self.is_preview_mode = not self.is_preview_mode
        if self.is_preview_mode:
            self.selected_field_id = None
        return self.is_preview_mode

    def mark_saved(self) -> None:
        self.has_unsaved_changes = False
        self.last_saved = datetime.now(timezone.utc)

    def reset(self) -> None:
        self.fields = []
        self.title = DEFAULT_FORM_TITLE
        self.description = None
        self.settings = FormSettings()
        self.selected_field_id = None
        self.has_unsaved_changes = False
        self.last_saved = None
        self.is_preview_mode = False
        self._revision += 1

    # ==================== Persistence ====================

    def snapshot(self) -> FormSnapshot:
        return FormSnapshot(
            title=self.title,
            description=self.description,
            settings=self.settings.model_copy(),
            fields=[f.model_copy(deep=True) for f in self.fields],
        )

    async def save(self) -> FormSnapshot:
        """Hand the current snapshot to the persist callback.

        The dirty flag is cleared only if nothing changed while the save was
        running; otherwise the newer edits stay marked unsaved.

        Raises:
            StoreError: no persist callback was configured
        """
        if self._persist is None:
            raise StoreError("Editor has no persistence configured")

        revision = self._revision
        snapshot = self.snapshot()
        for key, ids in self.key_collisions().items():
            logger.warning(f"Fields {ids} share the value key {key!r}; the last one wins in submissions")

        await self._persist(snapshot)

        self.last_saved = datetime.now(timezone.utc)
        if self._revision == revision:
            self.has_unsaved_changes = False
        logger.debug(f"Saved form '{self.title}' with {len(snapshot.fields)} fields")
        return snapshot


class EditorSession:
    """Drive a ``FormEditor`` the way a builder UI does.

    All mutations go through ``dispatch`` so auto-save is re-armed after
    every edit that leaves the editor dirty. Text builder input is buffered
    by ``set_text`` and applied once typing pauses. Must be used from within
    a running event loop.
    """

    COMMANDS = frozenset(
        {
            "add",
            "update",
            "delete",
            "duplicate",
            "reorder",
            "select",
            "set_fields",
            "apply_text",
            "set_title",
            "set_description",
            "update_settings",
            "toggle_preview",
        }
    )

    def __init__(
        self,
        editor: FormEditor,
        autosave_delay: float = AUTOSAVE_DELAY,
        text_parse_delay: float = TEXT_PARSE_DELAY,
    ):
        self.editor = editor
        self.autosave = SaveScheduler(editor.save, autosave_delay)
        self._text = ""
        self._text_debouncer = Debouncer(text_parse_delay, self._apply_pending_text)

    @classmethod
    def from_config(cls, editor: FormEditor, config) -> "EditorSession":
        return cls(
            editor,
            autosave_delay=config.autosave_delay,
            text_parse_delay=config.text_parse_delay,
        )

    def dispatch(self, command: str, **kwargs) -> Any:
        if command not in self.COMMANDS:
            raise ValueError(f"Unknown editor command: {command}")

        result = getattr(self.editor, command)(**kwargs)
        if self.editor.has_unsaved_changes:
            self.autosave.schedule()
        return result

    @property
    def text(self) -> str:
        return self._text

    @property
    def text_pending(self) -> bool:
        return self._text_debouncer.pending

    def set_text(self, text: str) -> None:
        """Buffer text builder input; blank input never replaces the fields."""
        self._text = text
        if text.strip():
            self._text_debouncer.arm()
        else:
            self._text_debouncer.cancel()

    def _apply_pending_text(self) -> None:
        self.dispatch("apply_text", text=self._text)

    async def save_now(self) -> None:
        """Explicit save (the keyboard shortcut path); skips the quiet period."""
        if self._text_debouncer.pending:
            self._text_debouncer.fire()
        await self.autosave.flush_now()

    def close(self) -> None:
        self._text_debouncer.cancel()
        self.autosave.close()
