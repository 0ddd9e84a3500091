"""Tests for the form builder editor"""

import asyncio
import random

import pytest

from formwright.editor import FormEditor
from formwright.enums import FieldType
from formwright.errors import StoreError
from formwright.fields import FormSnapshot


def _orders(editor):
    return [f.order for f in editor.fields]


def _ids(editor):
    return [f.id for f in editor.fields]


def _assert_dense(editor):
    assert sorted(_orders(editor)) == list(range(len(editor.fields)))
    assert _orders(editor) == list(range(len(editor.fields)))


@pytest.fixture
def editor():
    editor = FormEditor()
    for field_type in ("text", "email", "number"):
        editor.add(field_type)
    editor.mark_saved()
    return editor


class TestAdd:
    def test_append_uses_registry_defaults(self):
        editor = FormEditor()
        field = editor.add(FieldType.RADIO)

        assert field.order == 0
        assert field.label == "Radio"
        assert field.config.options == ["Option 1"]
        assert editor.selected_field_id == field.id
        assert editor.has_unsaved_changes

    def test_insert_shifts_later_fields(self, editor):
        before = _ids(editor)
        field = editor.add("rating", order=1)

        assert _ids(editor) == [before[0], field.id, before[1], before[2]]
        assert field.config.max_rating == 5
        _assert_dense(editor)

    def test_order_clamped(self, editor):
        field = editor.add("text", order=99)
        assert field.order == 3
        first = editor.add("text", order=-5)
        assert editor.fields[0].id == first.id
        _assert_dense(editor)

    def test_unknown_type_rejected(self, editor):
        with pytest.raises(ValueError):
            editor.add("hologram")
        assert len(editor.fields) == 3


class TestUpdate:
    def test_shallow_config_merge(self):
        editor = FormEditor()
        field = editor.add("dropdown")
        editor.update(field.id, {"config": {"required": True}})

        updated = editor.field(field.id)
        assert updated.required is True
        assert updated.config.options == ["Option 1"]

    def test_unknown_id_is_noop(self, editor):
        assert editor.update("missing", {"label": "X"}) is None
        assert not editor.has_unsaved_changes

    def test_invalid_change_ignored(self, editor):
        field_id = editor.fields[2].id
        assert editor.update(field_id, {"config": {"min": "lots"}}) is None
        assert editor.field(field_id).config.min is None
        assert not editor.has_unsaved_changes

    def test_order_and_id_protected(self, editor):
        field_id = editor.fields[0].id
        updated = editor.update(field_id, {"order": 2, "id": "other", "label": "Full Name"})

        assert updated.id == field_id
        assert updated.order == 0
        assert updated.label == "Full Name"
        _assert_dense(editor)


class TestDeleteDuplicate:
    def test_delete_renumbers(self, editor):
        first, middle, last = _ids(editor)
        editor.select(middle)

        assert editor.delete(middle) is True
        assert _ids(editor) == [first, last]
        assert editor.selected_field_id is None
        _assert_dense(editor)

    def test_delete_unknown(self, editor):
        assert editor.delete("missing") is False
        assert len(editor.fields) == 3

    def test_duplicate_inserted_after_source(self, editor):
        first, middle, last = _ids(editor)
        editor.update(middle, {"config": {"placeholder": "you@example.com"}})

        clone = editor.duplicate(middle)

        assert _ids(editor) == [first, middle, clone.id, last]
        assert clone.id != middle
        assert clone.label == editor.field(middle).label
        assert clone.config.placeholder == "you@example.com"
        assert editor.selected_field_id == clone.id
        _assert_dense(editor)

    def test_duplicate_is_independent(self):
        editor = FormEditor()
        source = editor.add("checkbox")
        clone = editor.duplicate(source.id)

        editor.update(clone.id, {"config": {"options": ["Only clone"]}})
        assert editor.field(source.id).config.options == ["Option 1"]

    def test_duplicate_unknown(self, editor):
        assert editor.duplicate("missing") is None


class TestReorder:
    def test_move_down(self, editor):
        a, b, c = _ids(editor)
        assert editor.reorder(0, 2) is True
        assert _ids(editor) == [b, c, a]
        _assert_dense(editor)

    def test_move_up(self, editor):
        a, b, c = _ids(editor)
        editor.reorder(2, 0)
        assert _ids(editor) == [c, a, b]

    @pytest.mark.parametrize("index", [0, 1, 2])
    def test_same_index_is_idempotent(self, editor, index):
        before = _ids(editor)
        editor.reorder(index, index)
        assert _ids(editor) == before
        assert _orders(editor) == [0, 1, 2]

    @pytest.mark.parametrize("from_index, to_index", [(-1, 0), (0, 3), (5, 1)])
    def test_out_of_range_is_noop(self, editor, from_index, to_index):
        before = _ids(editor)
        assert editor.reorder(from_index, to_index) is False
        assert _ids(editor) == before
        assert not editor.has_unsaved_changes


def test_order_density_over_random_operations():
    rng = random.Random(20261019)
    editor = FormEditor()
    types = [t.value for t in FieldType]

    for _ in range(500):
        op = rng.choice(["add", "add_at", "delete", "duplicate", "reorder"])
        ids = _ids(editor)
        if op == "add":
            editor.add(rng.choice(types))
        elif op == "add_at":
            editor.add(rng.choice(types), order=rng.randint(-2, len(ids) + 2))
        elif op == "delete" and ids:
            editor.delete(rng.choice(ids))
        elif op == "duplicate" and ids:
            editor.duplicate(rng.choice(ids))
        elif op == "reorder":
            size = len(ids)
            editor.reorder(rng.randint(-1, size), rng.randint(-1, size))

        _assert_dense(editor)
        assert len(set(_ids(editor))) == len(editor.fields)


class TestStateFlags:
    def test_set_fields_sorts_and_renumbers(self):
        editor = FormEditor()
        editor.set_fields(
            [
                {"id": "b", "type": "text", "label": "B", "order": 7},
                {"id": "a", "type": "text", "label": "A", "order": 2},
            ]
        )
        assert _ids(editor) == ["a", "b"]
        _assert_dense(editor)
        assert editor.has_unsaved_changes

    def test_set_fields_drops_stale_selection(self, editor):
        editor.select(editor.fields[0].id)
        editor.set_fields([])
        assert editor.selected_field_id is None

    def test_apply_text(self, editor):
        fields = editor.apply_text("*Email\nColor? Red, Blue")
        assert [f.type for f in fields] == ["text", "radio"]
        assert [f.type for f in editor.fields] == ["text", "radio"]

    def test_toggle_preview_clears_selection(self, editor):
        editor.select(editor.fields[0].id)
        assert editor.toggle_preview() is True
        assert editor.selected_field_id is None
        assert editor.toggle_preview() is False

    def test_title_description_settings(self, editor):
        editor.set_title("Survey")
        editor.set_description("About you")
        settings = editor.update_settings({"thankYouMessage": "Thanks!", "theme": "dark"})

        assert editor.title == "Survey"
        assert editor.description == "About you"
        assert settings.thank_you_message == "Thanks!"
        assert settings.theme == "dark"
        assert editor.has_unsaved_changes

    def test_invalid_settings_ignored(self, editor):
        editor.update_settings({"webhook_enabled": "not a bool"})
        assert editor.settings.webhook_enabled is False
        assert not editor.has_unsaved_changes

    def test_reset(self, editor):
        editor.set_title("Survey")
        editor.reset()
        assert editor.fields == []
        assert editor.title == "Untitled Form"
        assert not editor.has_unsaved_changes
        assert editor.last_saved is None

    def test_select_keeps_dirty_flag(self, editor):
        editor.select(editor.fields[1].id)
        assert editor.selected_field.id == editor.fields[1].id
        assert not editor.has_unsaved_changes


class TestHelpers:
    @pytest.fixture
    def editor(self):
        editor = FormEditor(
            fields=[
                {"id": "f1", "type": "radio", "label": "Has Pet", "order": 0},
                {"id": "d", "type": "divider", "order": 1},
                {
                    "id": "f2",
                    "type": "text",
                    "label": "Pet Name",
                    "order": 2,
                    "condition": {"targetFieldId": "f1", "operator": "equals", "value": "Yes"},
                },
                {"id": "f3", "type": "text", "label": "pet  name", "order": 3},
            ]
        )
        return editor

    def test_value_key(self, editor):
        assert editor.value_key("f2") == "pet_name"
        assert editor.value_key("missing") is None

    def test_condition_candidates(self, editor):
        assert [f.id for f in editor.condition_candidates("f2")] == ["f1"]
        assert [f.id for f in editor.condition_candidates("f1")] == []

    def test_forward_references(self, editor):
        assert editor.forward_references() == []
        editor.reorder(2, 0)
        assert [(f.id, target) for f, target in editor.forward_references()] == [("f2", "f1")]
        editor.delete("f1")
        assert [(f.id, target) for f, target in editor.forward_references()] == [("f2", "f1")]

    def test_key_collisions(self, editor):
        assert editor.key_collisions() == {"pet_name": ["f2", "f3"]}


class TestSave:
    def test_save_sends_snapshot_and_clears_dirty(self, editor):
        saved = []

        async def persist(snapshot):
            saved.append(snapshot)

        editor._persist = persist
        editor.set_title("Survey")
        snapshot = asyncio.run(editor.save())

        assert isinstance(snapshot, FormSnapshot)
        assert saved == [snapshot]
        assert snapshot.title == "Survey"
        assert [f.id for f in snapshot.fields] == _ids(editor)
        assert not editor.has_unsaved_changes
        assert editor.last_saved is not None

    def test_edit_during_save_stays_dirty(self):
        async def scenario():
            started = asyncio.Event()
            release = asyncio.Event()

            async def persist(snapshot):
                started.set()
                await release.wait()

            editor = FormEditor(persist=persist)
            editor.add("text")
            save = asyncio.ensure_future(editor.save())
            await started.wait()
            editor.add("email")
            release.set()
            snapshot = await save
            return editor, snapshot

        editor, snapshot = asyncio.run(scenario())
        assert len(snapshot.fields) == 1
        assert len(editor.fields) == 2
        assert editor.has_unsaved_changes
        assert editor.last_saved is not None

    def test_failed_save_keeps_dirty(self):
        async def persist(snapshot):
            raise StoreError("disk full")

        editor = FormEditor(persist=persist)
        editor.add("text")
        with pytest.raises(StoreError):
            asyncio.run(editor.save())
        assert editor.has_unsaved_changes
        assert editor.last_saved is None

    def test_save_without_persistence(self, editor):
        with pytest.raises(StoreError):
            asyncio.run(editor.save())

    def test_snapshot_is_a_copy(self, editor):
        snapshot = editor.snapshot()
        editor.update(editor.fields[0].id, {"label": "Changed"})
        assert snapshot.fields[0].label == "Short Text"

    def test_from_snapshot(self, editor):
        editor.set_title("Survey")
        restored = FormEditor.from_snapshot(editor.snapshot())
        assert restored.title == "Survey"
        assert _ids(restored) == _ids(editor)
        assert not restored.has_unsaved_changes
