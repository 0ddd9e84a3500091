"""Tests for form management and public submissions"""

from unittest.mock import patch

import pytest
from peewee import OperationalError

from formwright import db
from formwright.auth import Principal
from formwright.enums import FormStatus
from formwright.errors import (
    FormClosedError,
    InvalidInputError,
    NotFoundError,
    RateLimitExceeded,
    StoreError,
    SubmissionValidationError,
    UnpublishableFormError,
)
from formwright.fields import FormSnapshot
from formwright.ratelimit import RateLimiter
from formwright.services import FormService, prepare_fields

ALICE = Principal(owner="alice")
BOB = Principal(owner="bob")

PET_FIELDS = [
    {"id": "f1", "type": "radio", "label": "Has Pet", "order": 0, "options": ["Yes", "No"]},
    {
        "id": "f2",
        "type": "text",
        "label": "Pet Name",
        "order": 1,
        "condition": {"targetFieldId": "f1", "operator": "equals", "value": "Yes"},
    },
]

CONTACT_FIELDS = [
    {"type": "email", "label": "Email", "required": True},
    {"type": "number", "label": "Age", "required": True, "min": 0, "max": 120},
]


@pytest.fixture(autouse=True)
def database(tmp_path):
    db.init_db(str(tmp_path / "forms.db"))
    db.create_tables()
    yield
    db.close_db()


@pytest.fixture
def service():
    return FormService(rate_limiter=RateLimiter(max_requests=3, window_seconds=60))


@pytest.fixture
def published(service):
    form = service.create_form(ALICE, "Contact", fields=CONTACT_FIELDS)
    return service.publish_form(ALICE, form.id)


class TestPrepareFields:
    def test_renumbers_and_sanitizes(self):
        fields = prepare_fields(
            [
                {"id": "b", "type": "text", "label": "<b>Second</b>", "order": 9},
                {"id": "a", "type": "text", "label": "First", "order": 3, "placeholder": "<i></i>"},
            ]
        )
        assert [(f.id, f.label, f.order) for f in fields] == [("a", "First", 0), ("b", "Second", 1)]
        assert fields[0].config.placeholder is None

    def test_duplicate_ids(self):
        with pytest.raises(InvalidInputError):
            prepare_fields([{"id": "a", "type": "text"}, {"id": "a", "type": "email"}])

    def test_malformed_field(self):
        with pytest.raises(InvalidInputError):
            prepare_fields([{"type": "hologram"}])


class TestManagement:
    def test_create_form_with_fields(self, service):
        form = service.create_form(ALICE, "  <script>x</script>Pets  ", fields=PET_FIELDS)

        assert form.title == "Pets"
        assert form.owner == "alice"
        assert [f.id for f in form.fields] == ["f1", "f2"]

    def test_empty_title_rejected(self, service):
        with pytest.raises(InvalidInputError):
            service.create_form(ALICE, "<b></b>")

    def test_invalid_settings_rejected(self, service):
        with pytest.raises(InvalidInputError):
            service.create_form(ALICE, "Survey", settings={"webhookEnabled": "maybe"})

    def test_other_owner_sees_not_found(self, service):
        form = service.create_form(ALICE, "Private")

        with pytest.raises(NotFoundError):
            service.get_form(BOB, form.id)
        with pytest.raises(NotFoundError):
            service.update_form(BOB, form.id, {"title": "Mine"})
        with pytest.raises(NotFoundError):
            service.delete_form(BOB, form.id)
        with pytest.raises(NotFoundError):
            service.list_submissions(BOB, form.id)
        assert service.list_forms(BOB) == []

    def test_update_sanitizes_and_replaces_fields(self, service):
        form = service.create_form(ALICE, "Survey", fields=PET_FIELDS)

        updated = service.update_form(
            ALICE,
            form.id,
            {"title": "<em>Poll</em>", "settings": {"theme": "dark"}},
            fields=[{"id": "g1", "type": "email", "label": "Email <b>address</b>"}],
        )

        assert updated.title == "Poll"
        assert updated.settings.theme == "dark"
        assert [(f.id, f.label) for f in updated.fields] == [("g1", "Email address")]

    def test_invalid_status_leaves_form_untouched(self, service):
        form = service.create_form(ALICE, "Survey", fields=PET_FIELDS)

        with pytest.raises(InvalidInputError):
            service.update_form(ALICE, form.id, {"status": "archived"}, fields=[])

        assert len(service.get_form(ALICE, form.id).fields) == 2

    def test_conditions_survive_reload(self, service):
        form = service.create_form(ALICE, "Pets", fields=PET_FIELDS)
        reloaded = service.get_form(ALICE, form.id)

        assert reloaded.fields[1].condition.target_field_id == reloaded.fields[0].id

    def test_save_snapshot(self, service):
        form = service.create_form(ALICE, "Survey")
        snapshot = FormSnapshot.model_validate(
            {"title": "Renamed", "settings": {"thankYouMessage": "Cheers"}, "fields": PET_FIELDS}
        )

        saved = service.save_snapshot(ALICE, form.id, snapshot)

        assert saved.title == "Renamed"
        assert saved.settings.thank_you_message == "Cheers"
        assert [f.id for f in saved.fields] == ["f1", "f2"]

    def test_delete(self, service):
        form = service.create_form(ALICE, "Survey")
        service.delete_form(ALICE, form.id)
        with pytest.raises(NotFoundError):
            service.get_form(ALICE, form.id)


class TestPublishing:
    def test_publish_without_fields(self, service):
        form = service.create_form(ALICE, "Empty")

        with pytest.raises(UnpublishableFormError):
            service.publish_form(ALICE, form.id)
        with pytest.raises(UnpublishableFormError):
            service.update_form(ALICE, form.id, {"status": "published"})
        assert service.get_form(ALICE, form.id).status == FormStatus.DRAFT

    def test_publish_with_new_fields_in_same_update(self, service):
        form = service.create_form(ALICE, "Survey")
        updated = service.update_form(ALICE, form.id, {"status": "published"}, fields=PET_FIELDS)
        assert updated.is_published

    def test_publish_and_unpublish(self, service):
        form = service.create_form(ALICE, "Survey", fields=PET_FIELDS)

        assert service.publish_form(ALICE, form.id).is_published
        assert service.unpublish_form(ALICE, form.id).status == FormStatus.DRAFT

    def test_set_status_rejects_unknown(self, service):
        form = service.create_form(ALICE, "Survey", fields=PET_FIELDS)
        with pytest.raises(InvalidInputError):
            service.set_status(ALICE, form.id, "archived")


class TestDuplicate:
    def test_copies_fields_into_new_draft(self, service, published):
        copy = service.duplicate_form(ALICE, published.id)

        assert copy.id != published.id
        assert copy.title == "Contact (Copy)"
        assert copy.slug.startswith("contact-copy-")
        assert copy.status == FormStatus.DRAFT
        assert [f.label for f in copy.fields] == ["Email", "Age"]
        assert [f.id for f in copy.fields] == [f.id for f in published.fields]

    def test_field_copy_failure_still_returns_form(self, service, published, caplog):
        with patch("formwright.services.db.replace_fields", side_effect=StoreError("boom")):
            copy = service.duplicate_form(ALICE, published.id)

        assert copy.title == "Contact (Copy)"
        assert copy.fields == []
        assert "boom" in caplog.text

    def test_database_failure_while_copying_fields(self, service, published, caplog):
        with patch.object(db.FormField, "insert_many", side_effect=OperationalError("database is locked")):
            copy = service.duplicate_form(ALICE, published.id)

        assert copy.title == "Contact (Copy)"
        assert copy.fields == []
        assert "database is locked" in caplog.text

    def test_other_owner(self, service, published):
        with pytest.raises(NotFoundError):
            service.duplicate_form(BOB, published.id)


class TestSubmit:
    def test_valid_submission_stored(self, service, published):
        submission = service.submit(published.slug, {"email": "a@b.com", "age": "30", "x": 1})

        assert submission.data == {"email": "a@b.com", "age": 30}
        submissions, total = service.list_submissions(ALICE, published.id)
        assert total == 1
        assert submissions[0].id == submission.id

    def test_invalid_submission(self, service, published):
        with pytest.raises(SubmissionValidationError) as exc_info:
            service.submit(published.slug, {"email": "not-an-email", "age": 200})

        assert [(e.field, e.message) for e in exc_info.value.errors] == [
            ("email", "Invalid email address"),
            ("age", "Value must be at most 120"),
        ]
        assert service.list_submissions(ALICE, published.id)[1] == 0

    def test_strings_sanitized(self, service):
        form = service.create_form(ALICE, "Feedback", fields=[{"type": "text", "label": "Comment"}])
        service.publish_form(ALICE, form.id)

        submission = service.submit(form.slug, {"comment": "<b>Great</b> job"})
        assert submission.data == {"comment": "Great job"}

    def test_unknown_slug(self, service):
        with pytest.raises(NotFoundError):
            service.submit("nope", {})

    def test_draft_form_closed(self, service):
        form = service.create_form(ALICE, "Draft", fields=CONTACT_FIELDS)

        with pytest.raises(FormClosedError) as exc_info:
            service.submit(form.slug, {"email": "a@b.com", "age": 1})
        assert exc_info.value.status_code == 403

    def test_published_form_without_fields(self, service, published):
        db.replace_fields(published.id, [])

        with pytest.raises(FormClosedError) as exc_info:
            service.submit(published.slug, {})
        assert exc_info.value.status_code == 400

    def test_rate_limited_per_client(self, service, published):
        payload = {"email": "a@b.com", "age": 1}
        for _ in range(3):
            service.submit(published.slug, payload, client_key="10.0.0.1")

        with pytest.raises(RateLimitExceeded):
            service.submit(published.slug, payload, client_key="10.0.0.1")
        service.submit(published.slug, payload, client_key="10.0.0.2")

    def test_no_rate_limiter(self, published):
        service = FormService()
        for _ in range(20):
            service.submit(published.slug, {"email": "a@b.com", "age": 1})

    def test_public_form_requires_published(self, service, published):
        assert service.get_public_form(published.slug).id == published.id

        service.unpublish_form(ALICE, published.id)
        with pytest.raises(NotFoundError):
            service.get_public_form(published.slug)
