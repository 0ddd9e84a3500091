"""Form management and public submission operations.

These sit between the HTTP layer and the record store: they check
ownership, sanitize user-authored text, enforce publishing rules and run
submissions through a freshly compiled schema.
"""

import logging
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from . import db
from .auth import Principal
from .compiler import validate_submission
from .enums import FormStatus
from .errors import (
    FormClosedError,
    InvalidInputError,
    NotFoundError,
    RateLimitExceeded,
    StoreError,
    UnpublishableFormError,
)
from .fields import (
    BaseField,
    FieldDefinition,
    FormDefinition,
    FormSettings,
    FormSnapshot,
    Submission,
    parse_fields,
)
from .ratelimit import RateLimiter
from .sanitize import sanitize_submission, sanitize_text
from .utils import generate_unique_slug

logger = logging.getLogger(__name__)


def _clean_optional(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    return sanitize_text(text) or None


def clean_field(field: BaseField) -> FieldDefinition:
    """Strip markup from a field's user-visible strings."""
    config_update: dict[str, Any] = {"placeholder": _clean_optional(field.config.placeholder)}
    if getattr(field.config, "help_text", None) is not None:
        config_update["help_text"] = _clean_optional(field.config.help_text)
    return field.model_copy(
        update={
            "label": sanitize_text(field.label),
            "config": field.config.model_copy(update=config_update),
        }
    )


def prepare_fields(fields: Iterable[dict[str, Any] | BaseField]) -> list[FieldDefinition]:
    """Validate, sanitize and densely renumber an incoming field list.

    Raises:
        InvalidInputError: a field is malformed or two fields share an id
    """
    try:
        parsed = parse_fields(fields)
    except ValidationError as e:
        raise InvalidInputError(f"Invalid field definitions: {e.error_count()} errors") from e

    ids = [f.id for f in parsed]
    if len(ids) != len(set(ids)):
        raise InvalidInputError("Field ids must be unique within a form")

    ordered = sorted(parsed, key=lambda f: f.order)
    return [clean_field(f).model_copy(update={"order": i}) for i, f in enumerate(ordered)]


class FormService:
    def __init__(self, rate_limiter: Optional[RateLimiter] = None):
        self.rate_limiter = rate_limiter

    # ==================== Management ====================

    def _owned(self, principal: Principal, form_id: int) -> FormDefinition:
        form = db.get_form(form_id, owner=principal.owner)
        if form is None:
            raise NotFoundError(f"Form {form_id} not found for {principal.owner}")
        return form

    def list_forms(self, principal: Principal) -> list[FormDefinition]:
        return db.list_forms(principal.owner)

    def get_form(self, principal: Principal, form_id: int) -> FormDefinition:
        return self._owned(principal, form_id)

    def create_form(
        self,
        principal: Principal,
        title: str,
        description: Optional[str] = None,
        settings: Optional[dict[str, Any]] = None,
        fields: Optional[Iterable[dict[str, Any] | BaseField]] = None,
    ) -> FormDefinition:
        title = sanitize_text(title)
        if not title:
            raise InvalidInputError("Title is required")

        prepared = prepare_fields(fields or [])
        try:
            form = db.create_form(
                principal.owner,
                title,
                description=_clean_optional(description),
                settings=settings,
            )
        except ValidationError as e:
            raise InvalidInputError(f"Invalid form settings: {e.error_count()} errors") from e

        if prepared:
            db.replace_fields(form.id, prepared)
            form = self._owned(principal, form.id)
        logger.info(f"{principal.owner} created form {form.id}")
        return form

    def update_form(
        self,
        principal: Principal,
        form_id: int,
        patch: dict[str, Any],
        fields: Optional[Iterable[dict[str, Any] | BaseField]] = None,
    ) -> FormDefinition:
        """Update title, description, status or settings, and optionally replace all fields.

        Moving to ``published`` goes through the same zero-field check as
        ``publish_form``.
        """
        form = self._owned(principal, form_id)
        patch = dict(patch)

        if "title" in patch:
            patch["title"] = sanitize_text(patch["title"])
            if not patch["title"]:
                raise InvalidInputError("Title is required")
        if "description" in patch:
            patch["description"] = _clean_optional(patch["description"])

        if "status" in patch:
            try:
                patch["status"] = FormStatus(patch["status"])
            except ValueError:
                raise InvalidInputError("Invalid status") from None

        if patch.get("settings") is not None:
            try:
                FormSettings.model_validate(patch["settings"])
            except ValidationError as e:
                raise InvalidInputError(f"Invalid form settings: {e.error_count()} errors") from e

        prepared = prepare_fields(fields) if fields is not None else None

        if patch.get("status") == FormStatus.PUBLISHED:
            field_count = len(prepared) if prepared is not None else len(form.fields)
            if field_count == 0:
                raise UnpublishableFormError(f"Form {form_id} has no fields")

        if prepared is not None:
            db.replace_fields(form_id, prepared)

        return db.update_form(form_id, patch, owner=principal.owner)

    def save_snapshot(self, principal: Principal, form_id: int, snapshot: FormSnapshot) -> FormDefinition:
        """Persist an editor snapshot; this is what builder auto-save calls."""
        return self.update_form(
            principal,
            form_id,
            {
                "title": snapshot.title,
                "description": snapshot.description,
                "settings": snapshot.settings.model_dump(mode="json"),
            },
            fields=snapshot.fields,
        )

    def delete_form(self, principal: Principal, form_id: int) -> None:
        if not db.delete_form(form_id, owner=principal.owner):
            raise NotFoundError(f"Form {form_id} not found for {principal.owner}")
        logger.info(f"{principal.owner} deleted form {form_id}")

    def set_status(self, principal: Principal, form_id: int, status: FormStatus | str) -> FormDefinition:
        try:
            status = FormStatus(status)
        except ValueError:
            raise InvalidInputError("Invalid status") from None

        self._owned(principal, form_id)
        if status == FormStatus.PUBLISHED and db.count_fields(form_id) == 0:
            raise UnpublishableFormError(f"Form {form_id} has no fields")

        form = db.update_form(form_id, {"status": status}, owner=principal.owner)
        logger.info(f"Form {form_id} is now {status.value}")
        return form

    def publish_form(self, principal: Principal, form_id: int) -> FormDefinition:
        return self.set_status(principal, form_id, FormStatus.PUBLISHED)

    def unpublish_form(self, principal: Principal, form_id: int) -> FormDefinition:
        return self.set_status(principal, form_id, FormStatus.DRAFT)

    def duplicate_form(self, principal: Principal, form_id: int) -> FormDefinition:
        """Copy a form and its fields into a new draft.

        If copying the fields fails the new form is still returned, empty,
        and the failure is logged.
        """
        source = self._owned(principal, form_id)
        copy = db.create_form(
            principal.owner,
            f"{sanitize_text(source.title)} (Copy)",
            description=_clean_optional(source.description),
            settings=source.settings.model_dump(mode="json"),
            slug=generate_unique_slug(f"{source.slug}-copy"),
        )

        if source.fields:
            try:
                db.replace_fields(copy.id, [clean_field(f) for f in source.fields])
            except StoreError as e:
                logger.error(f"Duplicated form {copy.id} but copying fields from {form_id} failed: {e}")

        logger.info(f"{principal.owner} duplicated form {form_id} as {copy.id}")
        return self._owned(principal, copy.id)

    def list_submissions(self, principal: Principal, form_id: int, page: int = 1) -> tuple[list[Submission], int]:
        self._owned(principal, form_id)
        return db.list_submissions(form_id, page=page), db.count_submissions(form_id)

    # ==================== Public ====================

    def get_public_form(self, slug: str) -> FormDefinition:
        form = db.get_form_by_slug(slug)
        if form is None or not form.is_published:
            raise NotFoundError(f"No published form with slug {slug!r}")
        return form

    def submit(self, slug: str, payload: Any, client_key: str = "unknown") -> Submission:
        """Validate and store one public submission.

        Raises:
            RateLimitExceeded: ``client_key`` used up its window
            NotFoundError: no form with ``slug``
            FormClosedError: the form is not published or has no fields
            SubmissionValidationError: the payload failed the compiled schema
        """
        if self.rate_limiter is not None and not self.rate_limiter.allow(client_key):
            raise RateLimitExceeded(f"Too many submissions from {client_key}")

        form = db.get_form_by_slug(slug)
        if form is None:
            raise NotFoundError(f"No form with slug {slug!r}")
        if not form.is_published:
            raise FormClosedError()
        if not form.fields:
            raise FormClosedError("Form has no fields", status_code=400)

        data = validate_submission(form.fields, payload).raise_for_errors()
        submission = db.create_submission(form.id, sanitize_submission(data))
        logger.info(f"Accepted submission {submission.id} for form {form.id}")
        return submission
