"""Database initialization and record store operations."""

import logging
from pathlib import Path
from typing import Any, Iterable, Optional
from zoneinfo import ZoneInfo

from peewee import PeeweeException
from playhouse.pool import PooledSqliteDatabase
from pydantic import ValidationError
from pydantic.alias_generators import to_snake

from .consts import DB_MAX_CONNECTIONS, DB_PRAGMAS, DB_STALE_TIMEOUT, PAGE_SIZE
from .enums import FormStatus
from .errors import StoreError
from .fields import (
    BaseField,
    FieldDefinition,
    FormDefinition,
    FormSettings,
    Submission,
    parse_field,
)
from .models import Form, FormField, database_proxy
from .models import Submission as SubmissionRecord
from .utils import generate_unique_slug, get_now, slugify

logger = logging.getLogger(__name__)

database = None
UTC = ZoneInfo("UTC")

# Config keys stored in their own columns rather than the JSON blob.
_COLUMN_CONFIG_KEYS = ("required", "placeholder")


def init_db(db_path: str):
    """Initialize database connection pool."""
    global database

    db_file = Path(db_path)
    db_dir = db_file.parent
    if db_dir and not db_dir.exists():
        db_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created database directory: {db_dir}")

    database = PooledSqliteDatabase(
        db_path,
        max_connections=DB_MAX_CONNECTIONS,
        stale_timeout=DB_STALE_TIMEOUT,
        pragmas=DB_PRAGMAS,
        check_same_thread=False,
    )

    database_proxy.initialize(database)
    logger.info(f"Database connection pool initialized: {db_path}")


def create_tables():
    """Create database tables."""
    database.create_tables([Form, FormField, SubmissionRecord], safe=True)
    logger.info("Database tables created")


def close_db():
    """Close database connection."""
    global database
    if database:
        database.close()
        logger.info("Database connection closed")


# ==================== Conversion ====================


def field_from_record(record: FormField) -> FieldDefinition:
    config = dict(record.config or {})
    config["required"] = record.is_required
    if record.placeholder is not None:
        config["placeholder"] = record.placeholder

    try:
        return parse_field(
            {
                "id": record.client_id,
                "persisted_id": str(record.id),
                "type": record.field_type,
                "label": record.label,
                "order": record.field_order,
                "config": config,
            }
        )
    except ValidationError as e:
        raise StoreError(f"Stored field {record.id} is not a valid field definition: {e}") from e


def _record_values(form_id: int, field: BaseField) -> dict[str, Any]:
    config = field.config.model_dump(mode="json", by_alias=True, exclude_none=True)
    for key in _COLUMN_CONFIG_KEYS:
        config.pop(key, None)
    return {
        "form": form_id,
        "client_id": field.id,
        "field_type": field.type,
        "label": field.label,
        "placeholder": field.config.placeholder,
        "is_required": field.required,
        "field_order": field.order,
        "config": config,
    }


def form_from_record(record: Form, fields: Optional[list[FieldDefinition]] = None) -> FormDefinition:
    if fields is None:
        fields = get_fields(record.id)
    return FormDefinition(
        id=record.id,
        owner=record.owner,
        slug=record.slug,
        status=record.status,
        title=record.title,
        description=record.description,
        settings=FormSettings.model_validate(record.settings or {}),
        fields=fields,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def submission_from_record(record: SubmissionRecord) -> Submission:
    return Submission(
        id=record.id,
        form_id=record.form_id,
        submitted_at=record.submitted_at,
        data=record.data or {},
    )


# ==================== Forms ====================


def _available_slug(title: str) -> str:
    base = slugify(title) or "form"
    if Form.get_or_none(Form.slug == base) is None:
        return base
    return generate_unique_slug(base)


def create_form(
    owner: str,
    title: str,
    description: str | None = None,
    settings: dict[str, Any] | None = None,
    slug: str | None = None,
) -> FormDefinition:
    """Create an empty draft form; the slug is derived from the title unless given."""
    settings_model = FormSettings.model_validate(settings or {})
    with database.atomic():
        form = Form.create(
            owner=owner,
            title=title,
            slug=slug or _available_slug(title),
            description=description,
            status=FormStatus.DRAFT.value,
            settings=settings_model.model_dump(mode="json"),
        )
    logger.info(f"Form created: {form.id} ({form.slug})")
    return form_from_record(form, fields=[])


def _form_record(form_id: int, owner: str | None = None) -> Form | None:
    query = Form.select().where(Form.id == form_id)
    if owner is not None:
        query = query.where(Form.owner == owner)
    return query.first()


def get_form(form_id: int, owner: str | None = None) -> FormDefinition | None:
    """Load a form with its fields.

    With ``owner`` the lookup only matches that owner's form, so a missing
    form and someone else's form are indistinguishable.
    """
    record = _form_record(form_id, owner)
    if record is None:
        return None
    return form_from_record(record)


def get_form_by_slug(slug: str) -> FormDefinition | None:
    record = Form.get_or_none(Form.slug == slug)
    if record is None:
        return None
    return form_from_record(record)


def list_forms(owner: str) -> list[FormDefinition]:
    query = Form.select().where(Form.owner == owner).order_by(Form.updated_at.desc(), Form.id.desc())
    return [form_from_record(record) for record in query]


def update_form(form_id: int, patch: dict[str, Any], owner: str | None = None) -> FormDefinition | None:
    """Apply a partial update to a form's own columns.

    ``patch`` may carry ``title``, ``description``, ``status`` and
    ``settings`` (merged into the stored settings). Fields are replaced
    separately with ``replace_fields``.
    """
    record = _form_record(form_id, owner)
    if record is None:
        return None

    if "title" in patch:
        record.title = patch["title"]
    if "description" in patch:
        record.description = patch["description"]
    if "status" in patch:
        record.status = FormStatus(patch["status"]).value
    if "settings" in patch and patch["settings"] is not None:
        changes = {to_snake(k): v for k, v in patch["settings"].items()}
        merged = {**(record.settings or {}), **changes}
        record.settings = FormSettings.model_validate(merged).model_dump(mode="json")

    with database.atomic():
        record.save()
    logger.info(f"Form updated: {form_id}")
    return form_from_record(record)


def delete_form(form_id: int, owner: str | None = None) -> bool:
    """Delete a form together with its fields and submissions."""
    record = _form_record(form_id, owner)
    if record is None:
        return False

    with database.atomic():
        FormField.delete().where(FormField.form == record.id).execute()
        SubmissionRecord.delete().where(SubmissionRecord.form == record.id).execute()
        record.delete_instance()
    logger.info(f"Form deleted: {form_id}")
    return True


# ==================== Fields ====================


def _warn_key_collisions(form_id: int, fields: Iterable[BaseField]) -> None:
    seen: dict[str, str] = {}
    for field in fields:
        if field.is_layout:
            continue
        key = field.value_key
        if key in seen:
            logger.warning(
                f"Form {form_id}: fields {seen[key]} and {field.id} share the value key {key!r}"
            )
        seen[key] = field.id


def replace_fields(form_id: int, fields: Iterable[BaseField]) -> list[FieldDefinition]:
    """Atomically replace every field of a form.

    Fields are stored in ``order`` sequence with their client ids kept, so
    conditions still resolve after a reload.

    Raises:
        StoreError: the rows could not be written (duplicate field ids, a
            locked or failing database)
    """
    fields = sorted(fields, key=lambda f: f.order)
    _warn_key_collisions(form_id, fields)

    try:
        with database.atomic():
            FormField.delete().where(FormField.form == form_id).execute()
            if fields:
                FormField.insert_many([_record_values(form_id, f) for f in fields]).execute()
            Form.update(updated_at=get_now(UTC)).where(Form.id == form_id).execute()
    except PeeweeException as e:
        raise StoreError(f"Could not store fields for form {form_id}: {e}") from e

    logger.info(f"Stored {len(fields)} fields for form {form_id}")
    return get_fields(form_id)


def get_fields(form_id: int) -> list[FieldDefinition]:
    query = FormField.select().where(FormField.form == form_id).order_by(FormField.field_order, FormField.id)
    return [field_from_record(record) for record in query]


def count_fields(form_id: int) -> int:
    return FormField.select().where(FormField.form == form_id).count()


# ==================== Submissions ====================


def create_submission(form_id: int, data: dict[str, Any]) -> Submission:
    with database.atomic():
        record = SubmissionRecord.create(form=form_id, data=data)
    logger.info(f"Submission saved: {record.id} for form {form_id}")
    return submission_from_record(record)


def list_submissions(form_id: int, page: int = 1, page_size: int = PAGE_SIZE) -> list[Submission]:
    query = (
        SubmissionRecord.select()
        .where(SubmissionRecord.form == form_id)
        .order_by(SubmissionRecord.submitted_at.desc(), SubmissionRecord.id.desc())
    )
    return [submission_from_record(record) for record in query.paginate(max(page, 1), page_size)]


def count_submissions(form_id: int) -> int:
    return SubmissionRecord.select().where(SubmissionRecord.form == form_id).count()
