"""Peewee ORM model definitions"""

from datetime import datetime
from zoneinfo import ZoneInfo

from peewee import (
    BooleanField,
    CharField,
    DatabaseProxy,
    DateTimeField,
    ForeignKeyField,
    IntegerField,
    Model,
    TextField,
)
from playhouse.shortcuts import ThreadSafeDatabaseMetadata
from playhouse.sqlite_ext import JSONField

from .enums import FormStatus

UTC = ZoneInfo("UTC")

# Use DatabaseProxy for deferred database binding
database_proxy = DatabaseProxy()


class BaseModel(Model):
    """Base model class - supports thread-safe metadata"""

    class Meta:
        database = database_proxy
        model_metadata_class = ThreadSafeDatabaseMetadata


class Form(BaseModel):
    """Form model"""

    owner = CharField(index=True)
    title = CharField()
    slug = CharField(unique=True)
    description = TextField(null=True)
    status = CharField(default=FormStatus.DRAFT.value)
    settings = JSONField(default=dict)
    created_at = DateTimeField(default=lambda: datetime.now(UTC))
    updated_at = DateTimeField(default=lambda: datetime.now(UTC))

    class Meta:
        table_name = "forms"

    def save(self, *args, **kwargs):
        """Override save method to auto-update updated_at"""
        if self._pk is not None:
            self.updated_at = datetime.now(UTC)
        return super().save(*args, **kwargs)

    @property
    def is_published(self) -> bool:
        return self.status == FormStatus.PUBLISHED.value


class FormField(BaseModel):
    """One field of a form; ``client_id`` is the id conditions refer to."""

    form = ForeignKeyField(Form, backref="fields", on_delete="CASCADE")
    client_id = CharField()
    field_type = CharField()
    label = CharField(default="")
    placeholder = CharField(null=True)
    is_required = BooleanField(default=False)
    field_order = IntegerField()
    config = JSONField(default=dict)
    created_at = DateTimeField(default=lambda: datetime.now(UTC))

    class Meta:
        table_name = "form_fields"
        indexes = ((("form", "client_id"), True),)


class Submission(BaseModel):
    """Submission model"""

    form = ForeignKeyField(Form, backref="submissions", on_delete="CASCADE")
    data = JSONField(default=dict)
    submitted_at = DateTimeField(default=lambda: datetime.now(UTC))

    class Meta:
        table_name = "submissions"
