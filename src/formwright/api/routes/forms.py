from datetime import datetime
from typing import Any, Optional

import pytz
from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field

from ...auth import Principal
from ...consts import MAX_DESCRIPTION_LENGTH, MAX_TITLE_LENGTH, PAGE_SIZE
from ...enums import FormStatus
from ...errors import InvalidInputError
from ...fields import FormDefinition, dump_fields
from ...services import FormService
from ...text_dsl import parse_text
from ..deps import get_principal, get_service

router = APIRouter(prefix="/forms", tags=["forms"], dependencies=[Depends(get_principal)])


class CreateFormRequest(BaseModel):
    title: str = Field(min_length=1, max_length=MAX_TITLE_LENGTH)
    description: Optional[str] = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    settings: Optional[dict[str, Any]] = None
    fields: Optional[list[dict[str, Any]]] = None


class UpdateFormRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=MAX_TITLE_LENGTH)
    description: Optional[str] = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    status: Optional[FormStatus] = None
    settings: Optional[dict[str, Any]] = None
    fields: Optional[list[dict[str, Any]]] = None


class StatusRequest(BaseModel):
    status: str


class ParseTextRequest(BaseModel):
    text: str


class FormSummaryResponse(BaseModel):
    id: int
    title: str
    slug: str
    status: str
    field_count: int
    updated_at: str


class SubmissionResponse(BaseModel):
    id: int
    submitted_at: str
    data: dict[str, Any]


class PaginatedSubmissionsResponse(BaseModel):
    submissions: list[SubmissionResponse]
    page: int
    total_pages: int
    total: int
    has_prev: bool
    has_next: bool


def get_timezone(request: Request, timezone_str: Optional[str]):
    if not timezone_str:
        return request.app.state.config.get_timezone()
    try:
        return pytz.timezone(timezone_str)
    except pytz.UnknownTimeZoneError:
        raise InvalidInputError(f"Unknown timezone: {timezone_str}") from None


def format_datetime(dt, timezone) -> str:
    if dt is None:
        return ""
    if isinstance(dt, datetime):
        if dt.tzinfo is None:
            dt = pytz.utc.localize(dt)
        return dt.astimezone(timezone).strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(dt, str):
        try:
            parsed = datetime.fromisoformat(dt)
            return parsed.astimezone(timezone).strftime("%Y-%m-%d %H:%M:%S")
        except ValueError:
            return dt
    return str(dt)


def form_response(form: FormDefinition) -> dict[str, Any]:
    return form.to_wire()


@router.get("", response_model=list[FormSummaryResponse])
def list_forms(
    request: Request,
    timezone_str: Optional[str] = None,
    principal: Principal = Depends(get_principal),
    service: FormService = Depends(get_service),
):
    timezone = get_timezone(request, timezone_str)
    return [
        FormSummaryResponse(
            id=form.id,
            title=form.title,
            slug=form.slug,
            status=form.status.value,
            field_count=len(form.fields),
            updated_at=format_datetime(form.updated_at, timezone),
        )
        for form in service.list_forms(principal)
    ]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_form(
    body: CreateFormRequest,
    principal: Principal = Depends(get_principal),
    service: FormService = Depends(get_service),
):
    form = service.create_form(
        principal,
        body.title,
        description=body.description,
        settings=body.settings,
        fields=body.fields,
    )
    return form_response(form)


@router.post("/parse-text")
def parse_form_text(body: ParseTextRequest):
    return {"fields": dump_fields(parse_text(body.text))}


@router.get("/{form_id}")
def get_form(
    form_id: int,
    principal: Principal = Depends(get_principal),
    service: FormService = Depends(get_service),
):
    return form_response(service.get_form(principal, form_id))


@router.patch("/{form_id}")
def update_form(
    form_id: int,
    body: UpdateFormRequest,
    principal: Principal = Depends(get_principal),
    service: FormService = Depends(get_service),
):
    patch = body.model_dump(exclude_unset=True, exclude={"fields"})
    form = service.update_form(principal, form_id, patch, fields=body.fields)
    return form_response(form)


@router.delete("/{form_id}")
def delete_form(
    form_id: int,
    principal: Principal = Depends(get_principal),
    service: FormService = Depends(get_service),
):
    service.delete_form(principal, form_id)
    return {"success": True}


@router.patch("/{form_id}/publish")
def set_form_status(
    form_id: int,
    body: StatusRequest,
    principal: Principal = Depends(get_principal),
    service: FormService = Depends(get_service),
):
    return form_response(service.set_status(principal, form_id, body.status))


@router.post("/{form_id}/duplicate", status_code=status.HTTP_201_CREATED)
def duplicate_form(
    form_id: int,
    principal: Principal = Depends(get_principal),
    service: FormService = Depends(get_service),
):
    return form_response(service.duplicate_form(principal, form_id))


@router.get("/{form_id}/submissions", response_model=PaginatedSubmissionsResponse)
def list_submissions(
    form_id: int,
    request: Request,
    page: int = 1,
    timezone_str: Optional[str] = None,
    principal: Principal = Depends(get_principal),
    service: FormService = Depends(get_service),
):
    timezone = get_timezone(request, timezone_str)

    if page < 1:
        page = 1

    submissions, total = service.list_submissions(principal, form_id, page=page)
    total_pages = (total + PAGE_SIZE - 1) // PAGE_SIZE or 1

    return PaginatedSubmissionsResponse(
        submissions=[
            SubmissionResponse(
                id=submission.id,
                submitted_at=format_datetime(submission.submitted_at, timezone),
                data=submission.data,
            )
            for submission in submissions
        ],
        page=page,
        total_pages=total_pages,
        total=total,
        has_prev=page > 1,
        has_next=page < total_pages,
    )
