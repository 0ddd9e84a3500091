from typing import Any

from fastapi import APIRouter, Body, Depends, Request

from ...fields import dump_fields
from ...services import FormService
from ..deps import client_key, get_service

router = APIRouter(tags=["public"])


@router.get("/public/{slug}")
def get_public_form(slug: str, service: FormService = Depends(get_service)):
    form = service.get_public_form(slug)
    return {
        "slug": form.slug,
        "title": form.title,
        "description": form.description,
        "settings": form.settings.to_wire(),
        "fields": dump_fields(form.fields),
    }


@router.post("/submit/{slug}")
def submit_form(
    slug: str,
    request: Request,
    payload: Any = Body(default=None),
    service: FormService = Depends(get_service),
):
    submission = service.submit(slug, payload, client_key=client_key(request))
    return {
        "success": True,
        "message": "Submission received",
        "submission_id": submission.id,
    }
