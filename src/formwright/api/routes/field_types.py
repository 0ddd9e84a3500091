from fastapi import APIRouter
from pydantic import BaseModel

from ...registry import list_field_types

router = APIRouter(prefix="/field-types", tags=["field-types"])


class FieldTypeResponse(BaseModel):
    type: str
    label: str
    icon: str
    category: str


@router.get("", response_model=list[FieldTypeResponse])
def get_field_types():
    return [FieldTypeResponse(**info.to_dict()) for info in list_field_types()]
