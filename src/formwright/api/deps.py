from typing import Optional

from fastapi import Header, Request

from ..auth import Principal, require_user
from ..consts import API_KEY_HEADER
from ..services import FormService


def get_service(request: Request) -> FormService:
    return request.app.state.form_service


def get_principal(
    request: Request,
    api_key: Optional[str] = Header(default=None, alias=API_KEY_HEADER),
) -> Principal:
    return require_user(api_key, request.app.state.config)


def client_key(request: Request) -> str:
    """Identify a submitter for rate limiting: first forwarded address, else the peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client is not None:
        return request.client.host
    return "unknown"
