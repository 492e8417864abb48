"""RFC 7807 rendering of DomainError."""
from __future__ import annotations

from http import HTTPStatus

from fastapi import Request
from fastapi.responses import JSONResponse

from .domain_errors import DomainError

PROBLEM_TYPE_BASE = "https://api.logistics-trouble.local/problems"
PROBLEM_MEDIA_TYPE = "application/problem+json"


def build_problem_details_response(exc: DomainError, *, instance: str | None = None) -> JSONResponse:
    try:
        title = HTTPStatus(exc.http_status).phrase
    except ValueError:
        title = "Domain Error"

    payload: dict[str, object] = {
        "type": f"{PROBLEM_TYPE_BASE}/{exc.problem_slug}",
        "title": title,
        "status": exc.http_status,
        "detail": exc.message,
        "code": exc.code,
    }
    if instance is not None:
        payload["instance"] = instance
    if exc.details is not None:
        payload["details"] = exc.details

    return JSONResponse(status_code=exc.http_status, content=payload, media_type=PROBLEM_MEDIA_TYPE)


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    return build_problem_details_response(exc, instance=request.url.path)
