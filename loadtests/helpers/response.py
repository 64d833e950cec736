"""Response error extraction for load test observability.

Turns payments API error responses into short human-readable messages.
Response shapes:

- HTTP errors (400/401/403/404/500): {"detail": "msg"}
- Request validation (422): {"detail": [{"loc": [...], "msg": "...", "type": "..."}]}
- Checkout failures (409/422/502): {"success": false, "error": "msg", "intent_id": "...", "status": "..."}
- Card charge failures: {"success": false, "error": "msg"}
- Domain validation errors: {"error": {"field": ["msg"]}}
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from requests import Response

_MAX_LENGTH = 300


def _validation_detail(errors: list) -> str:
    parts = []
    for err in errors:
        if not isinstance(err, dict):
            parts.append(str(err))
            continue
        loc = ".".join(str(p) for p in err.get("loc", []) if p != "body")
        msg = err.get("msg", str(err))
        parts.append(f"{loc}: {msg}" if loc else msg)
    return " | ".join(parts)


def _field_errors(errors: dict) -> str:
    parts = []
    for field, messages in errors.items():
        if isinstance(messages, list):
            messages = "; ".join(str(m) for m in messages)
        parts.append(f"{field}: {messages}")
    return " | ".join(parts)


def extract_error_detail(response: Response) -> str:
    """Extract a compact error message for Locust failures and log lines."""
    try:
        body = response.json()
    except ValueError:
        text = getattr(response, "text", "") or ""
        return text[:_MAX_LENGTH] or "(empty response body)"

    if not isinstance(body, dict):
        return str(body)[:_MAX_LENGTH]

    detail = body.get("detail")
    if isinstance(detail, str):
        return detail
    if isinstance(detail, list):
        return _validation_detail(detail)

    error = body.get("error")
    if isinstance(error, dict):
        return _field_errors(error)
    if body.get("success") is False:
        message = str(error) if error else "request failed"
        context = [f"{key}={body[key]}" for key in ("status", "intent_id") if body.get(key)]
        return f"{message} ({', '.join(context)})" if context else message
    if error:
        return str(error)

    return str(body)[:_MAX_LENGTH]
