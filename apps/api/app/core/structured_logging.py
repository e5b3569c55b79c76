"""Structured logging helpers (PII-safe)."""

from typing import Any

from fastapi import Request


def build_log_context(
    *,
    user_id: str | None = None,
    role: str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict. Emails and names never go in here."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = user_id
    if role:
        context["role"] = role
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context


def request_log_context(request: Request) -> dict[str, Any]:
    """Context for a request, picking up the session once authentication ran."""
    session = getattr(request.state, "user_session", None)
    return build_log_context(
        user_id=str(session.user_id) if session else None,
        role=session.role.value if session else None,
        request_id=getattr(request.state, "request_id", None),
        route=request.url.path,
        method=request.method,
    )
