# core/http.py
"""JSON helpers shared by the app APIs."""

from __future__ import annotations

from functools import wraps

from django.http import JsonResponse

from core.exceptions import InvalidInput, OperationError

STATUS_BY_CODE = {
    "not_found": 404,
    "invalid_input": 400,
    "validation_error": 400,
    "invalid_operation": 409,
    "insufficient_inventory": 409,
    "invalid_status": 422,
}


def error_response(exc: OperationError) -> JsonResponse:
    return JsonResponse(
        {"error": {"code": exc.code, "message": str(exc)}},
        status=STATUS_BY_CODE.get(exc.code, 400),
    )


def api_view(view):
    """Turn domain errors raised by a view into JSON error payloads."""

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except OperationError as exc:
            return error_response(exc)

    return wrapper


def int_param(request, name: str, default=None):
    raw = request.GET.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidInput(f"Query parameter '{name}' must be an integer.")


def bool_param(request, name: str):
    raw = request.GET.get(name)
    if raw in (None, ""):
        return None
    return raw.lower() in ("1", "true", "yes")
