# Overview: Query-string and request-body parsing shared by the API routes.

from flask import request

from ..services.errors import ValidationError
from ..time_utils import end_of_day as _end_of_day, parse_iso_datetime
from ..validation import require_object


def int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", f"Received: {raw!r}")


def bool_arg(name: str) -> bool:
    return (request.args.get(name) or "").strip().lower() in ("true", "1", "yes")


def date_arg(name: str, *, end_of_day: bool = False):
    """
    ISO-8601 date or datetime from the query string.

    A bare date used as an upper bound covers that whole day.
    """
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return None
    try:
        value = parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date", f"Received: {raw!r}")
    if end_of_day and len(raw) == 10:
        value = _end_of_day(value)
    return value


def json_body() -> dict:
    """JSON request body as a dict. A missing body is empty; a non-object body is a 400."""
    return require_object(request.get_json(silent=True))
