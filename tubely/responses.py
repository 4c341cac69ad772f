"""JSON response helpers and a no-cache WSGI middleware."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Optional

from werkzeug.wrappers import Response

logger = logging.getLogger(__name__)

_NO_CACHE_HEADERS = (
    ("Cache-Control", "no-store"),
    ("Pragma", "no-cache"),
    ("Expires", "0"),
)


def _encode(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(obj, uuid.UUID):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def respond_with_json(code: int, payload: Any) -> Response:
    """Build a JSON response; a payload that cannot be encoded gives an empty 500."""
    headers = {"Content-Type": "application/json"}
    try:
        body = json.dumps(payload, default=_encode, separators=(",", ":"))
    except (TypeError, ValueError) as err:
        logger.error("Error marshalling JSON: %s", err)
        return Response(b"", status=500, headers=headers)
    return Response(body, status=code, headers=headers)


def respond_with_error(code: int, message: str, error: Optional[BaseException]) -> Response:
    """Log the error and build a JSON body of the form {"error": message}."""
    if error is not None:
        logger.error("%s", error)
    if code > 499:
        logger.error("Responding with 5XX error: %s", message)
    return respond_with_json(code, {"error": message})


def no_cache(app: Callable) -> Callable:
    """Wrap a WSGI application so its responses are not cached by clients."""

    def middleware(environ, start_response):
        def no_cache_start_response(status, headers, exc_info=None):
            own = {name.lower() for name, _ in headers}
            defaults = [(k, v) for k, v in _NO_CACHE_HEADERS if k.lower() not in own]
            return start_response(status, defaults + list(headers), exc_info)

        return app(environ, no_cache_start_response)

    return middleware