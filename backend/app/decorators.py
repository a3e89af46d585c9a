# Overview: Request decorators for API routes (JSON body parsing, failure logging).

from functools import wraps
from flask import request, jsonify, current_app
from werkzeug.exceptions import HTTPException

from .errors import InventoryError
from .validation import ValidationError


def json_body(f):
    """
    Parse the request body as a JSON object and pass it as `payload`.

    Returns 400 when the body is missing or is not an object, so routes never
    see anything but a dict.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        payload = request.get_json(silent=True)
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            return jsonify({"error": "Request body must be a JSON object"}), 400
        return f(*args, payload=payload, **kwargs)

    return decorated_function


def log_failures(action: str):
    """
    Log unexpected route failures and answer with a generic 500.

    Domain errors (InventoryError, ValidationError) and HTTP errors pass
    through untouched to the app-level error handlers.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except (InventoryError, ValidationError, HTTPException):
                raise
            except Exception:
                current_app.logger.exception("Failed to %s", action)
                return jsonify({"error": "Internal server error"}), 500

        return decorated_function
    return decorator
