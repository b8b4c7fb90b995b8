# Overview: JSON error bodies shared by the API blueprints.

from flask import jsonify


def error_response(code: str, http_status: int, details: dict | None = None):
    body = {"error": code}
    if details:
        body["details"] = details
    return jsonify(body), http_status


def service_error_response(exc):
    """Translate a service exception carrying `code` and `http_status`."""
    details = dict(getattr(exc, "details", None) or {})
    message = str(exc)
    if message and message != exc.code:
        details.setdefault("message", message)
    return error_response(exc.code, exc.http_status, details)
