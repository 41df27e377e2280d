# Overview: Shared JSON error responses for API routes.

from flask import jsonify

from ..validation import ValidationError


def validation_error_response(exc: ValidationError):
    """422 with the field-keyed messages the form shows next to each input."""
    return jsonify({"error": exc.message, "errors": exc.errors}), 422


def not_found_response(message: str = "Not found"):
    return jsonify({"error": message}), 404
