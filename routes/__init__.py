"""Shared helpers for route blueprints."""

from __future__ import annotations

from flask import jsonify

__all__ = ["CORS_HEADERS", "apply_cors_headers", "json_error"]

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
}


def apply_cors_headers(response):
    """Attach the permissive CORS headers browsers expect from the sync API."""
    for header, value in CORS_HEADERS.items():
        response.headers[header] = value
    return response


def json_error(message: str, *, status: int = 400):
    """Return the generic JSON failure payload."""
    return jsonify({"success": False, "error": message}), status
