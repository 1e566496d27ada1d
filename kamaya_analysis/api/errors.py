"""Global HTTP error handling and JSON response helpers."""
from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify
from pydantic import ValidationError

from kamaya_analysis.services.report import InvalidReportError

logger = logging.getLogger(__name__)


def fail(message: str, status: int = 400):
    return jsonify({"success": False, "error": message}), status


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ValidationError)
    def invalid_body(err: ValidationError):  # type: ignore[override]
        return fail(str(err), 400)

    @app.errorhandler(InvalidReportError)
    def invalid_report(err: InvalidReportError):  # type: ignore[override]
        return fail(str(err), 400)

    @app.errorhandler(400)
    def bad_request(err: Exception):  # type: ignore[override]
        return fail(str(err), 400)

    @app.errorhandler(404)
    def not_found(err: Exception):  # type: ignore[override]
        return fail(str(err), 404)

    @app.errorhandler(500)
    def internal(err: Exception):  # type: ignore[override]
        logger.error("Unhandled error: %s", err)
        return fail("unexpected error", 500)


def ok(data: Any, status: int = 200):
    return jsonify({"success": True, **data}), status
