"""Error types raised by the comparison flows.

Every error carries the HTTP status it maps to and an optional JSON payload,
so route handlers can let them propagate to the handler registered in
``create_app``.
"""
import logging
from typing import Any, Dict, Iterable, Optional

from flask import jsonify

logger = logging.getLogger(__name__)


class CompareError(Exception):
    status_code = 400

    def __init__(self, message: str, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.payload = dict(payload or {})

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.message}
        body.update(self.payload)
        return body


class UnknownCategoryError(CompareError):
    status_code = 404

    def __init__(self, slug: str):
        super().__init__(f"Unknown category: {slug}", {"slug": slug})


class StepOutOfRangeError(CompareError):
    status_code = 404


class InvalidAnswerError(CompareError):
    status_code = 400


class MissingRequiredFieldsError(CompareError):
    status_code = 422

    def __init__(self, missing: Iterable[str], form_state: Optional[Dict[str, str]] = None):
        self.missing = list(missing)
        super().__init__(
            f"Missing required fields: {', '.join(self.missing)}",
            {"missing": self.missing, "form_state": dict(form_state or {})},
        )


class PersistenceError(CompareError):
    status_code = 502


class NotAuthorizedError(CompareError):
    status_code = 403


def handle_compare_error(error: CompareError):
    if error.status_code >= 500:
        logger.error("Request failed: %s", error.message)
    return jsonify(error.to_dict()), error.status_code


def register_error_handlers(app) -> None:
    app.register_error_handler(CompareError, handle_compare_error)
