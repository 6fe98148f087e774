import logging

from flask import current_app, jsonify

from tolkbook.errors import NotFound, NotPermitted, ValidationFailed

logger = logging.getLogger(__name__)

# Error kind -> HTTP status. Anything not listed is an internal error (500).
ERROR_STATUS = {
    NotFound: 404,
    NotPermitted: 403,
    ValidationFailed: 422,
}


def error_response(exc: Exception):
    """
    Render an exception raised by a repository call as a JSON response.

    Known kinds map through ERROR_STATUS and carry their machine-readable
    code; validation failures also list the per-field errors. With
    LEGACY_ERROR_RESPONSES enabled every error becomes {"error": message}
    with status 500.
    """
    if current_app.config.get("LEGACY_ERROR_RESPONSES"):
        if not isinstance(exc, tuple(ERROR_STATUS)):
            logger.error("Request failed: %s", exc, exc_info=exc)
        return jsonify({"error": str(exc)}), 500

    for kind, status in ERROR_STATUS.items():
        if isinstance(exc, kind):
            body = {"error": str(exc), "code": exc.code}
            if isinstance(exc, ValidationFailed):
                body["fields"] = exc.errors
            return jsonify(body), status

    logger.error("Request failed: %s", exc, exc_info=exc)
    return jsonify({"error": str(exc), "code": "internal"}), 500
