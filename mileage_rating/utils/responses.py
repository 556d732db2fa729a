"""Build the ``{success, message, data}`` envelope returned to API clients."""

import logging

from ..exceptions import RatingError

logger = logging.getLogger(__name__)


def send_success(message: str, data=None, status_code: int = 200):
    return {"success": True, "message": message, "data": data}, status_code


def send_error(error: Exception, message: str | None = None):
    """
    Translate an exception into an error envelope and status code.
    Unknown exceptions become 500 with the original text in ``details``.
    """
    if isinstance(error, RatingError):
        return {"success": False, "message": message or error.message, "data": None}, error.status_code

    logger.error("Unhandled error: %s", error, exc_info=error)
    body = {
        "success": False,
        "message": message or "Internal server error",
        "data": None,
        "details": str(error),
    }
    return body, 500
