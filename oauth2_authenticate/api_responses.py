"""
JSON bodies returned by the login route, the provider listing and the
application error handlers.

Every body shares one envelope: ``success``, ``version`` and ``timestamp``,
plus either ``data`` or ``error``.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging
import time

from flask import jsonify, request


API_VERSION = "1.0"

logger = logging.getLogger(__name__)


class ErrorCodes:
    """Error codes used by the authentication routes."""

    OAUTH_ERROR = "OAUTH_ERROR"
    OAUTH_STATE_MISMATCH = "OAUTH_STATE_MISMATCH"
    OAUTH_INVALID_GRANT = "OAUTH_INVALID_GRANT"
    PROVIDER_NOT_FOUND = "PROVIDER_NOT_FOUND"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    NOT_FOUND = "NOT_FOUND"


def _envelope(success: bool) -> Dict[str, Any]:
    return {
        'success': success,
        'version': API_VERSION,
        'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
    }


class APIResponse:
    """Builders for success and error bodies."""

    @staticmethod
    def success(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
        body = _envelope(True)
        body['data'] = data
        if message:
            body['message'] = message
        return body

    @staticmethod
    def error(code: str, message: str, status_code: int = 400) -> Dict[str, Any]:
        """
        Build an error body.

        Args:
            code: One of ErrorCodes
            message: Human-readable explanation, safe to show to the user
            status_code: HTTP status the body is sent with
        """
        body = _envelope(False)
        body['error'] = {'code': code, 'message': message, 'status_code': status_code}
        return body


def create_flask_response(body: Dict[str, Any], status_code: int = 200):
    """Serialize ``body`` as a JSON response tagged with the API version."""
    response = jsonify(body)
    response.status_code = status_code
    response.headers['X-API-Version'] = API_VERSION
    return response


def log_api_request(status_code: int, started_at: float) -> None:
    """Log the outcome of the current request; ``started_at`` is a ``time.time()`` value."""
    elapsed_ms = round((time.time() - started_at) * 1000, 2)
    logger.info(f"{request.method} {request.path} -> {status_code} in {elapsed_ms} ms ({request.remote_addr})")
