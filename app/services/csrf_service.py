"""
CSRF Protection Service
Implements the synchronizer token pattern: one token per session, stored on
the session and required on every state-changing request.

The token is issued on the first guarded request of a session and reused for
the lifetime of that session. It is never rotated, neither on successful
validation nor on failure.
"""

import secrets
import threading
from typing import Any, Mapping, MutableMapping, Optional

CSRF_SESSION_KEY = "csrfToken"
CSRF_TOKEN_BYTES = 32  # 64 hex characters
STATE_CHANGING_METHODS = frozenset({"POST", "PUT", "DELETE", "PATCH"})

CSRF_ERROR = "CSRF token validation failed"
MSG_NO_SESSION = "No session or CSRF token found"
MSG_MISSING_TOKEN = "CSRF token missing from request"
MSG_INVALID_TOKEN = "CSRF token does not match session"

# Serializes first issuance so that, for a session object shared between
# concurrent requests, the first writer wins and later readers see its token.
_issue_lock = threading.Lock()


class CSRFValidationError(Exception):
    """Raised when a state-changing request fails CSRF validation."""

    status_code = 403

    def __init__(self, message: str):
        super().__init__(message)
        self.error = CSRF_ERROR
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.error, "message": self.message}


def generate_csrf_token() -> str:
    """Generate a secure CSRF token."""
    return secrets.token_hex(CSRF_TOKEN_BYTES)


def issue_csrf_token(session: Optional[MutableMapping[str, Any]]) -> Optional[str]:
    """
    Return the session's CSRF token, creating it on first use.

    Without a session there is nowhere to keep the token, so issuance is
    skipped and None is returned.
    """
    if session is None:
        return None

    token = session.get(CSRF_SESSION_KEY)
    if token:
        return token

    with _issue_lock:
        token = session.get(CSRF_SESSION_KEY)
        if not token:
            token = generate_csrf_token()
            session[CSRF_SESSION_KEY] = token
    return token


def requires_csrf_check(method: str) -> bool:
    """Check whether a request method changes state and needs a token."""
    return method.upper() in STATE_CHANGING_METHODS


def select_submitted_token(*candidates: Any) -> Optional[str]:
    """
    Pick the token the client submitted.

    Candidates are given in priority order (body field, header, cookie); the
    first non-empty string wins. Non-string values never count as a token.
    """
    for candidate in candidates:
        if isinstance(candidate, str) and candidate:
            return candidate
    return None


def validate_csrf_token(
    session: Optional[Mapping[str, Any]], submitted: Optional[str]
) -> None:
    """
    Validate a submitted token against the one stored on the session.

    Args:
        session: Session handle of the current request, or None
        submitted: Token supplied by the client, or None

    Raises:
        CSRFValidationError: if there is no session, no stored token, no
            submitted token, or the two tokens differ
    """
    expected = session.get(CSRF_SESSION_KEY) if session is not None else None
    if not expected:
        raise CSRFValidationError(MSG_NO_SESSION)

    if not submitted:
        raise CSRFValidationError(MSG_MISSING_TOKEN)

    if not secrets.compare_digest(submitted.encode(), str(expected).encode()):
        raise CSRFValidationError(MSG_INVALID_TOKEN)
