"""
Request Guard Service

Framework-independent core of the protection layer. A single pass per
request:

1. Generate a CSP nonce
2. Issue (or reuse) the session's CSRF token
3. Build the Content-Security-Policy header
4. Escape the configured reflected-input fields
5. Validate the CSRF token on state-changing requests

The session is handed in explicitly as a mutable mapping (or None when the
host has no session layer); the guard never looks it up on its own.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, MutableMapping, Optional, Sequence

from app.services.csp_service import build_csp_header, generate_nonce
from app.services.csrf_service import (
    CSRFValidationError,
    issue_csrf_token,
    requires_csrf_check,
    select_submitted_token,
    validate_csrf_token,
)
from app.utils.security_utils import ESCAPED_SUFFIX, escape_fields, is_exempt_path


@dataclass
class GuardRequest:
    """The parts of an inbound request the guard looks at."""

    method: str
    path: str
    query: Mapping[str, Any] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)
    body: Optional[Mapping[str, Any]] = None


@dataclass
class GuardResult:
    """Outcome of one guard pass."""

    nonce: str
    csp_header: str
    csrf_token: Optional[str] = None
    escaped: Dict[str, Any] = field(default_factory=dict)
    error: Optional[CSRFValidationError] = None

    @property
    def allowed(self) -> bool:
        return self.error is None


class RequestGuard:
    """
    Per-request XSS/CSRF guard.

    Args:
        trusted_cdn: Origin allowed for scripts and styles in the CSP
        exempt_paths: Path fragments skipped by CSRF validation
        escaped_fields: Input fields published in escaped form
        form_field: Body field carrying the submitted token
        header_name: Request header carrying the submitted token
        cookie_name: Cookie carrying the submitted token
    """

    def __init__(
        self,
        trusted_cdn: str,
        exempt_paths: Sequence[str] = ("/exempt",),
        escaped_fields: Sequence[str] = ("userInput",),
        form_field: str = "csrfToken",
        header_name: str = "x-csrf-token",
        cookie_name: str = "csrf-token",
        escaped_suffix: str = ESCAPED_SUFFIX,
    ):
        self.trusted_cdn = trusted_cdn
        self.exempt_paths = list(exempt_paths)
        self.escaped_fields = list(escaped_fields)
        self.form_field = form_field
        self.header_name = header_name.lower()
        self.cookie_name = cookie_name
        self.escaped_suffix = escaped_suffix

    def needs_validation(self, method: str, path: str) -> bool:
        """Whether a request must present a valid CSRF token."""
        return requires_csrf_check(method) and not is_exempt_path(
            path, self.exempt_paths
        )

    def submitted_token(self, request: GuardRequest) -> Optional[str]:
        """Token supplied by the client: body field, then header, then cookie."""
        body_token = request.body.get(self.form_field) if request.body else None
        return select_submitted_token(
            body_token,
            request.headers.get(self.header_name),
            request.cookies.get(self.cookie_name),
        )

    def process(
        self,
        request: GuardRequest,
        session: Optional[MutableMapping[str, Any]],
    ) -> GuardResult:
        nonce = generate_nonce()
        result = GuardResult(
            nonce=nonce,
            csp_header=build_csp_header(nonce, self.trusted_cdn),
            csrf_token=issue_csrf_token(session),
            escaped=escape_fields(
                request.query, self.escaped_fields, self.escaped_suffix
            ),
        )

        if self.needs_validation(request.method, request.path):
            try:
                validate_csrf_token(session, self.submitted_token(request))
            except CSRFValidationError as e:
                result.error = e

        return result
