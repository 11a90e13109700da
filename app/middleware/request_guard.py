"""
Request Guard Middleware

ASGI adapter around RequestGuard. Applies XSS/CSRF protection to every path
under the guarded prefixes and leaves all other routes untouched.

For guarded requests it:
1. Runs the guard against the Starlette session (scope["session"])
2. Publishes request.state.csp_nonce, request.state.csrf_token and
   request.state.escaped_query for route handlers and templates
3. Rejects failed CSRF validation with a JSON 403
4. Adds the Content-Security-Policy header to every response, including
   rejections and 500s from unhandled handler errors

Requires SessionMiddleware to run before this middleware. Without it the
guard runs in degraded mode: no token is issued and every state-changing,
non-exempt request is rejected.
"""

import json
import logging
from typing import Any, Dict, Optional, Sequence

from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse

from app.services.csp_service import CSP_HEADER_NAME
from app.services.guard_service import GuardRequest, RequestGuard
from app.utils.ip_utils import get_client_ip

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def _replay_receive(body: bytes, receive=None):
    """Build a receive callable that yields an already-read body once."""
    body_sent = False

    async def replay():
        nonlocal body_sent
        if not body_sent:
            body_sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        if receive is None:
            return {"type": "http.disconnect"}
        return await receive()

    return replay


async def _read_body(receive) -> bytes:
    chunks = []
    while True:
        message = await receive()
        if message["type"] != "http.request":
            break
        chunks.append(message.get("body", b""))
        if not message.get("more_body", False):
            break
    return b"".join(chunks)


class RequestGuardMiddleware:
    """
    Middleware that runs the request guard on guarded path prefixes.

    Routes outside the prefixes (the vulnerable comparison routes, the
    index, health checks) never see the guard.
    """

    def __init__(
        self,
        app,
        guard: RequestGuard,
        guarded_prefixes: Sequence[str] = ("/protected",),
    ):
        self.app = app
        self.guard = guard
        self.guarded_prefixes = [p.rstrip("/") for p in guarded_prefixes]

    def _is_guarded(self, path: str) -> bool:
        return any(
            path == prefix or path.startswith(prefix + "/")
            for prefix in self.guarded_prefixes
        )

    async def _parse_body(self, scope, body: bytes) -> Optional[Dict[str, Any]]:
        """
        Parse a JSON or form body into a flat mapping.

        Returns None for other content types or unparseable bodies; the
        token is then looked up in the header and cookie only.
        """
        request = Request(scope, _replay_receive(body))
        content_type = request.headers.get("content-type", "")

        if "application/json" in content_type:
            try:
                data = json.loads(body or b"null")
            except ValueError as e:
                logger.warning(f"Failed to parse JSON body for CSRF token: {e}")
                return None
            return data if isinstance(data, dict) else None

        if any(form_type in content_type for form_type in FORM_CONTENT_TYPES):
            try:
                form = await request.form()
            except Exception as e:
                logger.warning(f"Failed to parse form for CSRF token: {e}")
                return None
            try:
                return {key: value for key, value in form.items()}
            finally:
                await form.close()

        return None

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        if not self._is_guarded(path):
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        body = None
        if self.guard.needs_validation(request.method, path):
            raw_body = await _read_body(receive)
            receive = _replay_receive(raw_body, receive)
            body = await self._parse_body(scope, raw_body)

        session = scope.get("session")
        result = self.guard.process(
            GuardRequest(
                method=request.method,
                path=path,
                query=request.query_params,
                headers=request.headers,
                cookies=request.cookies,
                body=body,
            ),
            session,
        )

        state = scope.setdefault("state", {})
        state["csp_nonce"] = result.nonce
        state["csrf_token"] = result.csrf_token
        state["escaped_query"] = result.escaped

        if not result.allowed:
            logger.warning(
                "CSRF rejection %s %s from %s: %s",
                request.method,
                path,
                get_client_ip(request),
                result.error.message,
            )
            response = JSONResponse(
                content=result.error.to_dict(),
                status_code=result.error.status_code,
                headers={CSP_HEADER_NAME: result.csp_header},
            )
            await response(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message):
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
                headers = MutableHeaders(scope=message)
                headers[CSP_HEADER_NAME] = result.csp_header
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            # The outer error handler would answer without the CSP header, so
            # send the 500 here and let the exception propagate for logging.
            if not response_started:
                response = PlainTextResponse(
                    "Internal Server Error.",
                    status_code=500,
                    headers={CSP_HEADER_NAME: result.csp_header},
                )
                await response(scope, receive, send)
            raise
