"""
Protected demo routes.

Every path here sits behind RequestGuardMiddleware, so by the time a handler
runs the CSP header is scheduled, the CSRF token has been validated for
state-changing methods and escaped input copies are on request.state.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse
from markupsafe import Markup
from pydantic import ValidationError

from app.schemas.forms import ChangePasswordForm, TransferForm, format_errors
from app.utils.ip_utils import get_client_ip
from app.utils.request_utils import read_payload
from app.utils.security_utils import escape_html
from app.utils.template_helpers import render_template

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/protected")


def _validation_failed(request: Request, event: str, exc: ValidationError):
    errors = format_errors(exc)
    logger.warning(
        "%s ip=%s ua=%s path=%s errors=%s",
        event,
        get_client_ip(request),
        request.headers.get("user-agent", ""),
        request.url.path,
        errors,
    )
    return JSONResponse({"errors": errors}, status_code=400)


@router.get("", response_class=HTMLResponse)
async def protected_page(request: Request):
    escaped_query = getattr(request.state, "escaped_query", None) or {}
    # Already escaped once by the guard; Markup keeps Jinja from escaping again.
    user_input = Markup(escaped_query.get("userInputEscaped", ""))
    return render_template(request, "pages/protected.html", {"user_input": user_input})


@router.post("/transfer", response_class=HTMLResponse)
async def protected_transfer(request: Request):
    payload = await read_payload(request)
    try:
        form = TransferForm.model_validate(payload)
    except ValidationError as e:
        return _validation_failed(request, "VALIDATION_FAIL_TRANSFER", e)

    return HTMLResponse(
        f'<div class="alert alert-success">Transferred ${escape_html(f"{form.amount:g}")} '
        "(Protected - requires valid token!)</div>"
    )


@router.post("/change-password", response_class=HTMLResponse)
async def protected_change_password(request: Request):
    payload = await read_payload(request)
    try:
        ChangePasswordForm.model_validate(payload)
    except ValidationError as e:
        return _validation_failed(request, "VALIDATION_FAIL_PASSWORD", e)

    return HTMLResponse(
        '<div class="alert alert-success">Password changed successfully '
        "(Protected - requires valid token!)</div>"
    )


@router.post("/exempt", response_class=HTMLResponse)
async def protected_exempt():
    # Listed in EXEMPT_PATHS, so the guard skips CSRF validation here.
    return HTMLResponse(
        '<div class="alert alert-info">Exempted route - no CSRF check</div>'
    )
