"""
Intentionally insecure demo routes.

These routes are never guarded: input is reflected without escaping, no CSP
header is sent and state-changing requests need no CSRF token. They exist
only as the "what not to do" side of the comparison.
"""

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from app.utils.request_utils import read_payload
from app.utils.template_helpers import render_template

router = APIRouter(prefix="/vulnerable")


@router.get("", response_class=HTMLResponse)
async def vulnerable_page(request: Request, userInput: str = ""):
    # Rendered with |safe on purpose: the raw input reaches the document.
    return render_template(request, "pages/vulnerable.html", {"user_input": userInput})


@router.post("/transfer", response_class=HTMLResponse)
async def vulnerable_transfer(request: Request):
    payload = await read_payload(request)
    amount = payload.get("amount") or 0
    return HTMLResponse(
        f'<div class="alert alert-danger">Transferred ${amount} '
        "(Vulnerable - forged requests work!)</div>"
    )


@router.post("/change-password", response_class=HTMLResponse)
async def vulnerable_change_password(request: Request):
    payload = await read_payload(request)
    return HTMLResponse(
        f'<div class="alert alert-danger">Password changed to {payload.get("newPassword")} '
        "(Vulnerable - forged requests work!)</div>"
    )
