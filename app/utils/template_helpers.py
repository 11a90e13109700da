"""
Template Helper Functions

Builds the per-request template context from the values the request guard
publishes on request.state.
"""

from fastapi import Request
from app.config import settings
from app.utils.template_config import templates


def render_template(request: Request, template_name: str, context: dict, **kwargs):
    common_context = get_common_context(request)
    common_context.update(context)
    return templates.TemplateResponse(request, template_name, common_context, **kwargs)


def get_common_context(request: Request) -> dict:
    """
    Build common template variables for all routes.

    Unguarded routes get empty strings for the nonce and the CSRF token.

    Returns:
        Dictionary with app name, csp_nonce, csrf_token and csrf_field
    """
    return {
        "app_name": settings.APP_NAME,
        "trusted_cdn": settings.TRUSTED_CDN,
        "csp_nonce": getattr(request.state, "csp_nonce", None) or "",
        "csrf_token": getattr(request.state, "csrf_token", None) or "",
        "csrf_field": settings.CSRF_FORM_FIELD,
    }
