"""
Content Security Policy Service
Generates per-request nonces and the strict CSP header built around them.
"""

import base64
import secrets

NONCE_BYTES = 16
CSP_HEADER_NAME = "Content-Security-Policy"
FORBIDDEN_SOURCES = ("'unsafe-inline'", "'unsafe-eval'")


def generate_nonce() -> str:
    """Generate a fresh base64 nonce for a single request."""
    return base64.b64encode(secrets.token_bytes(NONCE_BYTES)).decode("ascii")


def build_csp_header(nonce: str, trusted_cdn: str) -> str:
    """
    Build the Content-Security-Policy header value for a request.

    Only same-origin scripts, scripts carrying the request nonce and the
    trusted CDN may execute. Styles are limited to same-origin and the CDN,
    with no inline allowance. The CDN value is checked against
    FORBIDDEN_SOURCES once, when settings are loaded.

    Args:
        nonce: Nonce generated for this request
        trusted_cdn: Origin of the CDN serving scripts and stylesheets

    Returns:
        Header value, e.g. "default-src 'self'; script-src 'self' 'nonce-...' ..."
    """
    csp_policy = [
        "default-src 'self'",
        f"script-src 'self' 'nonce-{nonce}' {trusted_cdn}",
        f"style-src 'self' {trusted_cdn}",
        "object-src 'none'",
        "base-uri 'self'",
    ]
    return "; ".join(csp_policy) + ";"
