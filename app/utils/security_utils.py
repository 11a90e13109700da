"""
Security Utilities - output escaping and path matching for the request guard.

Functions:
- escape_html: Escape the five HTML-significant characters in a string
- escape_fields: Publish escaped copies of selected input fields
- is_exempt_path: Check a request path against the CSRF exemption list
"""

from typing import Any, Dict, Iterable, Mapping, Tuple

# Order matters: "&" must be replaced first so the entities produced by the
# later substitutions are not encoded a second time.
HTML_ESCAPE_TABLE: Tuple[Tuple[str, str], ...] = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#39;"),
)

ESCAPED_SUFFIX = "Escaped"


def escape_html(value: Any) -> Any:
    """
    Escape a value for safe inclusion in HTML text or attribute content.

    Non-string values are returned unchanged. Escaping is not idempotent:
    running it twice double-encodes "&", so apply it exactly once per render.

    Examples:
        >>> escape_html("<script>alert(1)</script>")
        '&lt;script&gt;alert(1)&lt;/script&gt;'
        >>> escape_html("Tom & \\"Jerry's\\"")
        'Tom &amp; &quot;Jerry&#39;s&quot;'
        >>> escape_html(42)
        42
    """
    if not isinstance(value, str):
        return value

    for char, entity in HTML_ESCAPE_TABLE:
        value = value.replace(char, entity)
    return value


def escape_fields(
    params: Mapping[str, Any],
    fields: Iterable[str],
    suffix: str = ESCAPED_SUFFIX,
) -> Dict[str, Any]:
    """
    Build escaped copies of the configured fields present in params.

    The originals are left untouched; each escaped copy is published under
    the field name plus suffix (userInput -> userInputEscaped) so handlers can
    choose between the raw and the escaped value.

    Args:
        params: Incoming input (query parameters, form fields)
        fields: Names of the fields to intercept
        suffix: Suffix appended to the field name for the escaped copy

    Returns:
        Mapping of derived key to escaped value, only for fields present
    """
    escaped: Dict[str, Any] = {}
    for field in fields:
        if field in params:
            escaped[f"{field}{suffix}"] = escape_html(params[field])
    return escaped


def is_exempt_path(path: str, exempt_paths: Iterable[str]) -> bool:
    """
    Check if a request path is exempt from CSRF validation.

    Matching is by suffix or substring, not exact match, so a fragment like
    "/exempt" also covers "/protected/notexempt". Keep fragments specific.

    Examples:
        >>> is_exempt_path("/protected/exempt", ["/protected/exempt"])
        True
        >>> is_exempt_path("/protected/transfer", ["/protected/exempt"])
        False
    """
    return any(
        fragment and (path.endswith(fragment) or fragment in path)
        for fragment in exempt_paths
    )
