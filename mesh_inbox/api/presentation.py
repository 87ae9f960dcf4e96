"""
Response Presentation
======================

Some callers can only consume HTML5, never bare JSON. Any result can
therefore be returned as an HTML document that embeds the same JSON,
escaped, inside ``<pre id="newton-packet-out">``.

Negotiation: ``?format=html`` or an ``Accept`` header mentioning
``text/html`` selects HTML; everything else gets JSON.
"""

from __future__ import annotations

import html
import json
import re
from typing import Any

from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse, Response

PACKET_ELEMENT_ID = "newton-packet-out"

_PACKET_RE = re.compile(
    rf'<pre id="{PACKET_ELEMENT_ID}"[^>]*>(.*?)</pre>', re.DOTALL
)

def escape_html(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )

def html_wrap(title: str, data: Any) -> str:
    body = json.dumps(data, indent=2, ensure_ascii=False)
    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n'
        f'<head><meta charset="utf-8"><title>{escape_html(title)}</title></head>\n'
        "<body>\n"
        f"<h1>Mesh Inbox – {escape_html(title)}</h1>\n"
        f'<pre id="{PACKET_ELEMENT_ID}">{escape_html(body)}</pre>\n'
        "</body>\n"
        "</html>"
    )

def extract_embedded(document: str) -> Any:
    """Recover the JSON value embedded by :func:`html_wrap`.

    Raises:
        ValueError: the document has no packet element or it is not JSON.
    """
    m = _PACKET_RE.search(document)
    if m is None:
        raise ValueError(f"no <pre id={PACKET_ELEMENT_ID!r}> element found")
    return json.loads(html.unescape(m.group(1)))

def wants_html(request: Request) -> bool:
    if request.query_params.get("format") == "html":
        return True
    return "text/html" in request.headers.get("accept", "").lower()

def render(
    request: Request,
    title: str,
    data: Any,
    *,
    status_code: int = 200,
    html_default: bool = False,
) -> Response:
    """JSON or HTML, per request negotiation.

    ``html_default`` flips the default for routes (like ``/search``) whose
    callers are usually browsers or search tools; ``?format=json`` still
    forces JSON there.
    """
    fmt = request.query_params.get("format")
    if html_default:
        use_html = fmt != "json"
    else:
        use_html = wants_html(request)
    if use_html:
        return HTMLResponse(html_wrap(title, data), status_code=status_code)
    return JSONResponse(data, status_code=status_code)
