# saffeh/utils/json_parser.py
"""
Helpers for reading backend response bodies.
The backend answers JSON, but proxies and tunnels in front of it
sometimes answer with an HTML error page instead.
"""

import json
from typing import Any, Optional

_HTML_PREFIXES = ("<!doctype", "<html")


def safe_parse_json(text: str) -> Optional[Any]:
    """Parse a JSON string safely. Returns None on error or empty input."""
    if not text or not text.strip():
        return None
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None


def is_json_content(content_type: Optional[str]) -> bool:
    return bool(content_type) and "json" in content_type.lower()


def looks_like_html(text: str, content_type: Optional[str] = "") -> bool:
    """Detect an HTML page by content-type or by sniffing the first characters."""
    if content_type and "text/html" in content_type.lower():
        return True
    return text.lstrip()[:15].lower().startswith(_HTML_PREFIXES)
