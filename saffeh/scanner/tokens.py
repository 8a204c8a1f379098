# saffeh/scanner/tokens.py
"""
Helpers for raw QR scan payloads on the gate scanner.
A printed code may carry the bare token, a URL with ?token= / ?qr=, or JSON.
"""

import json
import re
import time
from typing import Callable, Optional
from urllib.parse import parse_qs, urlparse

from saffeh.config import settings

_HEX_RE = re.compile(r"^[a-f0-9]+$", re.IGNORECASE)
MIN_TOKEN_LENGTH = 32


def extract_qr_token(data: str) -> str:
    """Return the token carried by a scan, whatever its wrapping."""
    raw = (data or "").strip()

    parsed = urlparse(raw)
    if parsed.scheme and parsed.netloc:
        query = parse_qs(parsed.query)
        for key in ("token", "qr"):
            if query.get(key):
                return query[key][0]

    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        payload = None
    if isinstance(payload, dict):
        token = payload.get("token") or payload.get("qrToken")
        if token:
            return str(token)

    return raw


def is_valid_qr_token(token: str) -> bool:
    """Tokens are hex strings of at least 32 characters."""
    return bool(token) and len(token) >= MIN_TOKEN_LENGTH and bool(_HEX_RE.match(token))


class ScanThrottle:
    """Drops a repeat of the same token seen within `interval` seconds."""

    def __init__(self, interval: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.interval = settings.SCAN_INTERVAL_SECONDS if interval is None else interval
        self._clock = clock
        self._last_token: Optional[str] = None
        self._last_at: float = 0.0

    def accept(self, token: str) -> bool:
        now = self._clock()
        if token == self._last_token and now - self._last_at < self.interval:
            return False
        self._last_token = token
        self._last_at = now
        return True
