# saffeh/scanner/client.py
"""
Gate scanner client — validates scanned QR codes against the backend.

Authenticated with a static API key (x-api-key), not a user bearer token.
Failures never raise: the guard's screen gets a result with success=False
and an error code (UNAUTHORIZED, FORBIDDEN, NETWORK_ERROR, ...).

Endpoint: POST {SCANNER_API_BASE_URL}/api/qr/validate
"""

from datetime import datetime, timezone
from typing import Optional

import requests
from pydantic import ValidationError as SchemaError

from saffeh.config import settings
from saffeh.schemas.qr import QRValidationData, QRValidationRequest, QRValidationResult
from saffeh.scanner.tokens import extract_qr_token
from saffeh.utils.logger import get_logger

logger = get_logger(__name__)

QR_VALIDATE_PATH = "/api/qr/validate"
HEALTH_PATH = "/health"


class ScannerClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        gate_id: Optional[str] = None,
        guard_id: Optional[str] = None,
        timeout: float = 10,
    ):
        self.base_url = (base_url or settings.SCANNER_API_BASE_URL).rstrip("/")
        self.api_key = api_key or settings.SCANNER_API_KEY
        self.gate_id = gate_id or settings.SCANNER_GATE_ID
        self.guard_id = guard_id or settings.SCANNER_GUARD_ID
        self.timeout = timeout

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "x-api-key": self.api_key,
        }

    def validate_qr(self, scanned: str) -> QRValidationResult:
        token = extract_qr_token(scanned)
        if not token:
            return QRValidationResult(success=False, message="Empty QR code", error="EMPTY_TOKEN")

        body = QRValidationRequest(
            qr_token=token,
            gate_id=self.gate_id,
            guard_id=self.guard_id,
            timestamp=datetime.now(timezone.utc).isoformat(),
        ).model_dump(by_alias=True)
        logger.info(f"[SCAN] validating token {token[:10]}... at gate {self.gate_id}")

        try:
            resp = requests.post(
                f"{self.base_url}{QR_VALIDATE_PATH}",
                json=body,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"[SCAN] network error: {e}")
            return QRValidationResult(
                success=False,
                message="Network error - Please check your connection",
                error="NETWORK_ERROR",
            )

        if resp.status_code == 401:
            return QRValidationResult(
                success=False, message="Authentication failed. Invalid API key.", error="UNAUTHORIZED"
            )
        if resp.status_code == 403:
            return QRValidationResult(
                success=False, message="Access denied. API key does not have permission.", error="FORBIDDEN"
            )

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if not resp.ok:
            logger.warning(f"[SCAN] rejected ({resp.status_code}): {data.get('message')}")
            return QRValidationResult(
                success=False,
                message=data.get("message") or "Validation failed",
                error=data.get("error") or f"HTTP Error: {resp.status_code}",
            )

        payload = data.get("data") or data
        try:
            parsed = QRValidationData.model_validate(payload)
        except SchemaError:
            logger.error(f"[SCAN] unexpected validation payload: {payload!r}")
            return QRValidationResult(
                success=False, message="Failed to validate QR code", error="MALFORMED_RESPONSE"
            )

        logger.info(f"[SCAN] token {token[:10]}... valid={parsed.valid}")
        return QRValidationResult(
            success=True,
            message=data.get("message") or "QR Code validated successfully",
            data=parsed,
        )

    def check_connection(self) -> bool:
        """True if the backend answers its health check."""
        try:
            resp = requests.get(
                f"{self.base_url}{HEALTH_PATH}",
                headers={"Accept": "application/json", "x-api-key": self.api_key},
                timeout=3,
            )
            return resp.ok
        except requests.exceptions.RequestException as e:
            logger.warning(f"[SCAN] connection test failed: {e}")
            return False
