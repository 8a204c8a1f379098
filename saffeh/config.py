# saffeh/config.py
"""
Client configuration using Pydantic-Settings.
All settings can be overridden via environment variables or .env file.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # ── Backend ───────────────────────────────────────────────────────────
    API_BASE_URL: str = "http://localhost:4000/api"
    REQUEST_TIMEOUT_SECONDS: float = 15.0

    # ── Local storage (token + user) ──────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./saffeh.db"

    # ── Polling cadence ───────────────────────────────────────────────────
    PAYMENT_POLL_INTERVAL_SECONDS: float = 3.0
    PAYMENT_POLL_TIMEOUT_SECONDS: float = 600.0   # give up after 10 min → stalled
    RESERVATION_REFRESH_SECONDS: float = 2.5      # QR consumption detection
    SPOT_POLL_INTERVAL_SECONDS: float = 2.0
    GATE_POLL_INTERVAL_SECONDS: float = 3.0

    # ── QR display ────────────────────────────────────────────────────────
    QR_CONSUMED_GRACE_SECONDS: float = 120.0

    # ── Companion scanner ─────────────────────────────────────────────────
    SCANNER_API_BASE_URL: str = "http://localhost:4000"
    SCANNER_API_KEY: str = "CHANGE_ME"
    SCANNER_GATE_ID: Optional[str] = None
    SCANNER_GUARD_ID: Optional[str] = None
    SCAN_INTERVAL_SECONDS: float = 2.0            # ignore repeat scans of the same code

    # ── Sandbox server ────────────────────────────────────────────────────
    SANDBOX_HOST: str = "127.0.0.1"
    SANDBOX_PORT: int = 4000
    SANDBOX_API_KEY: Optional[str] = None         # falls back to SCANNER_API_KEY
    SANDBOX_CONFIRM_AFTER_ATTEMPTS: int = 3       # 400 until the Nth confirm call
    SANDBOX_RESERVATION_PRICE: float = 5.0
    SANDBOX_CURRENCY: str = "JOD"
    SANDBOX_VALIDITY_MINUTES: int = 60
    SANDBOX_REFUND_VOUCHER_PERCENTAGE: int = 100

    @property
    def QR_API_KEY(self) -> str:
        return self.SANDBOX_API_KEY or self.SCANNER_API_KEY

    # ── Logging ───────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
