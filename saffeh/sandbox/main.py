# saffeh/sandbox/main.py
"""
Sandbox backend — FastAPI stand-in for the Saffeh API.

Speaks the same HTTP contract as the real backend, in memory. Used for local
development of the client and scanner and for end-to-end tests.
Errors always come back as JSON {"message": ...}.
"""

import time
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from saffeh.config import settings
from saffeh.sandbox.routers import auth, catalog, qr, reservations
from saffeh.sandbox.state import SandboxState
from saffeh.utils.logger import get_logger

logger = get_logger(__name__)

QR_PATH_PREFIX = "/api/qr/"


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Static API key auth for the gate scanner endpoints (/api/qr/*).
    Everything else uses bearer tokens and passes straight through.
    """
    def __init__(self, app, api_key: str):
        super().__init__(app)
        self.api_key = api_key

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(QR_PATH_PREFIX):
            return await call_next(request)

        api_key = request.headers.get("x-api-key")
        if not api_key or api_key != self.api_key:
            logger.warning(f"🔐 Rejected scanner call to {request.url.path}: bad API key")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"success": False, "message": "Invalid or missing API key", "error": "UNAUTHORIZED"},
            )
        return await call_next(request)


def create_app(state: Optional[SandboxState] = None, api_key: Optional[str] = None) -> FastAPI:
    app = FastAPI(
        title="Saffeh Sandbox API",
        description="In-memory stand-in for the Saffeh parking backend.",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.sandbox = state if state is not None else SandboxState().seed()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(APIKeyMiddleware, api_key=api_key or settings.QR_API_KEY)

    # ── Request Timing Middleware ────────────────────────────────────────
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        duration = round((time.time() - start) * 1000, 2)
        logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
        return response

    # ── Exception Handlers ───────────────────────────────────────────────
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg', 'invalid value')}" if field else "Invalid request"
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": message})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Internal server error"},
        )

    # ── Routers ──────────────────────────────────────────────────────────
    app.include_router(auth.router,         prefix="/api", tags=["🔑 Auth & Profile"])
    app.include_router(catalog.router,      prefix="/api", tags=["🅿️  Catalog"])
    app.include_router(reservations.router, prefix="/api", tags=["🎫 Reservations"])
    app.include_router(qr.router,           prefix="/api", tags=["📷 Gate Scanner"])

    @app.get("/health", summary="Health check", tags=["💚 Health"])
    def health():
        sandbox = app.state.sandbox
        return {
            "status": "ok",
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "reservations": len(sandbox.reservations),
        }

    @app.on_event("startup")
    async def startup():
        logger.info("🚀 Saffeh sandbox starting up...")
        logger.info(f"📍 Locations seeded: {list(app.state.sandbox.locations.keys())}")
        logger.info(f"💳 Confirm-payment succeeds on attempt {app.state.sandbox.confirm_after_attempts}")
        logger.info("📖 API docs at /docs")

    return app


app = create_app()
