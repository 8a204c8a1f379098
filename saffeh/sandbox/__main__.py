# saffeh/sandbox/__main__.py
"""Run the sandbox backend: python -m saffeh.sandbox"""

import uvicorn

from saffeh.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "saffeh.sandbox.main:app",
        host=settings.SANDBOX_HOST,
        port=settings.SANDBOX_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
