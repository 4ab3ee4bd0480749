"""FastAPI application for the outage sync service.

Usage:
    python -m outage_sync.api.app
"""

import logging
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI

from outage_sync.api.v1 import sync, testdata
from outage_sync.config import settings


def create_app() -> FastAPI:
    app = FastAPI(
        title="Electricity Outage Sync API",
        description="Synchronizes staging outage incidents into the fact tables.",
        version="1.0.0",
    )
    app.include_router(sync.router)
    app.include_router(testdata.router)

    @app.get("/health", tags=["Health"])
    def health():
        return {
            "status": "Healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.environment,
        }

    return app


app = create_app()


def main():
    logging.basicConfig(
        level=settings.api_log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "outage_sync.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        log_level=settings.api_log_level,
    )


if __name__ == "__main__":
    main()
