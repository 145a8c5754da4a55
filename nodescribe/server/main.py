"""
nodescribe HTTP server (FastAPI).

Start with:
    python -m nodescribe.server.main

Or via uvicorn directly:
    uvicorn nodescribe.server.main:app --port 3001 --reload

Snapshots found in NODESCRIBE_ASSET_DIR are loaded at start-up.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nodescribe.server.routes.graph_routes import router
from nodescribe.server.state import asset_store
from nodescribe.settings import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.ASSET_DIR:
        loaded = asset_store.load_directory(settings.ASSET_DIR, strict=settings.STRICT_SCHEMA)
        logger.info("loaded %d snapshot(s) from %s", len(loaded), settings.ASSET_DIR)
    yield


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(title="nodescribe API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api")


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "assets": len(asset_store.names())}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    import uvicorn

    uvicorn.run(
        "nodescribe.server.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
