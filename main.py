# main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adapters.entry.http.views.auto_compound_view import router as auto_compound_router
from adapters.external.database.compound_run_repository_mongodb import CompoundRunRepositoryMongoDB
from adapters.external.database.mongo_client import is_mongo_configured
from config import get_settings

logger = logging.getLogger(__name__)


def init_mongo_indexes() -> None:
    """
    Make sure the run history collection has its indexes.
    Skipped when MONGO_URI is not set (history disabled).
    """
    if not is_mongo_configured():
        logger.info("MONGO_URI not set, compounding run history disabled")
        return
    CompoundRunRepositoryMongoDB().ensure_indexes()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_mongo_indexes()
    yield


def create_app() -> FastAPI:
    """
    Application factory for the Auto-Compound API.
    """
    logging.basicConfig(
        level=getattr(logging, get_settings().LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )

    app = FastAPI(
        title="Auto-Compound API",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auto_compound_router, prefix="/api")

    return app


app = create_app()


def serve() -> None:
    s = get_settings()
    uvicorn.run(app, host=s.API_HOST, port=s.API_PORT, log_level=s.LOG_LEVEL.lower())


if __name__ == "__main__":
    serve()
