"""
Al-Hadi Media Main Application

FastAPI application entry point for the upload relay and live status API.
"""

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import datetime
from typing import Any, AsyncGenerator

from fastapi import FastAPI

from alhadi import __version__
from alhadi.config import load_config
from alhadi.database.rest_client import TableClient
from alhadi.services.program_media import ProgramMediaService
from alhadi.storage.supabase import SupabaseStorageClient
from alhadi.upload.chunks import ChunkAssembler
from alhadi.upload.duration import DurationProbe
from alhadi.utils.logging_setup import setup_logging_from_config

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown tasks:
    - Load configuration and set up logging
    - Open the storage and table clients
    - Create the chunk store
    """
    config = load_config()
    setup_logging_from_config(config.logging)
    logger.info(f"Starting Al-Hadi Media v{__version__}")

    if not config.supabase.url:
        logger.warning("Supabase URL is not configured; uploads will fail")

    async with AsyncExitStack() as stack:
        storage = await stack.enter_async_context(SupabaseStorageClient(config.supabase))
        tables = await stack.enter_async_context(TableClient(config.supabase))
        logger.info(f"Storage client ready for bucket '{storage.bucket}'")

        app.state.storage = storage
        app.state.tables = tables
        app.state.chunk_assembler = ChunkAssembler(
            max_bytes=config.upload.max_video_bytes, ttl=config.upload.chunk_ttl
        )
        app.state.upload_settings = config.upload
        app.state.stream_settings = config.stream
        app.state.duration_probe = DurationProbe(
            ffprobe_path=config.ffmpeg.ffprobe_path,
            timeout=config.upload.duration_probe_timeout,
            placeholder=config.upload.placeholder_duration,
        )
        app.state.program_media = ProgramMediaService(
            storage, tables, bucket=config.supabase.storage_bucket
        )

        yield

        pending = app.state.chunk_assembler.pending()
        if pending:
            logger.warning(f"Dropping {len(pending)} incomplete chunked uploads")
            for upload_id in pending:
                app.state.chunk_assembler.discard(upload_id)

    logger.info("Al-Hadi Media shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="Al-Hadi Media",
        description="Upload relay and live stream status for the Al-Hadi Media site",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    from alhadi.api import api_router
    app.include_router(api_router)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "healthy",
            "version": __version__,
            "timestamp": datetime.utcnow().isoformat(),
        }

    return app


# Create the app instance
app = create_app()


def main() -> None:
    """
    Main entry point for running the server.

    Called when running `python -m alhadi` or via the `alhadi` script.
    """
    import uvicorn

    config = load_config()
    setup_logging_from_config(config.logging)

    logger.info(f"Starting Al-Hadi Media v{__version__}")

    uvicorn.run(
        "alhadi.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.debug,
        log_level=config.server.log_level.lower(),
    )


if __name__ == "__main__":
    main()
