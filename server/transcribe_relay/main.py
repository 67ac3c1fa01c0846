"""FastAPI application entrypoint for the transcription relay."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .config import Settings, get_settings
from .routers import transcribe
from .services.transcription import TranscriptionRelay
from .services.uploads import UploadReceiver

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    relay: Optional[TranscriptionRelay] = None,
    receiver: Optional[UploadReceiver] = None,
) -> FastAPI:
    """Instantiate and configure the FastAPI application."""

    settings = settings or get_settings()
    receiver = receiver or UploadReceiver(settings)
    relay = relay or TranscriptionRelay(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.retains_artifacts:
            await receiver.sweep()
        logger.info("Transcription relay ready; uploads in %s", receiver.upload_dir)
        yield
        await relay.aclose()

    application = FastAPI(
        title="Transcription Relay",
        description="Relays uploaded webm recordings to the OpenAI transcription API.",
        version="0.1.0",
        lifespan=lifespan,
    )
    application.state.settings = settings
    application.state.receiver = receiver
    application.state.relay = relay

    application.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.allowed_origin],
        allow_methods=["GET", "POST"],
        allow_credentials=True,
    )

    @application.exception_handler(RequestValidationError)
    async def _malformed_request(request: Request, exc: RequestValidationError):
        logger.info("Rejected malformed request to %s: %s", request.url.path, exc.errors())
        return transcribe.error_response("Requête invalide")

    application.include_router(transcribe.router)

    if settings.include_artifact_url:
        application.mount("/uploads", StaticFiles(directory=receiver.upload_dir), name="uploads")

    @application.get("/")
    async def root() -> dict[str, str]:
        """Lightweight health endpoint for service discovery."""
        return {"service": "transcribe-relay", "status": "ok"}

    return application


def run() -> None:
    import uvicorn

    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    logger.info("Starting transcription relay on port %s", settings.port)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
