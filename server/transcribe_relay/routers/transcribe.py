"""Upload-and-relay endpoint."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional

from fastapi import APIRouter, File, Request, UploadFile
from fastapi.responses import JSONResponse

from ..exceptions import RelayServiceError
from ..models import schemas
from ..services.uploads import StoredArtifact

logger = logging.getLogger(__name__)

router = APIRouter(tags=["transcription"])

ERROR_PREFIX = "Erreur lors de la transcription : "


class RelayStage(Enum):
    """Stages a transcription request moves through; any failure ends it."""
    VALIDATING = "validating"
    RELAYING = "relaying"
    RESPONDING = "responding"


def error_response(payload: Any, status_code: int = 500) -> JSONResponse:
    """Render a failure as ``{"error": ...}``; plain messages get the user-facing prefix."""

    if isinstance(payload, str):
        payload = ERROR_PREFIX + payload
    return JSONResponse(status_code=status_code, content=schemas.ErrorResponse(error=payload).model_dump())


def _artifact_url(request: Request, artifact: StoredArtifact) -> Optional[str]:
    settings = request.app.state.settings
    if not (settings.include_artifact_url and settings.public_base_url):
        return None
    return f"{settings.public_base_url.rstrip('/')}/uploads/{artifact.filename}"


@router.post(
    "/transcribe",
    response_model=schemas.TranscriptionResponse,
    response_model_exclude_none=True,
    responses={500: {"model": schemas.ErrorResponse}},
)
async def transcribe(request: Request, file: Optional[UploadFile] = File(default=None)):
    """Store the uploaded webm recording, relay it for transcription, return the text."""

    receiver = request.app.state.receiver
    relay = request.app.state.relay
    stage = RelayStage.VALIDATING
    try:
        if request.app.state.settings.retains_artifacts:
            await receiver.sweep()
        async with receiver.stored(file) as artifact:
            stage = RelayStage.RELAYING
            text = await relay.transcribe(artifact.path)
            stage = RelayStage.RESPONDING
            audio_url = _artifact_url(request, artifact)
    except RelayServiceError as exc:
        logger.info("Transcription request failed while %s: %s", stage.value, exc.message)
        return error_response(exc.payload, exc.status_code)
    except Exception as exc:
        logger.exception("Unexpected failure while %s", stage.value)
        return error_response(str(exc) or exc.__class__.__name__)

    return schemas.TranscriptionResponse(text=text, audio_url=audio_url)
