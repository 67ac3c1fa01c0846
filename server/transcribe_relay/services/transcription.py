"""Transcription relay: forwards a stored artifact to the OpenAI transcription API."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import httpx
import openai
from openai import AsyncOpenAI

from ..config import Settings
from ..exceptions import RelayError, RelaySendError, UpstreamServiceError

logger = logging.getLogger(__name__)


class TranscriptionRelay:
    """Single-shot relay to ``POST {base_url}/audio/transcriptions``.

    Every call is one attempt: the SDK's own retries are disabled and any failure
    is surfaced as a ``RelayError``.
    """

    def __init__(self, settings: Settings, *, http_client: Optional[httpx.AsyncClient] = None):
        if not settings.openai_api_key:
            raise RuntimeError("OPENAI_API_KEY missing; set it in the environment or .env")
        self.model = settings.transcription_model
        client_kwargs: dict[str, Any] = {
            "api_key": settings.openai_api_key,
            "base_url": settings.openai_base_url,
            "max_retries": 0,
        }
        if settings.relay_timeout is not None:
            client_kwargs["timeout"] = settings.relay_timeout
        if http_client is not None:
            client_kwargs["http_client"] = http_client
        self.client = AsyncOpenAI(**client_kwargs)
        self._slots = (
            asyncio.Semaphore(settings.max_concurrent_relays)
            if settings.max_concurrent_relays > 0
            else None
        )

    @contextlib.asynccontextmanager
    async def _slot(self) -> AsyncIterator[None]:
        if self._slots is None:
            yield
            return
        async with self._slots:
            yield

    async def transcribe(self, path: Path) -> str:
        """Send the file at ``path`` upstream and return the transcript verbatim."""

        async with self._slot():
            try:
                # The SDK reads PathLike uploads itself and streams them as the `file` part.
                resp = await self.client.audio.transcriptions.create(model=self.model, file=Path(path))
            except openai.APIStatusError as exc:
                raise self._status_error(exc) from exc
            except openai.APIConnectionError as exc:
                # The SDK message is generic; the transport error is chained as the cause.
                detail = str(exc.__cause__ or exc) or exc.message
                logger.warning("Transcription service unreachable: %s", detail)
                raise UpstreamServiceError(detail) from exc
            except Exception as exc:
                logger.exception("Failed sending %s to the transcription service", path)
                raise RelaySendError(exc) from exc

        text = getattr(resp, "text", None)
        if not isinstance(text, str):
            raise RelaySendError(ValueError("response carries no text field"))
        logger.info("Transcribed %s (%d chars)", Path(path).name, len(text))
        return text

    @staticmethod
    def _status_error(exc: openai.APIStatusError) -> RelayError:
        try:
            body = exc.response.json()
        except ValueError:
            body = None
        logger.warning("Transcription service returned %s: %s", exc.status_code, body or exc.message)
        return UpstreamServiceError(exc.message, body=body, upstream_status=exc.status_code)

    async def aclose(self) -> None:
        await self.client.close()
