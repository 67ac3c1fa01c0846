"""Upload receiver: persists incoming audio to transient storage."""
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import IO, AsyncIterator, Optional, Protocol

from ..config import Settings
from ..exceptions import MissingFileError, UnsupportedMediaTypeError, UploadTooLargeError

logger = logging.getLogger(__name__)

ACCEPTED_MEDIA_TYPE = "audio/webm"
ARTIFACT_SUFFIX = ".webm"
_CHUNK_SIZE = 64 * 1024


class IncomingFile(Protocol):
    """The subset of ``fastapi.UploadFile`` the receiver relies on."""

    file: IO[bytes]
    content_type: Optional[str]


@dataclass(slots=True)
class StoredArtifact:
    """One received upload, fully written to disk."""

    path: Path
    content_type: Optional[str]
    size: int

    @property
    def filename(self) -> str:
        return self.path.name


class UploadReceiver:
    """Writes uploads under ``settings.upload_dir`` and enforces the retention policy."""

    def __init__(self, settings: Settings, *, field_name: str = "file"):
        self._settings = settings
        self.field_name = field_name
        self.upload_dir = Path(settings.upload_dir).resolve()
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        # Artifacts whose request has not released them yet; never swept.
        self._in_flight: set[Path] = set()

    async def receive(self, upload: Optional[IncomingFile]) -> StoredArtifact:
        """Store ``upload`` and validate its declared media type.

        Raises ``MissingFileError`` when no file part was sent,
        ``UploadTooLargeError`` past ``max_upload_bytes`` and
        ``UnsupportedMediaTypeError`` for anything but ``audio/webm``. Rejected
        uploads never stay on disk.
        """

        if upload is None or getattr(upload, "file", None) is None:
            raise MissingFileError(self.field_name)

        path, size = await asyncio.to_thread(self._write, upload.file)
        artifact = StoredArtifact(path=path, content_type=upload.content_type, size=size)
        logger.info("Stored upload %s (%d bytes, %s)", artifact.filename, size, artifact.content_type)

        if artifact.content_type != ACCEPTED_MEDIA_TYPE:
            await self._discard(artifact.path)
            raise UnsupportedMediaTypeError(artifact.content_type)
        self._in_flight.add(artifact.path)
        return artifact

    async def release(self, artifact: StoredArtifact) -> None:
        """End the request scope of ``artifact``.

        Retained artifacts are left for ``sweep`` to evict once they expire. A
        failed cleanup is logged, never raised: the request outcome stands.
        """

        self._in_flight.discard(artifact.path)
        if self._settings.retains_artifacts:
            return
        try:
            await self._discard(artifact.path)
        except OSError:
            logger.warning("Could not remove artifact %s", artifact.filename, exc_info=True)

    @asynccontextmanager
    async def stored(self, upload: Optional[IncomingFile]) -> AsyncIterator[StoredArtifact]:
        artifact = await self.receive(upload)
        try:
            yield artifact
        finally:
            await self.release(artifact)

    async def sweep(self, now: Optional[float] = None) -> int:
        """Delete artifacts older than ``artifact_ttl_seconds``; return how many went."""

        in_flight = frozenset(self._in_flight)
        return await asyncio.to_thread(self._sweep, time.time() if now is None else now, in_flight)

    def _sweep(self, now: float, in_flight: frozenset[Path] = frozenset()) -> int:
        cutoff = now - self._settings.artifact_ttl_seconds
        removed = 0
        for candidate in self.upload_dir.glob(f"{self.field_name}-*{ARTIFACT_SUFFIX}"):
            if candidate in in_flight:
                continue
            try:
                if candidate.stat().st_mtime < cutoff:
                    candidate.unlink()
                    removed += 1
            except FileNotFoundError:
                # Released by its request between glob and unlink.
                continue
        if removed:
            logger.info("Evicted %d expired artifact(s) from %s", removed, self.upload_dir)
        return removed

    def _open_unique(self) -> tuple[Path, IO[bytes]]:
        stamp = time.time_ns()
        while True:
            path = self.upload_dir / f"{self.field_name}-{stamp}{ARTIFACT_SUFFIX}"
            try:
                return path, open(path, "xb")
            except FileExistsError:
                stamp += 1

    def _write(self, source: IO[bytes]) -> tuple[Path, int]:
        limit = self._settings.max_upload_bytes
        path, target = self._open_unique()
        size = 0
        try:
            with target:
                while True:
                    chunk = source.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if limit and size > limit:
                        raise UploadTooLargeError(limit)
                    target.write(chunk)
        except BaseException:
            path.unlink(missing_ok=True)
            raise
        return path, size

    async def _discard(self, path: Path) -> None:
        await asyncio.to_thread(path.unlink, missing_ok=True)
        logger.debug("Removed artifact %s", path.name)

