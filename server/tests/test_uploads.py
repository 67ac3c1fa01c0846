from __future__ import annotations

import asyncio
import io
import os
import time
from dataclasses import dataclass
from typing import Optional

import pytest

from transcribe_relay.exceptions import MissingFileError, UnsupportedMediaTypeError, UploadTooLargeError
from transcribe_relay.services.uploads import UploadReceiver


@dataclass
class FakeUpload:
    file: io.BytesIO
    content_type: Optional[str] = "audio/webm"


def _run(coro):  # noqa: ANN001
    return asyncio.run(coro)


def _stored_files(receiver: UploadReceiver) -> list[str]:
    return sorted(p.name for p in receiver.upload_dir.iterdir())


def test_receive_stores_exact_bytes(make_settings) -> None:
    receiver = UploadReceiver(make_settings())
    payload = b"\x1aE\xdf\xa3" + bytes(range(200))

    artifact = _run(receiver.receive(FakeUpload(io.BytesIO(payload))))

    assert artifact.path.read_bytes() == payload
    assert artifact.size == len(payload)
    assert artifact.content_type == "audio/webm"
    assert artifact.filename.startswith("file-")
    assert artifact.filename.endswith(".webm")


def test_receive_generates_distinct_names(make_settings) -> None:
    receiver = UploadReceiver(make_settings())

    first = _run(receiver.receive(FakeUpload(io.BytesIO(b"same"))))
    second = _run(receiver.receive(FakeUpload(io.BytesIO(b"same"))))

    assert first.path != second.path
    assert first.path.exists() and second.path.exists()


def test_receive_never_overwrites_on_clock_collision(make_settings, monkeypatch) -> None:
    receiver = UploadReceiver(make_settings())
    monkeypatch.setattr(time, "time_ns", lambda: 1_700_000_000_000_000_000)

    first = _run(receiver.receive(FakeUpload(io.BytesIO(b"one"))))
    second = _run(receiver.receive(FakeUpload(io.BytesIO(b"two"))))

    assert first.filename == "file-1700000000000000000.webm"
    assert second.filename == "file-1700000000000000001.webm"
    assert first.path.read_bytes() == b"one"


def test_receive_rejects_missing_file(make_settings) -> None:
    receiver = UploadReceiver(make_settings())

    with pytest.raises(MissingFileError):
        _run(receiver.receive(None))
    assert _stored_files(receiver) == []


@pytest.mark.parametrize("content_type", ["audio/wav", "video/webm", "audio/webm;codecs=opus", None])
def test_receive_rejects_other_media_types(make_settings, content_type) -> None:
    receiver = UploadReceiver(make_settings())

    with pytest.raises(UnsupportedMediaTypeError) as excinfo:
        _run(receiver.receive(FakeUpload(io.BytesIO(b"RIFF"), content_type=content_type)))

    assert excinfo.value.message == "Le fichier n'est pas au format webm"
    assert _stored_files(receiver) == []


def test_receive_rejects_oversized_upload(make_settings) -> None:
    receiver = UploadReceiver(make_settings(max_upload_bytes=16))

    with pytest.raises(UploadTooLargeError):
        _run(receiver.receive(FakeUpload(io.BytesIO(b"x" * 17))))
    assert _stored_files(receiver) == []


def test_release_deletes_when_not_retained(make_settings) -> None:
    receiver = UploadReceiver(make_settings(include_artifact_url=False))
    artifact = _run(receiver.receive(FakeUpload(io.BytesIO(b"audio"))))

    _run(receiver.release(artifact))

    assert not artifact.path.exists()


def test_stored_scope_keeps_retained_artifacts(make_settings) -> None:
    receiver = UploadReceiver(make_settings(include_artifact_url=True))

    async def scenario():
        async with receiver.stored(FakeUpload(io.BytesIO(b"audio"))) as artifact:
            assert artifact.path.exists()
        return artifact

    artifact = _run(scenario())
    assert artifact.path.exists()


def test_sweep_evicts_only_expired_artifacts(make_settings) -> None:
    receiver = UploadReceiver(make_settings(include_artifact_url=True, artifact_ttl_seconds=60))
    old = _run(receiver.receive(FakeUpload(io.BytesIO(b"old"))))
    fresh = _run(receiver.receive(FakeUpload(io.BytesIO(b"fresh"))))
    for artifact in (old, fresh):
        _run(receiver.release(artifact))
    unrelated = receiver.upload_dir / "notes.txt"
    unrelated.write_text("keep me")
    stale = time.time() - 3600
    os.utime(old.path, (stale, stale))
    os.utime(unrelated, (stale, stale))

    removed = _run(receiver.sweep())

    assert removed == 1
    assert not old.path.exists()
    assert fresh.path.exists()
    assert unrelated.exists()


def test_sweep_spares_artifacts_still_in_flight(make_settings) -> None:
    receiver = UploadReceiver(make_settings(include_artifact_url=True, artifact_ttl_seconds=0))
    artifact = _run(receiver.receive(FakeUpload(io.BytesIO(b"relaying"))))
    stale = time.time() - 3600
    os.utime(artifact.path, (stale, stale))

    assert _run(receiver.sweep()) == 0
    assert artifact.path.exists()

    _run(receiver.release(artifact))

    assert _run(receiver.sweep()) == 1
    assert not artifact.path.exists()


def test_release_logs_cleanup_failure(make_settings, monkeypatch, caplog) -> None:
    receiver = UploadReceiver(make_settings(include_artifact_url=False))

    async def refuse(path):  # noqa: ANN001
        raise PermissionError("read-only volume")

    async def scenario():
        async with receiver.stored(FakeUpload(io.BytesIO(b"audio"))) as artifact:
            monkeypatch.setattr(receiver, "_discard", refuse)
            return artifact

    artifact = _run(scenario())

    assert artifact.path.exists()
    assert "Could not remove artifact" in caplog.text
