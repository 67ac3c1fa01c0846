"""Error taxonomy for the upload-and-relay flow."""
from __future__ import annotations

from typing import Any, Optional


class RelayServiceError(Exception):
    """Base class for failures that are reported back to the HTTP caller."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    @property
    def payload(self) -> Any:
        """Value placed under ``error`` in the JSON response."""

        return self.message


class UploadValidationError(RelayServiceError):
    """Raised when an upload is rejected before anything is sent upstream."""


class MissingFileError(UploadValidationError):
    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"Aucun fichier reçu dans le champ '{field_name}'")


class UnsupportedMediaTypeError(UploadValidationError):
    def __init__(self, content_type: Optional[str]):
        self.content_type = content_type
        super().__init__("Le fichier n'est pas au format webm")


class UploadTooLargeError(UploadValidationError):
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Le fichier dépasse la taille maximale de {limit} octets")


class RelayError(RelayServiceError):
    """Raised when the transcription service call does not yield a transcript."""

    structured = False


class UpstreamServiceError(RelayError):
    """The transcription service answered with an error, or could not be reached.

    ``body`` holds the upstream JSON error body when one was returned; it is then
    propagated to the caller unchanged.
    """

    def __init__(
        self,
        message: str,
        *,
        body: Any = None,
        upstream_status: Optional[int] = None,
    ):
        self.body = body
        self.upstream_status = upstream_status
        super().__init__(message)

    @property
    def structured(self) -> bool:  # type: ignore[override]
        return self.body is not None

    @property
    def payload(self) -> Any:
        return self.body if self.body is not None else self.message


class RelaySendError(RelayError):
    """Any other failure while preparing or sending the relay call."""

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"Erreur lors de l'envoi à OpenAI : {cause}")
