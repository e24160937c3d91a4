# medifyme/errors.py
#
# Domain exceptions raised by the workflows. Routers translate them into
# HTTP responses; the status code travels with the exception.

from typing import Any, Dict, Optional


class MedifyError(Exception):
    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self) -> Dict[str, Any]:
        return {"message": self.message, "status": self.status_code}


class ValidationError(MedifyError):
    """A required field or id is missing or malformed."""


class NotFoundError(MedifyError):
    """A referenced record is absent. Reported as 400, never 404."""


class ConflictSoft(MedifyError):
    """
    The request was processed but not applied: already requested, already a
    patient, already accepted. Callers branch on the status code.
    """
    status_code = 212


class UpstreamError(MedifyError):
    """An external provider call failed. The message never carries provider detail."""


class InvalidCredentialsError(UpstreamError):
    pass


class UploadFailedError(UpstreamError):
    pass


class OcrFailedError(UpstreamError):
    pass


class ProviderError(UpstreamError):
    status_code = 500
