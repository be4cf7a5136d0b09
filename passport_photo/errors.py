from __future__ import annotations


class PassportPhotoError(Exception):
    """Base class for every failure surfaced to the user."""


class InputValidationError(PassportPhotoError):
    """Uploaded file has the wrong type or is too large."""


class DecodeError(PassportPhotoError):
    """Image bytes could not be decoded."""


class CanvasOperationError(PassportPhotoError):
    """Allocation, draw or encode failed."""


class ViewportNotReady(PassportPhotoError):
    """Viewport (or image) has no measurable area yet."""


class BackgroundRemovalError(PassportPhotoError):
    retryable: bool = True
    default_message = "Failed to remove background. Please try again or skip this step."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def kind(self) -> str:
        return type(self).__name__


class CredentialUnavailable(BackgroundRemovalError):
    default_message = "API key is not available. Please try again later."


class InvalidCredential(BackgroundRemovalError):
    retryable = False
    default_message = "Invalid API key. Please contact support."


class RateLimited(BackgroundRemovalError):
    default_message = "API rate limit exceeded. Please try again later or contact support."


class NetworkUnavailable(BackgroundRemovalError):
    default_message = (
        "Unable to connect to the background removal service. "
        "Please check your internet connection and try again."
    )


class RemoteProcessingFailed(BackgroundRemovalError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Background removal failed: {detail}")
