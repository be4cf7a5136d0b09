from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from . import removebg
from .credentials import CredentialLoader
from .errors import BackgroundRemovalError, CredentialUnavailable, RemoteProcessingFailed
from .io import ImageBuffer, to_png_bytes

logger = logging.getLogger(__name__)

RemoveFn = Callable[[bytes, str], ImageBuffer]


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Pending:
    pass


@dataclass(frozen=True)
class Succeeded:
    image: ImageBuffer


@dataclass(frozen=True)
class Failed:
    error: BackgroundRemovalError

    @property
    def reason(self) -> str:
        return self.error.kind


ProcessingState = Union[Idle, Pending, Succeeded, Failed]


class BackgroundRemover:
    """
    Tracks one background-removal attempt at a time.

    Idle -> Pending -> Succeeded | Failed; Failed -> Pending again on retry().
    Removal failures end up in the Failed state instead of propagating, so the
    caller can always fall back to the unprocessed crop.
    """

    def __init__(self, credentials: Optional[CredentialLoader] = None, remove: Optional[RemoveFn] = None):
        self.credentials = credentials or CredentialLoader()
        self._remove = remove
        self._last_input: Optional[ImageBuffer] = None
        self.state: ProcessingState = Idle()

    @property
    def is_processing(self) -> bool:
        return isinstance(self.state, Pending)

    @property
    def error(self) -> Optional[str]:
        return str(self.state.error) if isinstance(self.state, Failed) else None

    @property
    def processed_image(self) -> Optional[ImageBuffer]:
        return self.state.image if isinstance(self.state, Succeeded) else None

    @property
    def is_loading_credential(self) -> bool:
        return self.credentials.is_loading

    @property
    def credential_error(self) -> Optional[Exception]:
        return self.credentials.error

    @property
    def can_remove(self) -> bool:
        return not self.is_processing and not self.is_loading_credential and self.credential_error is None

    def process(self, image: ImageBuffer) -> ProcessingState:
        self._last_input = image
        self.state = Pending()
        remove = self._remove or removebg.remove_background
        try:
            api_key = self.credentials.get()
            if not api_key:
                raise CredentialUnavailable()
            result = remove(to_png_bytes(image), api_key)
        except BackgroundRemovalError as e:
            logger.warning("Background removal error (%s): %s", e.kind, e)
            self.state = Failed(e)
            return self.state
        except Exception as e:
            logger.exception("Unexpected background removal failure")
            self.state = Failed(RemoteProcessingFailed(str(e) or type(e).__name__))
            return self.state

        logger.info("Background removed (%dx%d, alpha=%s)", result.width, result.height, result.has_alpha)
        self.state = Succeeded(result)
        return self.state

    def retry(self) -> ProcessingState:
        """Run the whole flow again (credential check included) on the last input."""
        if not isinstance(self.state, Failed) or self._last_input is None:
            raise RuntimeError("retry() is only valid after a failed removal")
        return self.process(self._last_input)

    def reset(self) -> None:
        self._last_input = None
        self.state = Idle()
