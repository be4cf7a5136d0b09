from __future__ import annotations

import logging
import os
from typing import Callable, Optional

from .config import REMOVE_BG_API_KEY_ENV

logger = logging.getLogger(__name__)


def env_api_key() -> str:
    return os.getenv(REMOVE_BG_API_KEY_ENV, "").strip()


class CredentialLoader:
    """
    Fetches the removal-service credential once and caches it for the process lifetime.

    A failed or empty fetch is not cached, so the next `get()` tries again.
    """

    def __init__(self, fetch: Callable[[], str] = env_api_key):
        self._fetch = fetch
        self._value: Optional[str] = None
        self.is_loading = False
        self.error: Optional[Exception] = None

    @property
    def is_loaded(self) -> bool:
        return bool(self._value)

    def get(self) -> str:
        """Returns the credential, or "" when it is unavailable."""
        if self._value:
            return self._value

        self.is_loading = True
        try:
            value = (self._fetch() or "").strip()
        except Exception as e:
            logger.warning("Credential fetch failed: %s", e)
            self.error = e
            return ""
        finally:
            self.is_loading = False

        self.error = None
        if value:
            self._value = value
        return value
