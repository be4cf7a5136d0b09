from __future__ import annotations

import itertools
import logging
from typing import Dict, Optional

from .io import ImageBuffer

logger = logging.getLogger(__name__)


class ArtifactStore:
    """
    Owns every image the pipeline produces and hands out integer handles.

    A handle stays valid until released; superseded results must be released
    by whoever replaced them.
    """

    def __init__(self) -> None:
        self._items: Dict[int, ImageBuffer] = {}
        self._ids = itertools.count(1)

    def acquire(self, image: ImageBuffer) -> int:
        handle = next(self._ids)
        self._items[handle] = image
        return handle

    def get(self, handle: int) -> ImageBuffer:
        try:
            return self._items[handle]
        except KeyError:
            raise KeyError(f"Artifact {handle} was released or never existed") from None

    def release(self, handle: Optional[int]) -> None:
        if handle is None:
            return
        if self._items.pop(handle, None) is None:
            logger.debug("Artifact %s already released", handle)

    def __contains__(self, handle: object) -> bool:
        return handle in self._items

    def __len__(self) -> int:
        return len(self._items)
