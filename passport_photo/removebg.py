from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from .config import REMOVE_BG_PATH, get_remove_bg_base_url, get_remove_bg_timeout_s
from .errors import DecodeError, InvalidCredential, NetworkUnavailable, RateLimited, RemoteProcessingFailed
from .io import ImageBuffer, decode_bytes

logger = logging.getLogger(__name__)


def _error_detail(resp: requests.Response) -> str:
    """
    Pull a human-readable message out of an error body, falling back to the status.
    """
    try:
        data: Dict[str, Any] = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}"
    if not isinstance(data, dict):
        return f"HTTP {resp.status_code}"

    errors = data.get("errors") or []
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        title: Optional[str] = errors[0].get("title")
        if title:
            return str(title)
    if data.get("error"):
        return str(data["error"])
    return f"HTTP {resp.status_code}"


def remove_background(image_bytes: bytes, api_key: str) -> ImageBuffer:
    """
    POST the image to the removal service and decode the RGBA result.

    Raises InvalidCredential (403), RateLimited (429), RemoteProcessingFailed
    (any other non-2xx or an undecodable body) or NetworkUnavailable (no response).
    """
    url = f"{get_remove_bg_base_url()}{REMOVE_BG_PATH}"
    files = {"image_file": ("image.png", image_bytes, "image/png")}
    data = {"size": "auto"}
    try:
        resp = requests.post(
            url,
            headers={"X-Api-Key": api_key},
            files=files,
            data=data,
            timeout=get_remove_bg_timeout_s(),
        )
    except requests.RequestException as e:
        logger.warning("Background removal request failed: %s", e)
        raise NetworkUnavailable() from e

    if resp.status_code == 403:
        raise InvalidCredential()
    if resp.status_code == 429:
        raise RateLimited()
    if not resp.ok:
        raise RemoteProcessingFailed(_error_detail(resp))

    try:
        result = decode_bytes(resp.content)
    except DecodeError as e:
        raise RemoteProcessingFailed("Could not decode the returned image") from e

    if not result.has_alpha:
        logger.debug("Removal service returned an image without alpha; using it as-is")
    return result
