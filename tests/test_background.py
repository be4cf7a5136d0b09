from __future__ import annotations

import numpy as np
import pytest

from passport_photo import removebg as removebg_mod
from passport_photo.background import BackgroundRemover, Failed, Idle, Succeeded
from passport_photo.credentials import CredentialLoader
from passport_photo.errors import InvalidCredential, RateLimited
from passport_photo.io import ImageBuffer


def _crop() -> ImageBuffer:
    arr = np.zeros((531, 413, 3), dtype=np.uint8)
    arr[...] = (90, 120, 150)
    return ImageBuffer(arr)


def _cutout() -> ImageBuffer:
    arr = np.zeros((531, 413, 4), dtype=np.uint8)
    arr[100:400, 100:300] = (90, 120, 150, 255)
    return ImageBuffer(arr)


def test_missing_credential_never_calls_service():
    calls = []

    def _remove(data, key):
        calls.append(key)
        return _cutout()

    remover = BackgroundRemover(CredentialLoader(lambda: ""), remove=_remove)
    state = remover.process(_crop())

    assert isinstance(state, Failed)
    assert state.reason == "CredentialUnavailable"
    assert calls == []
    assert remover.processed_image is None
    assert remover.error == "API key is not available. Please try again later."


def test_success_keeps_alpha():
    seen = {}

    def _remove(data, key):
        seen["key"] = key
        seen["png"] = data[:8]
        return _cutout()

    remover = BackgroundRemover(CredentialLoader(lambda: " k-123 "), remove=_remove)
    state = remover.process(_crop())

    assert isinstance(state, Succeeded)
    assert seen["key"] == "k-123"
    assert seen["png"] == b"\x89PNG\r\n\x1a\n"
    assert remover.processed_image.has_alpha is True
    assert remover.processed_image.transparent_pixel_count() > 0
    assert remover.error is None


def test_rate_limited_then_retry_succeeds():
    responses = [RateLimited(), _cutout()]

    def _remove(data, key):
        r = responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r

    remover = BackgroundRemover(CredentialLoader(lambda: "k"), remove=_remove)
    first = remover.process(_crop())
    assert isinstance(first, Failed)
    assert first.reason == "RateLimited"
    assert remover.can_remove is True

    second = remover.retry()
    assert isinstance(second, Succeeded)
    assert responses == []


def test_retry_only_after_failure():
    remover = BackgroundRemover(CredentialLoader(lambda: "k"), remove=lambda data, key: _cutout())
    with pytest.raises(RuntimeError):
        remover.retry()
    remover.process(_crop())
    with pytest.raises(RuntimeError):
        remover.retry()


def test_invalid_credential_is_not_retryable():
    def _remove(data, key):
        raise InvalidCredential()

    remover = BackgroundRemover(CredentialLoader(lambda: "bad"), remove=_remove)
    state = remover.process(_crop())
    assert isinstance(state, Failed)
    assert state.error.retryable is False
    assert state.reason == "InvalidCredential"


def test_credential_fetch_error_is_reported():
    def _boom():
        raise RuntimeError("vault offline")

    remover = BackgroundRemover(CredentialLoader(_boom), remove=lambda data, key: _cutout())
    state = remover.process(_crop())

    assert isinstance(state, Failed)
    assert state.reason == "CredentialUnavailable"
    assert isinstance(remover.credential_error, RuntimeError)
    assert remover.can_remove is False


def test_pending_while_service_call_in_flight():
    observed = []
    remover = BackgroundRemover(CredentialLoader(lambda: "k"))

    def _remove(data, key):
        observed.append(remover.is_processing)
        return _cutout()

    remover._remove = _remove
    remover.process(_crop())
    assert observed == [True]
    assert remover.is_processing is False


def test_default_remove_goes_through_removebg(monkeypatch):
    calls = []

    def _fake_remove(data, key):
        calls.append(key)
        return _cutout()

    monkeypatch.setattr(removebg_mod, "remove_background", _fake_remove)
    remover = BackgroundRemover(CredentialLoader(lambda: "env-key"))
    assert isinstance(remover.process(_crop()), Succeeded)
    assert calls == ["env-key"]


def test_reset_returns_to_idle():
    remover = BackgroundRemover(CredentialLoader(lambda: ""))
    remover.process(_crop())
    remover.reset()
    assert isinstance(remover.state, Idle)
    with pytest.raises(RuntimeError):
        remover.retry()


def test_credential_cached_after_first_success():
    fetches = []

    def _fetch():
        fetches.append(1)
        return "k" if len(fetches) == 1 else ""

    loader = CredentialLoader(_fetch)
    assert loader.get() == "k"
    assert loader.get() == "k"
    assert fetches == [1]
    assert loader.is_loaded is True


def test_unexpected_error_still_ends_in_failed():
    calls = []

    def _remove(data, key):
        calls.append(key)
        if len(calls) == 1:
            raise KeyError("boom")
        return _cutout()

    remover = BackgroundRemover(CredentialLoader(lambda: "k"), remove=_remove)
    state = remover.process(_crop())

    assert isinstance(state, Failed)
    assert state.reason == "RemoteProcessingFailed"
    assert remover.is_processing is False
    assert isinstance(remover.retry(), Succeeded)
