"""
Unit tests for :mod:`patient_registration.cancellation`.
"""

import threading

import pytest

from patient_registration.cancellation import CancellationToken, RequestCancelledError


def test_new_token_is_not_cancelled() -> None:
    token = CancellationToken()

    assert token.cancelled is False
    token.raise_if_cancelled()


def test_cancel_sets_flag_and_reason() -> None:
    token = CancellationToken()
    token.cancel("user navigated away")

    assert token.cancelled is True
    with pytest.raises(RequestCancelledError, match="user navigated away"):
        token.raise_if_cancelled()


def test_cancel_keeps_first_reason() -> None:
    token = CancellationToken()
    token.cancel("first")
    token.cancel("second")

    assert token.reason == "first"


def test_cancel_without_reason_uses_default_message() -> None:
    token = CancellationToken()
    token.cancel()

    with pytest.raises(RequestCancelledError, match="Request was cancelled"):
        token.raise_if_cancelled()


def test_cancel_from_another_thread() -> None:
    token = CancellationToken()
    thread = threading.Thread(target=token.cancel)
    thread.start()
    thread.join()

    assert token.cancelled is True
