import pytest

from trowool.api.cart import run_with_retry
from trowool.core.errors import InsufficientStock, TransientStoreError


def test_retries_transient_errors_until_success():
    calls = []

    def flaky(value):
        calls.append(value)
        if len(calls) < 3:
            raise TransientStoreError()
        return value * 2

    assert run_with_retry(flaky, 21, retries=3, delay=0) == 42
    assert calls == [21, 21, 21]


def test_gives_up_after_last_attempt():
    calls = []

    def always_locked():
        calls.append(1)
        raise TransientStoreError()

    with pytest.raises(TransientStoreError):
        run_with_retry(always_locked, retries=2, delay=0)
    assert len(calls) == 2


def test_business_errors_are_not_retried():
    calls = []

    def no_stock():
        calls.append(1)
        raise InsufficientStock(requested=6, available=5)

    with pytest.raises(InsufficientStock):
        run_with_retry(no_stock, retries=5, delay=0)
    assert len(calls) == 1


def test_backoff_doubles_delay(monkeypatch):
    waits = []
    monkeypatch.setattr("trowool.api.cart.time.sleep", waits.append)

    def always_locked():
        raise TransientStoreError()

    with pytest.raises(TransientStoreError):
        run_with_retry(always_locked, retries=4, delay=0.5)
    assert waits == [0.5, 1.0, 2.0]
