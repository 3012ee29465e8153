"""Tests for per-date locking."""

import threading
from datetime import date

from diary_sync.sync.locks import DateLocks

D1 = date(2024, 5, 1)
D2 = date(2024, 5, 2)


def test_reentrant_for_same_thread():
    locks = DateLocks()
    with locks.hold(D1):
        with locks.hold(D1):
            pass


def test_same_date_serialised():
    locks = DateLocks()
    entered = threading.Event()

    def worker():
        with locks.hold(D1):
            entered.set()

    with locks.hold(D1):
        thread = threading.Thread(target=worker)
        thread.start()
        assert not entered.wait(0.1)
    thread.join(5)
    assert entered.is_set()


def test_different_dates_independent():
    locks = DateLocks()
    entered = threading.Event()

    def worker():
        with locks.hold(D2):
            entered.set()

    with locks.hold(D1):
        thread = threading.Thread(target=worker)
        thread.start()
        assert entered.wait(5)
    thread.join(5)


def test_released_on_error():
    locks = DateLocks()
    try:
        with locks.hold(D1):
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    acquired = []
    thread = threading.Thread(
        target=lambda: acquired.append(locks._get(D1).acquire(timeout=1))
    )
    thread.start()
    thread.join(5)
    assert acquired == [True]
