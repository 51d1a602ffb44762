# tests/test_polling.py

from __future__ import annotations

import pytest

from digiteam.backends.polling import PollingSubscription
from digiteam.core.errors import StoreError

from .fakes import wait_until


@pytest.mark.asyncio
async def test_fetch_error_is_counted_and_next_poll_delivers() -> None:
    calls = 0

    async def fetch():
        nonlocal calls
        calls += 1
        if calls == 1:
            raise StoreError("backend unreachable")
        return [{"id": "a"}]

    snapshots: list[list[dict]] = []
    sub = PollingSubscription(fetch, snapshots.append, interval_seconds=0.01, label="tasks").start()
    try:
        await wait_until(lambda: len(snapshots) == 1)
        await wait_until(lambda: calls >= 3)
    finally:
        sub.unsubscribe()

    assert sub.failures == 1
    # Unchanged snapshots are not delivered again.
    assert snapshots == [[{"id": "a"}]]
    assert not sub.active


@pytest.mark.asyncio
async def test_failure_keeps_last_snapshot() -> None:
    results: list[object] = [[{"id": "a"}], StoreError("gone"), StoreError("gone"), [{"id": "a"}]]

    async def fetch():
        item = results.pop(0) if results else [{"id": "a"}]
        if isinstance(item, Exception):
            raise item
        return item

    snapshots: list[list[dict]] = []
    sub = PollingSubscription(fetch, snapshots.append, interval_seconds=0.01).start()
    try:
        await wait_until(lambda: not results)
    finally:
        sub.unsubscribe()

    assert sub.failures == 2
    assert snapshots == [[{"id": "a"}]]
