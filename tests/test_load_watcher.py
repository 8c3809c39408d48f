"""Tests for the load-or-timeout race."""

import asyncio
import time

import pytest

from conftest import FakeTabPlatform
from core.load_watcher import LoadWatcher
from core.tab_platform import STATUS_COMPLETE, STATUS_LOADING
from core.types import LoadOutcome


@pytest.mark.asyncio
async def test_complete_signal_wins() -> None:
    platform = FakeTabPlatform()
    tab = platform.open_existing("https://www.mobilax.fr/")

    async with LoadWatcher(platform, tab, timeout=1.0) as watcher:
        await platform.navigate(tab, "https://www.mobilax.fr/recherche?s=ecran")
        outcome = await watcher.wait()

    assert outcome is LoadOutcome.COMPLETE
    assert watcher.elapsed < 1.0
    assert platform.subscriptions == 1
    assert platform.unsubscriptions == 1
    assert platform.listeners[tab.tab_id] == []


@pytest.mark.asyncio
async def test_timeout_when_signal_never_fires() -> None:
    platform = FakeTabPlatform(fire_load=False)
    tab = platform.open_existing("https://www.mobilax.fr/")

    started = time.monotonic()
    watcher = LoadWatcher(platform, tab, timeout=0.05)
    watcher.start()
    await platform.navigate(tab, "https://www.mobilax.fr/recherche?s=ecran")
    outcome = await watcher.wait()

    assert outcome is LoadOutcome.TIMEOUT
    assert time.monotonic() - started < 0.5
    assert platform.unsubscriptions == 1
    assert watcher.released


@pytest.mark.asyncio
async def test_late_signal_after_timeout_is_ignored() -> None:
    platform = FakeTabPlatform(fire_load=False)
    tab = platform.open_existing("https://www.utopya.fr/")

    watcher = LoadWatcher(platform, tab, timeout=0.01)
    assert await watcher.wait() is LoadOutcome.TIMEOUT

    platform.emit(tab.tab_id, STATUS_COMPLETE)
    assert platform.unsubscriptions == 1


@pytest.mark.asyncio
async def test_other_tabs_and_loading_status_are_ignored() -> None:
    platform = FakeTabPlatform(fire_load=False)
    tab = platform.open_existing("https://www.mobilax.fr/")
    other = platform.open_existing("https://www.utopya.fr/")

    watcher = LoadWatcher(platform, tab, timeout=0.5)
    watcher.start()
    # forward every signal of the other tab to our listener too
    platform.listeners[other.tab_id] = list(platform.listeners[tab.tab_id])
    platform.emit(other.tab_id, STATUS_COMPLETE)
    platform.emit(tab.tab_id, STATUS_LOADING)
    assert not watcher.released

    platform.emit(tab.tab_id, STATUS_COMPLETE)
    assert await watcher.wait() is LoadOutcome.COMPLETE
    assert platform.unsubscriptions == 1


@pytest.mark.asyncio
async def test_cancelled_wait_releases_once() -> None:
    platform = FakeTabPlatform(fire_load=False)
    tab = platform.open_existing("https://www.mobilax.fr/")

    watcher = LoadWatcher(platform, tab, timeout=5.0)
    task = asyncio.ensure_future(watcher.wait())
    await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert watcher.released
    assert platform.unsubscriptions == 1
    assert platform.listeners[tab.tab_id] == []
