"""Shared fakes and fixtures for the search tests."""

import asyncio
import itertools
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

from core.suppliers import SupplierRegistry
from core.tab_platform import BLANK_URL, STATUS_COMPLETE, STATUS_LOADING, TabHandle
from core.types import SearchSettings
from utils.error_handling import AgentUnreachableError, TabAcquisitionError


FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


def read_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


class _FakeTab:
    def __init__(self, tab_id: str, url: str) -> None:
        self.tab_id = tab_id
        self.url = url
        self.agent = False


class FakeTabPlatform:
    """In-memory tab platform.

    ``documents`` maps a hostname to the HTML its pages return. The page
    agent is present after every navigation when ``auto_agent`` is set,
    otherwise only after a successful ``inject_script``.
    """

    def __init__(
        self,
        documents: Optional[Dict[str, str]] = None,
        fire_load: bool = True,
        load_delay: float = 0.01,
        auto_agent: bool = True,
        install_works: bool = True,
        hang_replies: bool = False,
        refuse_create: bool = False,
        reply: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self.documents = documents or {}
        self.fire_load = fire_load
        self.load_delay = load_delay
        self.auto_agent = auto_agent
        self.install_works = install_works
        self.hang_replies = hang_replies
        self.refuse_create = refuse_create
        self.reply = reply

        self.tabs: Dict[str, _FakeTab] = {}
        self.listeners: Dict[str, List[Callable[[str, str], None]]] = {}
        self.created: List[str] = []
        self.navigations: List[tuple] = []
        self.injections: List[tuple] = []
        self.messages: List[tuple] = []
        self.subscriptions = 0
        self.unsubscriptions = 0
        self.closed = False
        self._ids = itertools.count(1)

    async def __aenter__(self) -> "FakeTabPlatform":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.closed = True

    # helpers for tests -------------------------------------------------

    def open_existing(self, url: str, agent: bool = False) -> TabHandle:
        tab = _FakeTab(f"tab-{next(self._ids)}", url)
        tab.agent = agent
        self.tabs[tab.tab_id] = tab
        return TabHandle(tab.tab_id, url)

    def close(self, tab_id: str) -> None:
        self.tabs.pop(tab_id, None)

    def emit(self, tab_id: str, status: str) -> None:
        for callback in list(self.listeners.get(tab_id, [])):
            callback(tab_id, status)

    def document_for(self, url: str) -> str:
        for host, html in self.documents.items():
            if host in url:
                return html
        return "<html><body></body></html>"

    # TabPlatform ------------------------------------------------------

    async def list_tabs(self) -> List[TabHandle]:
        return [TabHandle(tab.tab_id, tab.url) for tab in self.tabs.values()]

    async def create_tab(self, url: str) -> TabHandle:
        if self.refuse_create:
            raise TabAcquisitionError("Tab creation refused", {"url": url})
        tab = _FakeTab(f"tab-{next(self._ids)}", url)
        tab.agent = self.auto_agent
        self.tabs[tab.tab_id] = tab
        self.created.append(url)
        if url != BLANK_URL:
            self._schedule_load(tab.tab_id)
        return TabHandle(tab.tab_id, url)

    async def navigate(self, tab: TabHandle, url: str) -> None:
        state = self.tabs.get(tab.tab_id)
        if state is None:
            raise TabAcquisitionError("Tab is gone", {"tab_id": tab.tab_id})
        state.url = url
        state.agent = self.auto_agent
        self.navigations.append((tab.tab_id, url))
        self._schedule_load(tab.tab_id)

    def subscribe_load(self, tab: TabHandle, callback):
        self.listeners.setdefault(tab.tab_id, []).append(callback)
        self.subscriptions += 1

        def unsubscribe() -> None:
            self.unsubscriptions += 1
            self.listeners[tab.tab_id].remove(callback)

        return unsubscribe

    async def inject_script(self, tab: TabHandle, script_path: Path) -> None:
        state = self.tabs.get(tab.tab_id)
        if state is None:
            raise AgentUnreachableError("Tab is gone", {"tab_id": tab.tab_id})
        self.injections.append((tab.tab_id, Path(script_path).name))
        if self.install_works:
            state.agent = True

    async def send_message(self, tab: TabHandle, message: Dict[str, Any]) -> Dict[str, Any]:
        self.messages.append((tab.tab_id, dict(message)))
        state = self.tabs.get(tab.tab_id)
        if state is None or not state.agent:
            raise AgentUnreachableError("Receiving end does not exist", {"tab_id": tab.tab_id})
        if self.hang_replies:
            await asyncio.sleep(60)
        if self.reply is not None:
            return self.reply(state.url)
        return {"document": self.document_for(state.url), "url": state.url}

    def _schedule_load(self, tab_id: str) -> None:
        loop = asyncio.get_running_loop()
        loop.call_soon(self.emit, tab_id, STATUS_LOADING)
        if self.fire_load:
            loop.call_later(self.load_delay, self.emit, tab_id, STATUS_COMPLETE)


SUPPLIER_A_CONFIG = {
    "suppliers": {
        "supplierA": {
            "label": "SupplierA",
            "search_url": "https://supplier-a.example/search?q={query}",
            "extractor": "mobilax",
        }
    }
}


@pytest.fixture
def fast_settings() -> SearchSettings:
    return SearchSettings(
        load_timeout_seconds=0.2,
        hydration_delay_seconds=0.01,
        agent_settle_seconds=0.01,
        agent_response_timeout_seconds=0.2,
    )


@pytest.fixture
def suppliers() -> SupplierRegistry:
    return SupplierRegistry.from_config(SUPPLIER_A_CONFIG)


@pytest.fixture
def fixture_documents() -> Dict[str, str]:
    return {
        "supplier-a.example": read_fixture("supplier_a_search.html"),
        "mobilax.fr": read_fixture("mobilax_search.html"),
        "utopya.fr": read_fixture("utopya_search.html"),
    }


@pytest.fixture
def platform(fixture_documents) -> FakeTabPlatform:
    return FakeTabPlatform(documents=fixture_documents)
