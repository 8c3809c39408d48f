import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    async_playwright,
)

from core.types import AgentMessage, TabID
from utils.error_handling import AgentUnreachableError, TabAcquisitionError


LoadCallback = Callable[[TabID, str], None]
Unsubscribe = Callable[[], None]

STATUS_LOADING = "loading"
STATUS_COMPLETE = "complete"

BLANK_URL = "about:blank"

_AGENT_CALL = """
(message) => {
    const agent = window.__partsAgent;
    if (!agent || typeof agent.handle !== 'function') {
        return undefined;
    }
    return agent.handle(message);
}
"""


@dataclass
class TabHandle:
    """Stable reference to one browser tab."""

    tab_id: TabID
    url: str = ""


@runtime_checkable
class TabPlatform(Protocol):
    """Capabilities the search needs from whatever hosts the browser tabs."""

    async def list_tabs(self) -> List[TabHandle]:
        ...

    async def create_tab(self, url: str) -> TabHandle:
        ...

    async def navigate(self, tab: TabHandle, url: str) -> None:
        ...

    def subscribe_load(self, tab: TabHandle, callback: LoadCallback) -> Unsubscribe:
        """Call ``callback(tab_id, status)`` on navigation progress of ``tab``."""
        ...

    async def inject_script(self, tab: TabHandle, script_path: Path) -> None:
        ...

    async def send_message(self, tab: TabHandle, message: AgentMessage) -> AgentMessage:
        """Deliver ``message`` to the page agent; raise AgentUnreachableError if none answers."""
        ...


class PlaywrightTabPlatform:
    """Tab platform backed by a single Playwright browser context (tabs are pages)."""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config or {}
        self.logger = logger or logging.getLogger(__name__)

        browser_cfg = self.config.get("browser", {})
        self.browser_type = browser_cfg.get("browser_type", "chromium")
        self.headless = browser_cfg.get("headless", False)
        self.user_data_dir = browser_cfg.get("user_data_dir")
        self.navigation_timeout_ms = browser_cfg.get("navigation_timeout_ms", 30_000)
        self.launch_options: Dict[str, Any] = dict(browser_cfg.get("launch_options", {}))
        self.context_options: Dict[str, Any] = dict(browser_cfg.get("context_options", {}))

        self.playwright: Optional[Playwright] = None
        self.context: Optional[BrowserContext] = None
        self._browser: Optional[Browser] = None
        self._start_lock = asyncio.Lock()

    async def start(self) -> None:
        if self.context:
            return
        async with self._start_lock:
            if self.context:
                return
            self.logger.debug("Starting async Playwright (%s)", self.browser_type)
            self.playwright = await async_playwright().start()
            launcher = getattr(self.playwright, self.browser_type)
            options = {"headless": self.headless, **self.launch_options}
            if self.user_data_dir:
                # Persistent profile keeps the user's supplier sessions between runs
                self.context = await launcher.launch_persistent_context(
                    self.user_data_dir, **options, **self.context_options
                )
            else:
                self._browser = await launcher.launch(**options)
                self.context = await self._browser.new_context(**self.context_options)

    async def stop(self) -> None:
        if self.context:
            await self._safe_close(self.context)
            self.context = None
        if self._browser:
            await self._safe_close(self._browser)
            self._browser = None
        if self.playwright:
            await self.playwright.stop()
            self.playwright = None

    async def __aenter__(self) -> "PlaywrightTabPlatform":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def list_tabs(self) -> List[TabHandle]:
        await self.start()
        return [self._handle(page) for page in self.context.pages if not page.is_closed()]

    async def create_tab(self, url: str) -> TabHandle:
        await self.start()
        try:
            page = await self.context.new_page()
        except PlaywrightError as exc:
            raise TabAcquisitionError(f"Tab creation refused: {exc}", {"url": url}) from exc
        tab = self._handle(page)
        if url != BLANK_URL:
            await self.navigate(tab, url)
        return self._handle(page)

    async def navigate(self, tab: TabHandle, url: str) -> None:
        page = self._page(tab)
        try:
            # "commit" returns as soon as the navigation starts; completion is
            # observed through subscribe_load
            await page.goto(url, wait_until="commit", timeout=self.navigation_timeout_ms)
        except PlaywrightError:
            self.logger.warning(
                "Navigation did not commit", extra={"event_type": "tab", "event_data": {"url": url}}
            )

    def subscribe_load(self, tab: TabHandle, callback: LoadCallback) -> Unsubscribe:
        page = self._page(tab)
        tab_id = tab.tab_id

        def _on_domcontentloaded(_page: Page) -> None:
            callback(tab_id, STATUS_LOADING)

        def _on_load(_page: Page) -> None:
            callback(tab_id, STATUS_COMPLETE)

        page.on("domcontentloaded", _on_domcontentloaded)
        page.on("load", _on_load)

        def unsubscribe() -> None:
            page.remove_listener("domcontentloaded", _on_domcontentloaded)
            page.remove_listener("load", _on_load)

        return unsubscribe

    async def inject_script(self, tab: TabHandle, script_path: Path) -> None:
        page = self._agent_page(tab)
        try:
            await page.add_script_tag(path=str(script_path))
        except PlaywrightError as exc:
            raise AgentUnreachableError(
                f"Agent injection failed: {exc}", {"script": str(script_path)}
            ) from exc

    async def send_message(self, tab: TabHandle, message: AgentMessage) -> AgentMessage:
        page = self._agent_page(tab)
        try:
            reply = await page.evaluate(_AGENT_CALL, message)
        except PlaywrightError as exc:
            raise AgentUnreachableError(
                f"Message channel error: {exc}", {"tab_id": tab.tab_id}
            ) from exc
        if reply is None:
            raise AgentUnreachableError("No agent answered", {"tab_id": tab.tab_id})
        return reply

    def _page(self, tab: TabHandle) -> Page:
        if self.context:
            for page in self.context.pages:
                if self._page_id(page) == tab.tab_id and not page.is_closed():
                    return page
        raise TabAcquisitionError("Tab is gone", {"tab_id": tab.tab_id})

    def _agent_page(self, tab: TabHandle) -> Page:
        try:
            return self._page(tab)
        except TabAcquisitionError as exc:
            raise AgentUnreachableError(str(exc), exc.context) from exc

    def _handle(self, page: Page) -> TabHandle:
        return TabHandle(tab_id=self._page_id(page), url=page.url)

    async def _safe_close(self, resource) -> None:
        try:
            await resource.close()
        except Exception:
            self.logger.debug("Failed to close Playwright resource", exc_info=True)

    def _page_id(self, page: Page) -> str:
        return f"pg-{id(page)}"
