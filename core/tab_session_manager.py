import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from core.load_watcher import LoadWatcher
from core.suppliers import SupplierProfile
from core.tab_platform import BLANK_URL, TabHandle, TabPlatform
from core.types import LoadOutcome, SearchSettings, TabState
from utils.error_handling import TabAcquisitionError, TabStateError
from utils.logger import log_search_event


logger = logging.getLogger(__name__)


_TRANSITIONS: Dict[TabState, frozenset] = {
    TabState.IDLE: frozenset({TabState.LOCATING}),
    TabState.LOCATING: frozenset({TabState.NAVIGATING, TabState.CREATING}),
    TabState.CREATING: frozenset({TabState.NAVIGATING}),
    TabState.NAVIGATING: frozenset({TabState.WAITING_LOAD}),
    TabState.WAITING_LOAD: frozenset({TabState.SETTLED}),
    TabState.SETTLED: frozenset({TabState.LOCATING}),
}


@dataclass
class TabSession:
    """One acquisition of the supplier tab, from locating it to settled."""

    supplier: str
    tab: Optional[TabHandle] = None
    state: TabState = TabState.IDLE
    query_url: Optional[str] = None
    load_outcome: Optional[LoadOutcome] = None
    history: List[TabState] = field(default_factory=list)

    def transition(self, new_state: TabState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise TabStateError(
                f"Illegal tab transition {self.state.value} -> {new_state.value}",
                {"supplier": self.supplier},
            )
        self.history.append(new_state)
        self.state = new_state

    def reset(self) -> None:
        """Return to IDLE when the tab being navigated disappears."""
        self.history.append(TabState.IDLE)
        self.state = TabState.IDLE

    @property
    def settled(self) -> bool:
        return self.state is TabState.SETTLED


class TabRegistry:
    """Explicit supplier -> tab session map (one tab per supplier)."""

    def __init__(self) -> None:
        self._sessions: Dict[str, TabSession] = {}

    def get(self, supplier: str) -> Optional[TabSession]:
        return self._sessions.get(supplier)

    def bind(self, session: TabSession) -> None:
        self._sessions[session.supplier] = session

    def forget(self, supplier: str) -> Optional[TabSession]:
        return self._sessions.pop(supplier, None)

    def __contains__(self, supplier: object) -> bool:
        return supplier in self._sessions

    def __iter__(self) -> Iterator[TabSession]:
        return iter(list(self._sessions.values()))

    def __len__(self) -> int:
        return len(self._sessions)


class TabSessionManager:
    """Find or create the supplier tab, navigate it and wait until it settles."""

    def __init__(
        self,
        platform: TabPlatform,
        registry: Optional[TabRegistry] = None,
        settings: Optional[SearchSettings] = None,
    ) -> None:
        self.platform = platform
        self.registry = registry if registry is not None else TabRegistry()
        self.settings = settings or SearchSettings()

    async def acquire(self, profile: SupplierProfile, query: str) -> TabSession:
        """Return a settled session showing the results for ``query``.

        Every call walks its own session record, seeded with the tab the
        supplier last settled on, so overlapping searches for one supplier
        never share state. The record that settles last becomes the
        registered one.

        Raises:
            TabAcquisitionError: the platform refused to create a tab
        """
        url = profile.build_search_url(query)
        previous = self.registry.get(profile.key)
        session = TabSession(
            supplier=profile.key,
            tab=previous.tab if previous is not None else None,
            query_url=url,
        )

        tab = await self._locate(profile, session)
        outcome: Optional[LoadOutcome] = None
        if tab is not None:
            try:
                outcome = await self._navigate_in_place(session, tab, url)
            except TabAcquisitionError:
                logger.info("Reused tab for %s vanished, opening a new one", profile.key)
                session.tab = None
                session.reset()
                session.transition(TabState.LOCATING)
        if outcome is None:
            outcome = await self._open_new_tab(session, url)

        session.load_outcome = outcome
        if outcome is LoadOutcome.TIMEOUT:
            log_search_event(
                logger,
                "load",
                f"Load signal not seen for {profile.key} within {self.settings.load_timeout_seconds}s, continuing",
                {"supplier": profile.key, "url": url},
                level=logging.WARNING,
            )

        await asyncio.sleep(self.settings.hydration_delay_seconds)
        session.transition(TabState.SETTLED)
        self.registry.bind(session)
        log_search_event(
            logger,
            "tab",
            f"Tab settled for {profile.key}",
            {"supplier": profile.key, "tab_id": session.tab.tab_id, "load": outcome.value},
            level=logging.DEBUG,
        )
        return session

    async def _locate(self, profile: SupplierProfile, session: TabSession) -> Optional[TabHandle]:
        session.transition(TabState.LOCATING)
        try:
            tabs = await self.platform.list_tabs()
        except Exception:  # noqa: BLE001
            logger.warning("Tab enumeration failed for %s", profile.key, exc_info=True)
            return None

        if session.tab is not None:
            for tab in tabs:
                if tab.tab_id == session.tab.tab_id:
                    return tab
            logger.info("Tab for %s was closed externally", profile.key)
            session.tab = None

        for tab in tabs:
            if profile.matches_url(tab.url):
                return tab
        return None

    async def _navigate_in_place(self, session: TabSession, tab: TabHandle, url: str) -> LoadOutcome:
        session.tab = tab
        session.transition(TabState.NAVIGATING)
        async with LoadWatcher(self.platform, tab, self.settings.load_timeout_seconds) as watcher:
            await self.platform.navigate(tab, url)
            session.transition(TabState.WAITING_LOAD)
            return await watcher.wait()

    async def _open_new_tab(self, session: TabSession, url: str) -> LoadOutcome:
        session.transition(TabState.CREATING)
        # The load subscription has to exist before the first navigation
        tab = await self.platform.create_tab(BLANK_URL)
        session.tab = tab
        session.transition(TabState.NAVIGATING)
        log_search_event(
            logger,
            "tab",
            f"Opened tab for {session.supplier}",
            {"supplier": session.supplier, "tab_id": tab.tab_id, "url": url},
            level=logging.DEBUG,
        )
        async with LoadWatcher(self.platform, tab, self.settings.load_timeout_seconds) as watcher:
            await self.platform.navigate(tab, url)
            session.transition(TabState.WAITING_LOAD)
            return await watcher.wait()
