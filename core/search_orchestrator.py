import logging
import time
from typing import Any, Dict, Iterable, List, Optional

from core.page_probe import PageProbe
from core.recovery import ExtractionRecovery
from core.suppliers import SupplierProfile, SupplierRegistry
from core.tab_platform import TabPlatform
from core.tab_session_manager import TabRegistry, TabSessionManager
from core.types import (
    ExtractionFailure,
    ExtractionOutcome,
    SearchResult,
    SearchSettings,
    SupplierIdentifier,
    supplier_key,
)
from utils.error_handling import (
    ErrorContext,
    ErrorReporter,
    TabAcquisitionError,
    UnknownSupplierError,
)
from utils.logger import log_search_event


logger = logging.getLogger(__name__)


_FAILURE_MESSAGES = {
    ExtractionFailure.NO_AGENT: "{label} page did not answer, even after reinstalling the extraction agent",
    ExtractionFailure.TIMEOUT: "{label} page agent timed out, even after reinstalling it",
    ExtractionFailure.PARSE_ERROR: "{label} page returned an unreadable answer",
}


class SearchOrchestrator:
    """Top-level supplier search: tab -> settle -> extract (one recovery) -> records.

    ``search`` never raises; failures come back as an empty product list with
    a human-readable ``error``.
    """

    def __init__(
        self,
        platform: TabPlatform,
        suppliers: Optional[SupplierRegistry] = None,
        settings: Optional[SearchSettings] = None,
        tab_registry: Optional[TabRegistry] = None,
        error_reporter: Optional[ErrorReporter] = None,
    ) -> None:
        self.platform = platform
        self.suppliers = suppliers or SupplierRegistry()
        self.settings = settings or SearchSettings()
        self.sessions = TabSessionManager(platform, tab_registry, self.settings)
        self.probe = PageProbe(platform, self.settings)
        self.error_reporter = error_reporter or ErrorReporter()
        self.last_recovery: Optional[ExtractionRecovery] = None

    @classmethod
    def from_config(
        cls, platform: TabPlatform, config: Optional[Dict[str, Any]] = None, **kwargs: Any
    ) -> "SearchOrchestrator":
        return cls(
            platform,
            suppliers=SupplierRegistry.from_config(config),
            settings=SearchSettings.from_config(config),
            **kwargs,
        )

    @property
    def tab_registry(self) -> TabRegistry:
        return self.sessions.registry

    async def search(self, supplier: SupplierIdentifier, query: str) -> SearchResult:
        key = supplier_key(supplier)
        try:
            profile = self.suppliers.resolve(supplier)
        except UnknownSupplierError as exc:
            return self._fail(key, "unknown_supplier", str(exc))

        query = (query or "").strip()
        if not query:
            return self._fail(key, "empty_query", "Search query is empty")

        try:
            return await self._search(profile, query)
        except TabAcquisitionError as exc:
            return self._fail(key, "tab_acquisition", f"No browser tab available for {profile.label}: {exc}")
        except Exception as exc:  # noqa: BLE001
            logger.exception("Search on %s failed", profile.key)
            return self._fail(key, "internal", f"Search on {profile.label} failed: {exc}")

    async def search_many(
        self, suppliers: Iterable[SupplierIdentifier], query: str
    ) -> List[SearchResult]:
        """Search each supplier in turn; one result per supplier, in order."""
        results = []
        for supplier in suppliers:
            results.append(await self.search(supplier, query))
        return results

    async def _search(self, profile: SupplierProfile, query: str) -> SearchResult:
        started = time.monotonic()
        session = await self.sessions.acquire(profile, query)

        recovery = ExtractionRecovery(self.probe)
        self.last_recovery = recovery
        outcome = await recovery.run(session, profile)
        if not outcome.ok:
            return self._fail(
                profile.key,
                outcome.failure.value,
                self._describe_failure(profile, outcome),
                url=session.query_url,
            )

        log_search_event(
            logger,
            "extraction",
            f"{len(outcome.products)} products from {profile.label} for '{query}'",
            {
                "supplier": profile.key,
                "count": len(outcome.products),
                "load": session.load_outcome.value if session.load_outcome else None,
                "recovered": recovery.installs > 0,
                "elapsed_seconds": round(time.monotonic() - started, 3),
            },
        )
        return SearchResult(supplier=profile.key, products=outcome.products)

    def _describe_failure(self, profile: SupplierProfile, outcome: ExtractionOutcome) -> str:
        message = _FAILURE_MESSAGES[outcome.failure].format(label=profile.label)
        if outcome.detail:
            message = f"{message} ({outcome.detail})"
        return message

    def _fail(self, supplier: str, reason: str, message: str, url: Optional[str] = None) -> SearchResult:
        log_search_event(
            logger,
            "recovery",
            f"Search on {supplier} returned no results: {message}",
            {"supplier": supplier, "reason": reason},
            level=logging.WARNING,
        )
        self.error_reporter.report_error(
            reason, message, ErrorContext(supplier=supplier, url=url, reason=reason)
        )
        return SearchResult(supplier=supplier, products=[], error=message)
