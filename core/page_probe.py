import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from core.suppliers import SupplierProfile
from core.tab_platform import TabPlatform
from core.tab_session_manager import TabSession
from core.types import (
    NAME_MIN_LENGTH,
    AgentMessage,
    ExtractionFailure,
    ExtractionOutcome,
    ProductRecord,
    SearchSettings,
)
from parsers.field_extractors import SupplierExtractor, dedupe_records
from parsers.registry import get_extractor
from utils.error_handling import AgentUnreachableError, ParsingError
from utils.logger import log_search_event


logger = logging.getLogger(__name__)

EXTRACT_REQUEST: AgentMessage = {"action": "extractProducts"}

ExtractorFactory = Callable[[SupplierProfile, Optional[SearchSettings]], SupplierExtractor]


class PageProbe:
    """Talks to the page-resident agent of a tab, and (re-)installs it on demand."""

    def __init__(
        self,
        platform: TabPlatform,
        settings: Optional[SearchSettings] = None,
        extractor_factory: ExtractorFactory = get_extractor,
    ) -> None:
        self.platform = platform
        self.settings = settings or SearchSettings()
        self.extractor_factory = extractor_factory
        self._extractors: Dict[str, SupplierExtractor] = {}

    async def probe(self, session: TabSession) -> bool:
        """True when an agent answers an extraction request; never raises."""
        try:
            await self._request(session)
        except (AgentUnreachableError, asyncio.TimeoutError):
            return False
        return True

    async def install(self, session: TabSession, profile: SupplierProfile) -> bool:
        """Inject the supplier agent script, then wait for it to settle.

        Returns False when the platform rejected the injection.
        """
        script = profile.agent_script_path
        installed = True
        try:
            if session.tab is None:
                raise AgentUnreachableError("Session has no tab", {"supplier": profile.key})
            await self.platform.inject_script(session.tab, script)
        except AgentUnreachableError as exc:
            installed = False
            log_search_event(
                logger,
                "agent",
                f"Agent injection failed for {profile.key}: {exc}",
                {"supplier": profile.key, "script": str(script)},
                level=logging.WARNING,
            )
        else:
            log_search_event(
                logger,
                "agent",
                f"Agent installed for {profile.key}",
                {"supplier": profile.key, "script": script.name},
            )
        await asyncio.sleep(self.settings.agent_settle_seconds)
        return installed

    async def extract(self, session: TabSession, profile: SupplierProfile) -> ExtractionOutcome:
        try:
            reply = await self._request(session)
        except AgentUnreachableError as exc:
            return ExtractionOutcome.failed(ExtractionFailure.NO_AGENT, str(exc))
        except asyncio.TimeoutError:
            return ExtractionOutcome.failed(
                ExtractionFailure.TIMEOUT,
                f"No agent reply within {self.settings.agent_response_timeout_seconds}s",
            )

        try:
            products = self._interpret(reply, profile)
        except ParsingError as exc:
            return ExtractionOutcome.failed(ExtractionFailure.PARSE_ERROR, str(exc))
        return ExtractionOutcome.success(products)

    def extractor_for(self, profile: SupplierProfile) -> SupplierExtractor:
        extractor = self._extractors.get(profile.key)
        if extractor is None:
            extractor = self.extractor_factory(profile, self.settings)
            self._extractors[profile.key] = extractor
        return extractor

    async def _request(self, session: TabSession) -> Any:
        if session.tab is None:
            raise AgentUnreachableError("Session has no tab", {"supplier": session.supplier})
        return await asyncio.wait_for(
            self.platform.send_message(session.tab, dict(EXTRACT_REQUEST)),
            timeout=self.settings.agent_response_timeout_seconds,
        )

    def _interpret(self, reply: Any, profile: SupplierProfile) -> List[ProductRecord]:
        if not isinstance(reply, dict):
            raise ParsingError(
                f"Unexpected agent reply type {type(reply).__name__}",
                {"supplier": profile.key},
            )

        if isinstance(reply.get("products"), list):
            records = []
            for entry in reply["products"]:
                if not isinstance(entry, dict):
                    continue
                record = ProductRecord.from_mapping(
                    entry, profile.label, self.settings.name_max_length
                )
                if len(record.name) >= NAME_MIN_LENGTH:
                    records.append(record)
            return dedupe_records(records)[: self.settings.max_results]

        document = reply.get("document")
        if isinstance(document, str):
            return self.extractor_for(profile).extract(document)

        raise ParsingError("Agent reply has neither products nor document", {"supplier": profile.key})
