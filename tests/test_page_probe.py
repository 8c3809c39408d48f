"""Tests for the page agent channel and the one-shot recovery."""

import pytest

from conftest import FakeTabPlatform, SUPPLIER_A_CONFIG
from core.page_probe import EXTRACT_REQUEST, PageProbe
from core.recovery import ExtractionRecovery, RecoveryState
from core.suppliers import SupplierRegistry
from core.tab_session_manager import TabSession
from core.types import Availability, ExtractionFailure, TabState


PROFILE = SupplierRegistry.from_config(SUPPLIER_A_CONFIG).resolve("supplierA")


def _session(platform: FakeTabPlatform, agent: bool) -> TabSession:
    tab = platform.open_existing("https://supplier-a.example/search?q=ecran", agent=agent)
    return TabSession(supplier=PROFILE.key, tab=tab, state=TabState.SETTLED)


class TestPageProbe:
    @pytest.mark.asyncio
    async def test_probe_reports_missing_agent(self, fixture_documents, fast_settings) -> None:
        platform = FakeTabPlatform(documents=fixture_documents)
        probe = PageProbe(platform, fast_settings)
        session = _session(platform, agent=False)

        assert await probe.probe(session) is False
        assert await probe.install(session, PROFILE) is True
        assert await probe.probe(session) is True
        assert platform.injections == [(session.tab.tab_id, "mobilax.js")]
        assert platform.messages[0][1] == EXTRACT_REQUEST

    @pytest.mark.asyncio
    async def test_extract_document_reply(self, fixture_documents, fast_settings) -> None:
        platform = FakeTabPlatform(documents=fixture_documents)
        probe = PageProbe(platform, fast_settings)

        outcome = await probe.extract(_session(platform, agent=True), PROFILE)

        assert outcome.ok
        assert [p.name for p in outcome.products] == ["Ecran iPhone 11 Noir", "Batterie iPhone 11"]
        assert {p.supplier_label for p in outcome.products} == {"SupplierA"}

    @pytest.mark.asyncio
    async def test_extract_products_reply(self, fast_settings) -> None:
        def _reply(url):
            return {
                "products": [
                    {"name": "Ecran OLED", "price": 42.5, "availability": "Rupture"},
                    {"name": "ok"},
                    "garbage",
                    {"name": "ECRAN  oled", "price": 40},
                ]
            }

        platform = FakeTabPlatform(reply=_reply)
        probe = PageProbe(platform, fast_settings)

        outcome = await probe.extract(_session(platform, agent=True), PROFILE)

        assert outcome.ok
        assert len(outcome.products) == 1
        product = outcome.products[0]
        assert product.price == pytest.approx(42.5)
        assert product.availability is Availability.OUT_OF_STOCK

    @pytest.mark.asyncio
    async def test_extract_failures(self, fast_settings) -> None:
        platform = FakeTabPlatform(reply=lambda url: "not a dict")
        probe = PageProbe(platform, fast_settings)

        assert (await probe.extract(_session(platform, agent=False), PROFILE)).failure is ExtractionFailure.NO_AGENT
        outcome = await probe.extract(_session(platform, agent=True), PROFILE)
        assert outcome.failure is ExtractionFailure.PARSE_ERROR
        assert not outcome.is_channel_failure

    @pytest.mark.asyncio
    async def test_extract_timeout(self, fast_settings) -> None:
        fast_settings.agent_response_timeout_seconds = 0.05
        platform = FakeTabPlatform(hang_replies=True)
        probe = PageProbe(platform, fast_settings)

        outcome = await probe.extract(_session(platform, agent=True), PROFILE)

        assert outcome.failure is ExtractionFailure.TIMEOUT
        assert outcome.is_channel_failure

    @pytest.mark.asyncio
    async def test_install_on_closed_tab_does_not_raise(self, fast_settings) -> None:
        platform = FakeTabPlatform()
        probe = PageProbe(platform, fast_settings)
        session = _session(platform, agent=False)
        platform.close(session.tab.tab_id)

        assert await probe.install(session, PROFILE) is False


class TestExtractionRecovery:
    @pytest.mark.asyncio
    async def test_agent_present_needs_no_install(self, fixture_documents, fast_settings) -> None:
        platform = FakeTabPlatform(documents=fixture_documents)
        recovery = ExtractionRecovery(PageProbe(platform, fast_settings))

        outcome = await recovery.run(_session(platform, agent=True), PROFILE)

        assert outcome.ok
        assert recovery.installs == 0
        assert recovery.history == [RecoveryState.NOT_TRIED, RecoveryState.PROBED, RecoveryState.SUCCEEDED]

    @pytest.mark.asyncio
    async def test_reinstall_then_success(self, fixture_documents, fast_settings) -> None:
        platform = FakeTabPlatform(documents=fixture_documents)
        recovery = ExtractionRecovery(PageProbe(platform, fast_settings))

        outcome = await recovery.run(_session(platform, agent=False), PROFILE)

        assert outcome.ok
        assert len(outcome.products) == 2
        assert recovery.installs == 1
        assert recovery.attempts == 2
        assert recovery.history == [
            RecoveryState.NOT_TRIED,
            RecoveryState.PROBED,
            RecoveryState.REINSTALLED,
            RecoveryState.RETRIED,
            RecoveryState.SUCCEEDED,
        ]

    @pytest.mark.asyncio
    async def test_gives_up_after_one_install(self, fast_settings) -> None:
        platform = FakeTabPlatform(install_works=False)
        recovery = ExtractionRecovery(PageProbe(platform, fast_settings))

        outcome = await recovery.run(_session(platform, agent=False), PROFILE)

        assert outcome.failure is ExtractionFailure.NO_AGENT
        assert recovery.gave_up
        assert recovery.installs == 1
        assert len(platform.injections) == 1
        assert len(platform.messages) == 2

    @pytest.mark.asyncio
    async def test_parse_error_is_not_retried(self, fast_settings) -> None:
        platform = FakeTabPlatform(reply=lambda url: {"unexpected": True})
        recovery = ExtractionRecovery(PageProbe(platform, fast_settings))

        outcome = await recovery.run(_session(platform, agent=True), PROFILE)

        assert outcome.failure is ExtractionFailure.PARSE_ERROR
        assert recovery.installs == 0
        assert recovery.history[-1] is RecoveryState.GIVEN_UP
