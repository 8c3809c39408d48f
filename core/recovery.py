"""Extraction with a single reinstall-and-retry recovery cycle.

States::

    NOT_TRIED -> PROBED -> SUCCEEDED
                        -> REINSTALLED -> RETRIED -> SUCCEEDED | GIVEN_UP
                        -> GIVEN_UP

REINSTALLED is reachable only from PROBED, so a search installs the agent at
most once.
"""

import logging
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from core.page_probe import PageProbe
from core.suppliers import SupplierProfile
from core.tab_session_manager import TabSession
from core.types import ExtractionOutcome
from utils.error_handling import ScraperError
from utils.logger import log_search_event

logger = logging.getLogger(__name__)


class RecoveryState(str, Enum):
    NOT_TRIED = "not_tried"
    PROBED = "probed"
    REINSTALLED = "reinstalled"
    RETRIED = "retried"
    SUCCEEDED = "succeeded"
    GIVEN_UP = "given_up"


_TRANSITIONS: Dict[RecoveryState, FrozenSet[RecoveryState]] = {
    RecoveryState.NOT_TRIED: frozenset({RecoveryState.PROBED}),
    RecoveryState.PROBED: frozenset(
        {RecoveryState.SUCCEEDED, RecoveryState.REINSTALLED, RecoveryState.GIVEN_UP}
    ),
    RecoveryState.REINSTALLED: frozenset({RecoveryState.RETRIED}),
    RecoveryState.RETRIED: frozenset({RecoveryState.SUCCEEDED, RecoveryState.GIVEN_UP}),
    RecoveryState.SUCCEEDED: frozenset(),
    RecoveryState.GIVEN_UP: frozenset(),
}

TERMINAL_STATES = frozenset({RecoveryState.SUCCEEDED, RecoveryState.GIVEN_UP})


class ExtractionRecovery:
    """Drives one extraction through the recovery state machine."""

    def __init__(self, probe: PageProbe) -> None:
        self.probe = probe
        self.state = RecoveryState.NOT_TRIED
        self.history: List[RecoveryState] = [RecoveryState.NOT_TRIED]
        self.installs = 0
        self.attempts = 0
        self.outcome: Optional[ExtractionOutcome] = None

    async def run(self, session: TabSession, profile: SupplierProfile) -> ExtractionOutcome:
        outcome = await self._attempt(session, profile)
        self._advance(RecoveryState.PROBED)

        while self.state not in TERMINAL_STATES:
            if self.state is RecoveryState.PROBED:
                if outcome.ok:
                    self._advance(RecoveryState.SUCCEEDED)
                elif outcome.is_channel_failure:
                    log_search_event(
                        logger,
                        "recovery",
                        f"No agent answered on {profile.key} ({outcome.failure.value}), reinstalling",
                        {"supplier": profile.key, "detail": outcome.detail},
                    )
                    self.installs += 1
                    await self.probe.install(session, profile)
                    self._advance(RecoveryState.REINSTALLED)
                else:
                    self._advance(RecoveryState.GIVEN_UP)
            elif self.state is RecoveryState.REINSTALLED:
                outcome = await self._attempt(session, profile)
                self._advance(RecoveryState.RETRIED)
            elif self.state is RecoveryState.RETRIED:
                self._advance(
                    RecoveryState.SUCCEEDED if outcome.ok else RecoveryState.GIVEN_UP
                )

        self.outcome = outcome
        return outcome

    @property
    def gave_up(self) -> bool:
        return self.state is RecoveryState.GIVEN_UP

    async def _attempt(self, session: TabSession, profile: SupplierProfile) -> ExtractionOutcome:
        self.attempts += 1
        return await self.probe.extract(session, profile)

    def _advance(self, new_state: RecoveryState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise ScraperError(
                f"Illegal recovery transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        self.history.append(new_state)
