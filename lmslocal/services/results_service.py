import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from lmslocal.core.exceptions import AuthenticationError, LmsApiError, RollbackError
from lmslocal.core.security import ApiSession
from lmslocal.models import CompetitionStatus, FixtureModel, RoundInfo, RoundModel
from lmslocal.schemas.envelope import ApiEnvelope
from lmslocal.services.optimistic import OptimisticValue
from lmslocal.services.round_state import (
    detect_processing_divergence,
    is_round_completed,
    is_round_locked,
    result_code_for,
    sort_fixtures,
)

logger = logging.getLogger(__name__)


class ResultsBoard:
    """
    Organiser view of one round's fixtures while results are entered.

    Result edits only change local state. confirm() submits every entered
    result in one batch and shows the fixtures as processed straight away;
    if the API refuses, every fixture goes back to what it was.
    """

    def __init__(self, fixtures: Sequence[FixtureModel], round_: Optional[RoundModel],
                 competition_status: Optional[CompetitionStatus] = None):
        self.round = round_
        self.competition_status = competition_status
        self._fixtures: Dict[int, OptimisticValue] = {
            f.id: OptimisticValue(f, name=f"fixture {f.id}") for f in sort_fixtures(fixtures)
        }

    @property
    def fixtures(self) -> List[FixtureModel]:
        return [v.value for v in self._fixtures.values()]

    def fixture(self, fixture_id: int) -> FixtureModel:
        if fixture_id not in self._fixtures:
            raise ValueError(f"Fixture {fixture_id} is not part of this round.")
        return self._fixtures[fixture_id].value

    def set_result(self, fixture_id: int, choice: str) -> FixtureModel:
        fixture = self.fixture(fixture_id)
        if fixture.is_processed:
            raise ValueError(f"Fixture {fixture_id} has already been processed.")
        updated = fixture.model_copy(update={"result": result_code_for(fixture, choice)})
        self._fixtures[fixture_id].reset(updated)
        return updated

    def _unprocessed(self) -> List[FixtureModel]:
        return [f for f in self.fixtures if not f.is_processed]

    def pending_results(self) -> List[Dict[str, object]]:
        return [{"fixture_id": f.id, "result": f.result} for f in self._unprocessed() if f.result]

    def can_confirm(self) -> bool:
        if self.competition_status == CompetitionStatus.COMPLETE:
            return False
        unprocessed = self._unprocessed()
        return bool(unprocessed) and all(f.result for f in unprocessed)

    def confirm(self, client, session: ApiSession, competition_id: int,
                now: Optional[datetime] = None) -> ApiEnvelope:
        if not self.can_confirm():
            raise ValueError("Every unprocessed fixture needs a result before confirming.")
        if self.round is None:
            raise ValueError("No round to confirm results for.")

        results = self.pending_results()
        processed_at = (now or datetime.now(timezone.utc)).isoformat()
        touched = [self._fixtures[r["fixture_id"]] for r in results]
        for value in touched:
            value.apply(value.value.model_copy(update={"processed": processed_at}))

        try:
            envelope = client.submit_results(session, competition_id, self.round.id, results)
        except AuthenticationError:
            self._revert(touched)
            raise
        except LmsApiError as e:
            self._revert(touched)
            raise RollbackError(e) from e

        if envelope.is_empty_state:
            # Nothing was processed server side, e.g. NO_RESULTS_TO_PROCESS
            logger.info("Round %s submission came back %s; nothing processed",
                        self.round.round_number, envelope.return_code)
            self._revert(touched)
            return envelope

        for value in touched:
            value.confirm()
        logger.info("Submitted %d results for round %s (%s)", len(results), self.round.round_number,
                    envelope.return_code)
        return envelope

    def _revert(self, touched: List[OptimisticValue]) -> None:
        logger.warning("Result submission failed; reverting %d fixtures", len(touched))
        for value in touched:
            value.revert()

    def refresh(self, fixtures: Sequence[FixtureModel]) -> None:
        """Replaces local fixtures with server data after a reload."""
        for fixture in fixtures:
            if fixture.id in self._fixtures:
                self._fixtures[fixture.id].reset(fixture)
            else:
                self._fixtures[fixture.id] = OptimisticValue(fixture, name=f"fixture {fixture.id}")

    def is_completed(self, server_round_info: Optional[RoundInfo] = None,
                     now: Optional[datetime] = None) -> bool:
        return is_round_completed(self.competition_status, self.fixtures,
                                  is_round_locked(self.round, now), server_round_info)

    def check_divergence(self, server_round_info: Optional[RoundInfo],
                         now: Optional[datetime] = None) -> bool:
        return detect_processing_divergence(self.fixtures, is_round_locked(self.round, now), server_round_info)
