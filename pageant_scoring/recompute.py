from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, List, Mapping, Optional

from pageant_scoring import criteria
from pageant_scoring.engine import compute_overall, overall_rows
from pageant_scoring.models import OverallRow, utc_timestamp
from pageant_scoring.store import ScoreStore

logger = logging.getLogger(__name__)

Task = Callable[[], None]
Dispatch = Callable[[Task], None]


def run_inline(task: Task) -> None:
    task()


class RecomputeState(str, Enum):
    IDLE = "idle"
    RECOMPUTING = "recomputing"


class RecomputeTrigger:
    """
    Rebuilds the derived overall table from the interview, sports and gown tables.

    Every run is a full rebuild published atomically by the store. Runs are
    serialized so two rebuilds never interleave their publish step.
    """

    def __init__(
        self,
        store: ScoreStore,
        weights: Optional[Mapping[str, float]] = None,
        dispatch: Dispatch = run_inline,
    ):
        self.store = store
        self.weights = weights
        self.dispatch = dispatch
        self.state = RecomputeState.IDLE
        self._lock = threading.Lock()

    @staticmethod
    def triggers_on(category: str) -> bool:
        return category in criteria.OVERALL_SOURCES

    def run(self) -> List[OverallRow]:
        with self._lock:
            self.state = RecomputeState.RECOMPUTING
            try:
                source_rows = {c: self.store.read_all(c) for c in criteria.OVERALL_SOURCES}
                rows = overall_rows(compute_overall(source_rows, self.weights), utc_timestamp())
                self.store.replace_overall(rows)
            finally:
                self.state = RecomputeState.IDLE
        logger.info("Overall scores recomputed for %d candidates", len(rows))
        return rows

    def run_quietly(self) -> None:
        """Post-submission variant: failures are logged, never raised."""
        try:
            self.run()
        except Exception:
            logger.exception("Background overall recompute failed")

    def fire(self, dispatch: Optional[Dispatch] = None) -> None:
        (dispatch or self.dispatch)(self.run_quietly)
