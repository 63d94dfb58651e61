from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from pageant_scoring import criteria
from pageant_scoring.config import Settings
from pageant_scoring.engine import aggregate_category, compute_overall, overall_results, stored_overall_results
from pageant_scoring.errors import InvalidCategoryError, ScoringError, ValidationError
from pageant_scoring.models import CandidateResult, ScoreRow, normalize_candidate, to_number, utc_timestamp
from pageant_scoring.recompute import Dispatch, RecomputeTrigger
from pageant_scoring.store import ScoreStore

logger = logging.getLogger(__name__)


def success(message: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    out: Dict[str, Any] = {"status": "success"}
    if message is not None:
        out["message"] = message
    out.update(extra)
    return out


def failure(exc: ScoringError) -> Dict[str, Any]:
    return {"status": "error", "message": str(exc), "error": type(exc).__name__}


def serialize(results: List[CandidateResult]) -> List[Dict[str, Any]]:
    return [r.model_dump(by_alias=True) for r in results]


class ScoringService:
    """
    The three operations the judge/admin front end calls:
      submit_score, get_results, recompute_overall

    Each returns {"status": "success", ...} or {"status": "error", "message": ...}.
    """

    def __init__(self, settings: Settings, store: Optional[ScoreStore] = None, dispatch: Optional[Dispatch] = None):
        self.settings = settings
        self.store = store or ScoreStore(settings.database_path)
        self.recompute = RecomputeTrigger(self.store, settings.overall_weights)
        if dispatch is not None:
            self.recompute.dispatch = dispatch

    # -----------------------
    # Submission
    # -----------------------
    def _check_score(self, label: str, value: Any) -> float:
        num = to_number(value)
        if num is None:
            raise ValidationError(f"Invalid score for {label}: {value!r}")
        if num < 0 or num > self.settings.max_score:
            raise ValidationError(f"Score out of range for {label}: {value!r}")
        return num

    def build_row(
        self,
        category: Any,
        judge_name: Any,
        candidate_number: Any,
        total_score: Any,
        scores: Optional[Mapping[str, Any]],
    ) -> ScoreRow:
        """Validate one submission. Raises before anything is written."""
        if not criteria.is_known_category(category):
            raise InvalidCategoryError(category)

        judge = judge_name.strip() if isinstance(judge_name, str) else ""
        if not judge:
            raise ValidationError("Judge name is required.")

        candidate = normalize_candidate(candidate_number)
        if not candidate:
            raise ValidationError("Candidate number is required.")

        total = self._check_score("total", total_score)

        if scores is None:
            scores = {}
        if not isinstance(scores, Mapping):
            raise ValidationError("Scores must be a mapping of criterion name to score.")

        category_criteria = criteria.get_criteria(category)
        known = {c.name for c in category_criteria}
        unknown = [k for k in scores if k not in known]
        if unknown:
            logger.warning("Ignoring criteria not in %r: %s", category, ", ".join(map(str, unknown)))

        criterion_scores: Dict[str, Optional[float]] = {}
        for c in category_criteria:
            raw = scores.get(c.name)
            if raw is None or (isinstance(raw, str) and not raw.strip()):
                criterion_scores[c.name] = None
            else:
                criterion_scores[c.name] = self._check_score(c.name, raw)

        return ScoreRow(
            timestamp=utc_timestamp(),
            judge_name=judge,
            candidate_number=candidate,
            declared_total=total,
            criterion_scores=criterion_scores,
        )

    def submit_score(
        self,
        category: Any,
        judge_name: Any,
        candidate_number: Any,
        total_score: Any,
        scores: Optional[Mapping[str, Any]] = None,
        dispatch: Optional[Dispatch] = None,
    ) -> Dict[str, Any]:
        try:
            row = self.build_row(category, judge_name, candidate_number, total_score, scores)
            self.store.append(category, row)
        except ScoringError as e:
            logger.warning("Submission rejected (%s): %s", type(e).__name__, e)
            return failure(e)

        logger.info("Stored %s score from %r for candidate %s", category, row.judge_name, row.candidate_number)

        if self.settings.auto_recompute and self.recompute.triggers_on(category):
            self.recompute.fire(dispatch)

        return success("Score submitted successfully")

    # -----------------------
    # Queries
    # -----------------------
    def rank(self, category: Any) -> List[CandidateResult]:
        if not criteria.is_known_category(category):
            raise InvalidCategoryError(category)

        if category == criteria.OVERALL:
            source_rows = {c: self.store.read_all(c) for c in criteria.OVERALL_SOURCES}
            return overall_results(compute_overall(source_rows, self.settings.overall_weights))

        return aggregate_category(self.store.read_all(category), criteria.get_criteria(category), category)

    def get_results(self, category: Any) -> Dict[str, Any]:
        try:
            return success(results=serialize(self.rank(category)))
        except ScoringError as e:
            logger.warning("Results request failed (%s): %s", type(e).__name__, e)
            return failure(e)

    def get_overall_table(self) -> Dict[str, Any]:
        """What the last recompute published, ranked by final score."""
        try:
            return success(results=serialize(stored_overall_results(self.store.read_overall())))
        except ScoringError as e:
            logger.warning("Overall table read failed: %s", e)
            return failure(e)

    # -----------------------
    # Recompute
    # -----------------------
    def recompute_overall(self) -> Dict[str, Any]:
        try:
            rows = self.recompute.run()
        except ScoringError as e:
            logger.error("Overall recompute failed: %s", e)
            return failure(e)
        return success("Overall scores calculated successfully", count=len(rows))
