from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from pageant_scoring import criteria as registry
from pageant_scoring.config import DEFAULT_OVERALL_WEIGHTS
from pageant_scoring.errors import MalformedRowError
from pageant_scoring.models import CandidateResult, Criterion, OverallRow, ScoreRow

logger = logging.getLogger(__name__)

# Labels used for the overall breakdown, in the same order as the registry's overall criteria
OVERALL_BREAKDOWN = {
    "InterviewAvg": "Intelligence (Q&A)",
    "SportsAvg": "Sports Wear",
    "GownAvg": "Gown",
    "AvgImpact": "Overall Impact",
}


# -----------------------
# Row parsing
# -----------------------
def parse_rows(rows: Sequence[Any], criteria: Sequence[Criterion], label: str = "") -> List[ScoreRow]:
    """Turn raw table rows into ScoreRows, logging and skipping the ones that fail structural checks."""
    parsed: List[ScoreRow] = []
    for idx, values in enumerate(rows):
        try:
            parsed.append(ScoreRow.from_values(values, criteria))
        except MalformedRowError as e:
            logger.warning("Skipping malformed %s row at index %d: %s", label or "score", idx, e)
    return parsed


def _scores_frame(parsed: Sequence[ScoreRow], names: Sequence[str]) -> pd.DataFrame:
    """
    One row per submission:
      Candidate, DeclaredTotal, Scored (any criterion present), <criterion columns...>
    Missing criterion scores are filled with 0.
    """
    scores = pd.DataFrame(
        [[r.criterion_scores.get(n) for n in names] for r in parsed],
        columns=list(names),
        dtype=float,
    )
    frame = scores.fillna(0.0)
    frame.insert(0, "Scored", scores.notna().any(axis=1).to_numpy())
    frame.insert(0, "DeclaredTotal", [r.declared_total for r in parsed])
    frame.insert(0, "Candidate", [r.candidate_number for r in parsed])
    return frame


def _rank(results: pd.DataFrame, score_col: str) -> pd.DataFrame:
    # Highest score first; ties keep first-encountered order
    results = results.copy()
    results["Order"] = range(len(results))
    return results.sort_values(
        by=[score_col, "Order"],
        ascending=[False, True],
        kind="mergesort",
    ).reset_index(drop=True)


# -----------------------
# Direct categories
# -----------------------
def aggregate_category(rows: Sequence[Any], criteria: Sequence[Criterion], label: str = "") -> List[CandidateResult]:
    """
    rows: raw table rows [Timestamp, Judge, Candidate, Total, <criteria...>]

    Per candidate: every criterion is averaged over the candidate's submissions and
    the total is sum(average * weight_percent / 100). Candidates whose submissions
    carry no criterion scores at all fall back to the mean declared total.
    """
    parsed = parse_rows(rows, criteria, label)
    if not parsed:
        return []

    names = [c.name for c in criteria]
    frame = _scores_frame(parsed, names)
    grouped = frame.groupby("Candidate", sort=False)

    averages = grouped[names].mean()
    weights = np.array([c.weight_percent for c in criteria], dtype=float)
    weighted = (averages.to_numpy() * weights / 100.0).sum(axis=1)

    scored = grouped["Scored"].any()
    declared = grouped["DeclaredTotal"].mean()

    results = pd.DataFrame(
        {
            "Candidate": [str(c) for c in averages.index],
            "TotalScore": np.where(scored.to_numpy(), weighted, declared.to_numpy()),
            "JudgeCount": grouped.size().to_numpy(),
        }
    )
    results = pd.concat([results, averages.reset_index(drop=True)], axis=1)
    results = _rank(results, "TotalScore")

    return [
        CandidateResult(
            candidate_id=str(r["Candidate"]),
            total_score=float(r["TotalScore"]),
            per_criterion_average={n: float(r[n]) for n in names},
            judge_count=int(r["JudgeCount"]),
        )
        for _, r in results.iterrows()
    ]


# -----------------------
# Derived overall
# -----------------------
def _source_summary(rows: Sequence[Any], category: str) -> pd.DataFrame:
    """Per candidate: mean declared total, mean last-criterion ("impact") score, submission count."""
    source_criteria = registry.get_criteria(category)
    parsed = parse_rows(rows, source_criteria, category)
    if not parsed:
        return pd.DataFrame(columns=["Total", "Impact", "Count"], dtype=float)

    impact = source_criteria[-1].name if source_criteria else None
    frame = pd.DataFrame(
        {
            "Candidate": [r.candidate_number for r in parsed],
            "Total": [r.declared_total for r in parsed],
            "Impact": [(r.criterion_scores.get(impact) if impact else None) for r in parsed],
        }
    )
    frame["Impact"] = pd.to_numeric(frame["Impact"], errors="coerce").fillna(0.0)
    grouped = frame.groupby("Candidate", sort=False)
    summary = grouped[["Total", "Impact"]].mean()
    summary["Count"] = grouped.size()
    return summary


def compute_overall(
    source_rows: Mapping[str, Sequence[Any]],
    weights: Optional[Mapping[str, float]] = None,
) -> pd.DataFrame:
    """
    source_rows: raw rows keyed by source category (interview, sports, gown).
    A missing key counts as an empty table.

    Returns ranked DataFrame columns:
      Candidate, FinalScore, InterviewAvg, SportsAvg, GownAvg, AvgImpact, Submissions

    A candidate absent from a source category gets 0 for it; the impact average is
    taken over the categories the candidate actually appears in.
    """
    weights = {**DEFAULT_OVERALL_WEIGHTS, **(weights or {})}
    summaries: Dict[str, pd.DataFrame] = {
        category: _source_summary(source_rows.get(category) or [], category)
        for category in registry.OVERALL_SOURCES
    }

    candidates = list(dict.fromkeys(c for s in summaries.values() for c in s.index))
    if not candidates:
        return pd.DataFrame(
            columns=["Candidate", "FinalScore", "InterviewAvg", "SportsAvg", "GownAvg", "AvgImpact", "Submissions"]
        )

    totals = pd.DataFrame(
        {c: summaries[c]["Total"].reindex(candidates) for c in registry.OVERALL_SOURCES}
    )
    impacts = pd.DataFrame(
        {c: summaries[c]["Impact"].reindex(candidates) for c in registry.OVERALL_SOURCES}
    )
    counts = pd.DataFrame(
        {c: summaries[c]["Count"].reindex(candidates) for c in registry.OVERALL_SOURCES}
    ).fillna(0)

    # mean() skips NaN, so only contributing categories are averaged
    avg_impact = impacts.mean(axis=1)
    totals = totals.fillna(0.0)

    final = (
        totals["interview"] * weights["interview"]
        + totals["sports"] * weights["sports"]
        + totals["gown"] * weights["gown"]
        + avg_impact * weights["impact"]
    )

    results = pd.DataFrame(
        {
            "Candidate": [str(c) for c in candidates],
            "FinalScore": final.to_numpy(dtype=float),
            "InterviewAvg": totals["interview"].to_numpy(dtype=float),
            "SportsAvg": totals["sports"].to_numpy(dtype=float),
            "GownAvg": totals["gown"].to_numpy(dtype=float),
            "AvgImpact": avg_impact.to_numpy(dtype=float),
            "Submissions": counts.sum(axis=1).to_numpy(dtype=int),
        }
    )
    return _rank(results, "FinalScore").drop(columns=["Order"])


def overall_rows(overall: pd.DataFrame, timestamp: str) -> List[OverallRow]:
    return [
        OverallRow(
            timestamp=timestamp,
            candidate_number=str(r["Candidate"]),
            final_score=float(r["FinalScore"]),
            interview_avg=float(r["InterviewAvg"]),
            sports_avg=float(r["SportsAvg"]),
            gown_avg=float(r["GownAvg"]),
            avg_impact=float(r["AvgImpact"]),
        )
        for _, r in overall.iterrows()
    ]


def overall_results(overall: pd.DataFrame) -> List[CandidateResult]:
    return [
        CandidateResult(
            candidate_id=str(r["Candidate"]),
            total_score=float(r["FinalScore"]),
            per_criterion_average={label: float(r[col]) for col, label in OVERALL_BREAKDOWN.items()},
            judge_count=int(r["Submissions"]),
        )
        for _, r in overall.iterrows()
    ]


def stored_overall_results(rows: Sequence[Any]) -> List[CandidateResult]:
    """Ranked results from rows already persisted in the derived table."""
    results: List[CandidateResult] = []
    for idx, values in enumerate(rows):
        try:
            row = OverallRow.from_values(values)
        except MalformedRowError as e:
            logger.warning("Skipping malformed overall row at index %d: %s", idx, e)
            continue
        results.append(
            CandidateResult(
                candidate_id=row.candidate_number,
                total_score=row.final_score,
                per_criterion_average=dict(
                    zip(
                        OVERALL_BREAKDOWN.values(),
                        [row.interview_avg, row.sports_avg, row.gown_avg, row.avg_impact],
                    )
                ),
                # computed row, not a judge submission
                judge_count=1,
            )
        )
    return sorted(results, key=lambda r: r.total_score, reverse=True)
