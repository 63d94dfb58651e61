from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from pageant_scoring.errors import MalformedRowError

# Leading columns shared by every raw category table
BASE_COLUMNS = ["Timestamp", "Judge Name", "Candidate Number", "Total Score"]

OVERALL_COLUMNS = [
    "Timestamp",
    "Candidate Number",
    "Final Score",
    "Interview Avg",
    "Sports Avg",
    "Gown Avg",
    "Avg Impact",
]


def to_number(value: Any) -> Optional[float]:
    """Best-effort numeric coercion. Returns None for blanks, NaN and non-numbers."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            num = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            num = float(text)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(num) or math.isinf(num):
        return None
    return num


def normalize_candidate(value: Any) -> str:
    """
    Candidate ids are compared as strings.
    3, 3.0 and " 3 " all normalize to "3".
    """
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    num = to_number(text)
    if num is not None and num.is_integer() and "." in text:
        return str(int(num))
    return text


class Criterion(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    weight_percent: float = Field(ge=0, le=100)


class ScoreRow(BaseModel):
    timestamp: str
    judge_name: str
    candidate_number: str
    declared_total: float
    criterion_scores: Dict[str, Optional[float]] = Field(default_factory=dict)

    def to_values(self, criteria: Sequence[Criterion]) -> List[Any]:
        values: List[Any] = [self.timestamp, self.judge_name, self.candidate_number, self.declared_total]
        values.extend(self.criterion_scores.get(c.name) for c in criteria)
        return values

    @classmethod
    def from_values(cls, values: Sequence[Any], criteria: Sequence[Criterion]) -> "ScoreRow":
        if not isinstance(values, (list, tuple)):
            raise MalformedRowError(f"Row is not row-shaped: {values!r}")
        if len(values) < len(BASE_COLUMNS):
            raise MalformedRowError(f"Row has {len(values)} fields, expected at least {len(BASE_COLUMNS)}")

        candidate = normalize_candidate(values[2])
        if not candidate:
            raise MalformedRowError("Row is missing a candidate number")

        total = to_number(values[3])
        if total is None:
            raise MalformedRowError(f"Row has an invalid total score: {values[3]!r}")

        scores: Dict[str, Optional[float]] = {}
        for idx, criterion in enumerate(criteria):
            pos = len(BASE_COLUMNS) + idx
            scores[criterion.name] = to_number(values[pos]) if pos < len(values) else None

        return cls(
            timestamp=str(values[0] or ""),
            judge_name=str(values[1] or ""),
            candidate_number=candidate,
            declared_total=total,
            criterion_scores=scores,
        )


class OverallRow(BaseModel):
    timestamp: str
    candidate_number: str
    final_score: float
    interview_avg: float
    sports_avg: float
    gown_avg: float
    avg_impact: float

    def to_values(self) -> List[Any]:
        return [
            self.timestamp,
            self.candidate_number,
            self.final_score,
            self.interview_avg,
            self.sports_avg,
            self.gown_avg,
            self.avg_impact,
        ]

    @classmethod
    def from_values(cls, values: Sequence[Any]) -> "OverallRow":
        if not isinstance(values, (list, tuple)) or len(values) != len(OVERALL_COLUMNS):
            raise MalformedRowError(f"Overall row has unexpected shape: {values!r}")
        candidate = normalize_candidate(values[1])
        numbers = [to_number(v) for v in values[2:]]
        if not candidate or any(n is None for n in numbers):
            raise MalformedRowError(f"Overall row has missing fields: {values!r}")
        final, interview, sports, gown, impact = numbers
        return cls(
            timestamp=str(values[0] or ""),
            candidate_number=candidate,
            final_score=final,
            interview_avg=interview,
            sports_avg=sports,
            gown_avg=gown,
            avg_impact=impact,
        )


class CandidateResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    candidate_id: str = Field(alias="candidateId")
    total_score: float = Field(alias="totalScore")
    per_criterion_average: Dict[str, float] = Field(default_factory=dict, alias="perCriterionAverage")
    judge_count: int = Field(alias="judgeCount")


class ScoreSubmission(BaseModel):
    """Request body for a score submission. Field checks happen in the service."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    category: Any = None
    judge_name: Any = Field(default=None, alias="judgeName")
    candidate_number: Any = Field(default=None, alias="candidateNumber")
    total_score: Any = Field(default=None, alias="totalScore")
    scores: Any = Field(default_factory=dict)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat(timespec="seconds")
