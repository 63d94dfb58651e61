from __future__ import annotations

from typing import Dict, List, Tuple

from pageant_scoring.models import BASE_COLUMNS, Criterion

OVERALL = "overall"

# Categories whose aggregates feed the derived "overall" ranking, in merge order
OVERALL_SOURCES: Tuple[str, ...] = ("interview", "sports", "gown")

_CRITERIA: Dict[str, List[Tuple[str, float]]] = {
    "talent": [
        ("Stage Present", 30),
        ("Mastery", 30),
        ("Execution of Talent", 30),
        ("Audience Impact", 10),
    ],
    "sports": [
        ("Suitability", 30),
        ("Sports Identity", 20),
        ("Poise and Bearing", 40),
        ("Overall Impact", 10),
    ],
    "gown": [
        ("Poise and Bearing", 40),
        ("Design and Fitting", 25),
        ("Stage Deportment", 25),
        ("Overall Impact", 10),
    ],
    "photogenic": [
        ("Natural Smile and Look", 30),
        ("Poise and Confidence", 20),
        ("Personality", 15),
        ("Beauty", 35),
    ],
    "interview": [
        ("Wit and Content", 40),
        ("Projection and Delivery", 30),
        ("Stage Presence", 20),
        ("Overall Impact", 10),
    ],
    # Display-only breakdown of the derived ranking
    OVERALL: [
        ("Intelligence (Q&A)", 45),
        ("Sports Wear", 15),
        ("Gown", 15),
        ("Overall Impact", 25),
    ],
}

_TABLE_NAMES: Dict[str, str] = {
    "talent": "Talent Scores",
    "sports": "Sports Wear Scores",
    "gown": "Gown Scores",
    "photogenic": "Photogenic Scores",
    "interview": "Interview Scores",
    OVERALL: "Overall Scores",
}

# Raw rows sent straight to "overall" by older judge forms
LEGACY_OVERALL_TABLE = "Overall Submissions"

CATEGORIES: Tuple[str, ...] = tuple(_CRITERIA)


def is_known_category(category: object) -> bool:
    return isinstance(category, str) and category in _CRITERIA


def get_criteria(category: str) -> List[Criterion]:
    """Ordered criteria for a category. Unknown categories get an empty list."""
    if not is_known_category(category):
        return []
    return [Criterion(name=name, weight_percent=pct) for name, pct in _CRITERIA[category]]


def table_name(category: str) -> str:
    if not is_known_category(category):
        raise KeyError(category)
    return _TABLE_NAMES[category]


def raw_table_name(category: str) -> str:
    """Table holding judge submissions for a category."""
    if category == OVERALL:
        return LEGACY_OVERALL_TABLE
    return table_name(category)


def raw_columns(category: str) -> List[str]:
    return BASE_COLUMNS + [c.name for c in get_criteria(category)]
