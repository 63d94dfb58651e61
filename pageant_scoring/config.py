from __future__ import annotations

import os
from functools import lru_cache
from typing import Dict

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Default DB file next to the package (same convention as the judging app it grew from)
DEFAULT_DB_PATH = os.path.join(os.path.dirname(__file__), "scores.sqlite")

# Cross-category weights for the derived "overall" ranking.
# Policy constants: not taken from the registry's display-only "overall" criteria.
DEFAULT_OVERALL_WEIGHTS: Dict[str, float] = {
    "interview": 0.45,
    "sports": 0.15,
    "gown": 0.15,
    "impact": 0.25,
}


class Settings(BaseSettings):
    database_path: str = Field(default=DEFAULT_DB_PATH, alias="SCORING_DB_PATH")
    auto_recompute: bool = Field(default=True, alias="SCORING_AUTO_RECOMPUTE")
    max_score: float = Field(default=100.0, gt=0, alias="SCORING_MAX_SCORE")
    overall_weights: Dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_OVERALL_WEIGHTS),
        alias="SCORING_OVERALL_WEIGHTS",
    )
    log_level: str = Field(default="INFO", alias="SCORING_LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
