import pytest

from pageant_scoring.config import Settings
from pageant_scoring.service import ScoringService
from pageant_scoring.store import ScoreStore


@pytest.fixture
def settings(tmp_path):
    return Settings(database_path=str(tmp_path / "scores.sqlite"))


@pytest.fixture
def store(settings):
    return ScoreStore(settings.database_path)


@pytest.fixture
def service(settings, store):
    return ScoringService(settings, store=store)


def raw_row(judge, candidate, total, *scores, timestamp="2024-05-01T10:00:00"):
    """Raw table row: [Timestamp, Judge Name, Candidate Number, Total Score, <criteria...>]."""
    return [timestamp, judge, candidate, total, *scores]
