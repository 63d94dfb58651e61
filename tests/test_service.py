import pytest

from pageant_scoring.errors import StorageError
from pageant_scoring.recompute import RecomputeState
from pageant_scoring.service import ScoringService
from pageant_scoring.store import ScoreStore

INTERVIEW = {"Wit and Content": 36, "Projection and Delivery": 27, "Stage Presence": 18, "Overall Impact": 9}
SPORTS = {"Suitability": 27, "Sports Identity": 18, "Poise and Bearing": 36, "Overall Impact": 9}
GOWN = {"Poise and Bearing": 32, "Design and Fitting": 20, "Stage Deportment": 20, "Overall Impact": 8}


def results_by_candidate(response):
    assert response["status"] == "success"
    return {r["candidateId"]: r for r in response["results"]}


class TestSubmitScore:
    def test_interview_submission_shows_up_in_results(self, service):
        response = service.submit_score(
            "interview", "Judge A", "3", 95, {"Wit": 40, "Projection": 30, "Presence": 15, "Impact": 10}
        )
        assert response == {"status": "success", "message": "Score submitted successfully"}

        result = results_by_candidate(service.get_results("interview"))["3"]
        assert result["totalScore"] == 95
        assert result["judgeCount"] == 1

    def test_two_gown_judges_are_averaged_per_criterion(self, service):
        service.submit_score("gown", "Judge A", "1", 80, {k: v for k, v in GOWN.items()})
        service.submit_score("gown", "Judge B", "1", 90, {k: v * 90 / 80 for k, v in GOWN.items()})

        result = results_by_candidate(service.get_results("gown"))["1"]
        avg = result["perCriterionAverage"]
        assert avg["Poise and Bearing"] == pytest.approx((32 + 36) / 2)
        assert avg["Design and Fitting"] == pytest.approx((20 + 22.5) / 2)
        weighted = 34 * 0.40 + 21.25 * 0.25 + 21.25 * 0.25 + 8.5 * 0.10
        assert result["totalScore"] == pytest.approx(weighted, abs=1e-9)
        assert result["totalScore"] != pytest.approx(85.0)
        assert result["judgeCount"] == 2

    @pytest.mark.parametrize(
        "args, message",
        [
            (("talent", "", "1", 80, {}), "Judge name is required."),
            (("talent", "Judge A", " ", 80, {}), "Candidate number is required."),
            (("talent", "Judge A", "1", 180, {}), "Score out of range for total: 180"),
            (("talent", "Judge A", "1", 80, {"Mastery": -1}), "Score out of range for Mastery: -1"),
            (("talent", "Judge A", "1", "lots", {}), "Invalid score for total: 'lots'"),
            (("talent", "Judge A", "1", 10**400, {}), "Invalid score for total: " + repr(10**400)),
            (("talent", "Judge A", "1", 80, {"Mastery": 10**400}), "Invalid score for Mastery: " + repr(10**400)),
            (("talent", 7, "1", 80, {}), "Judge name is required."),
            (("talent", "Judge A", "1", 80, [10, 20]), "Scores must be a mapping of criterion name to score."),
        ],
    )
    def test_validation_errors_write_nothing(self, service, store, args, message):
        response = service.submit_score(*args)
        assert response["status"] == "error"
        assert response["error"] == "ValidationError"
        assert response["message"] == message
        assert store.read_all("talent") == []

    def test_unknown_category_is_an_error_result(self, service):
        response = service.submit_score("swimsuit", "Judge A", "1", 80, {})
        assert response["status"] == "error"
        assert response["error"] == "InvalidCategoryError"

    def test_unknown_criteria_are_ignored(self, service, store):
        service.submit_score("talent", "Judge A", "1", 80, {"Mastery": 25, "Charm": 10})
        (row,) = store.read_all("talent")
        assert row[4:] == [None, 25.0, None, None]

    def test_storage_failure_is_reported(self, settings, tmp_path):
        broken = ScoringService(settings, store=ScoreStore(str(tmp_path)))
        response = broken.submit_score("talent", "Judge A", "1", 80, {})
        assert response["status"] == "error"
        assert response["error"] == "StorageError"


class TestGetResults:
    def test_empty_category_returns_empty_list(self, service):
        assert service.get_results("photogenic") == {"status": "success", "results": []}
        assert service.get_results("overall") == {"status": "success", "results": []}

    @pytest.mark.parametrize("category", [None, "", "Overall", 5])
    def test_invalid_category(self, service, category):
        response = service.get_results(category)
        assert response["status"] == "error"
        assert response["error"] == "InvalidCategoryError"

    def test_storage_failure_is_not_reported_as_empty(self, settings, tmp_path):
        broken = ScoringService(settings, store=ScoreStore(str(tmp_path)))
        response = broken.get_results("talent")
        assert response["status"] == "error"
        assert response["error"] == "StorageError"

    def test_overall_is_computed_from_source_categories(self, service):
        service.submit_score("sports", "Judge A", "4", 90, SPORTS)
        service.submit_score("gown", "Judge A", "4", 80, GOWN)
        service.submit_score("interview", "Judge A", "5", 90, INTERVIEW)

        results = results_by_candidate(service.get_results("overall"))
        four = results["4"]
        assert four["perCriterionAverage"]["Intelligence (Q&A)"] == 0
        assert four["perCriterionAverage"]["Overall Impact"] == pytest.approx(8.5)
        assert four["totalScore"] == pytest.approx(90 * 0.15 + 80 * 0.15 + 8.5 * 0.25)
        assert results["5"]["totalScore"] == pytest.approx(90 * 0.45 + 9 * 0.25)

    def test_legacy_overall_submissions_do_not_feed_the_ranking(self, service, store):
        response = service.submit_score("overall", "Judge A", "2", 70, {"Intelligence (Q&A)": 40})
        assert response["status"] == "success"
        assert len(store.read_all("overall")) == 1
        assert service.get_results("overall")["results"] == []
        assert store.read_overall() == []


class TestRecompute:
    def test_source_submission_rebuilds_overall_table(self, service, store):
        service.submit_score("interview", "Judge A", "1", 90, INTERVIEW)
        rows = store.read_overall()
        assert [r[1] for r in rows] == ["1"]
        assert service.recompute.state == RecomputeState.IDLE

    def test_other_categories_do_not_trigger(self, service, store):
        service.submit_score("talent", "Judge A", "1", 90, {})
        service.submit_score("photogenic", "Judge A", "1", 90, {})
        assert store.read_overall() == []

    def test_auto_recompute_can_be_disabled(self, settings, store):
        settings.auto_recompute = False
        quiet = ScoringService(settings, store=store)
        quiet.submit_score("gown", "Judge A", "1", 80, GOWN)
        assert store.read_overall() == []

    def test_recompute_is_dispatched_not_run_inline(self, settings, store):
        queued = []
        deferred = ScoringService(settings, store=store, dispatch=queued.append)
        deferred.submit_score("sports", "Judge A", "1", 90, SPORTS)

        assert len(queued) == 1
        assert store.read_overall() == []
        queued[0]()
        assert len(store.read_overall()) == 1

    def test_recompute_failure_does_not_fail_submission(self, service, store, monkeypatch, caplog):
        def boom():
            raise StorageError("sheet unavailable")

        monkeypatch.setattr(service.recompute, "run", boom)
        response = service.submit_score("gown", "Judge A", "1", 80, GOWN)

        assert response["status"] == "success"
        assert len(store.read_all("gown")) == 1
        assert "Background overall recompute failed" in caplog.text

    def test_explicit_recompute_is_idempotent(self, service, store):
        service.submit_score("interview", "Judge A", "1", 90, INTERVIEW)
        service.submit_score("sports", "Judge B", "2", 85, SPORTS)
        service.submit_score("gown", "Judge C", "1", 75, GOWN)

        first = service.recompute_overall()
        before = {r[1]: r[2] for r in store.read_overall()}
        second = service.recompute_overall()
        after = {r[1]: r[2] for r in store.read_overall()}

        assert first == second == {"status": "success", "message": "Overall scores calculated successfully", "count": 2}
        assert before == after
        assert len(after) == 2

    def test_overall_table_matches_query_time_ranking(self, service):
        service.submit_score("interview", "Judge A", "1", 60, INTERVIEW)
        service.submit_score("interview", "Judge A", "2", 95, INTERVIEW)
        service.recompute_overall()

        stored = service.get_overall_table()["results"]
        live = service.get_results("overall")["results"]
        assert [r["candidateId"] for r in stored] == [r["candidateId"] for r in live] == ["2", "1"]
        assert [r["totalScore"] for r in stored] == pytest.approx([r["totalScore"] for r in live])

    def test_recompute_storage_error(self, settings, tmp_path):
        broken = ScoringService(settings, store=ScoreStore(str(tmp_path)))
        response = broken.recompute_overall()
        assert response["status"] == "error"
        assert response["error"] == "StorageError"
