from __future__ import annotations

import json
import logging
from functools import lru_cache
from io import StringIO
from typing import Any, Dict, Optional

import pandas as pd
import uvicorn
from fastapi import BackgroundTasks, Body, Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from pageant_scoring.config import get_settings
from pageant_scoring.errors import InvalidCategoryError, StorageError, ValidationError
from pageant_scoring.models import ScoreSubmission
from pageant_scoring.service import ScoringService

logger = logging.getLogger(__name__)

app = FastAPI(title="Pageant Scoring")

ERROR_STATUS = {
    ValidationError: 400,
    InvalidCategoryError: 400,
    StorageError: 500,
}

# Service results name the error class in their "error" field
_STATUS_BY_NAME = {cls.__name__: code for cls, code in ERROR_STATUS.items()}


@lru_cache(maxsize=1)
def get_service() -> ScoringService:
    return ScoringService(get_settings())


def reply(result: Dict[str, Any]) -> JSONResponse:
    status_code = 200
    if result.get("status") == "error":
        status_code = _STATUS_BY_NAME.get(result.get("error", ""), 500)
    return JSONResponse(result, status_code=status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request, exc):
    messages = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}" for err in exc.errors()
    )
    return JSONResponse(
        {"status": "error", "message": f"Invalid request: {messages}", "error": ValidationError.__name__},
        status_code=ERROR_STATUS[ValidationError],
    )


@app.on_event("startup")
def _startup():
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    app.dependency_overrides.get(get_service, get_service)().store.setup_all_tables()
    logger.info("Score tables ready in %s", settings.database_path)


# -----------------------
# Routes: health
# -----------------------
@app.get("/healthz")
def healthz():
    return {"status": "OK"}


# -----------------------
# Routes: scoring
# -----------------------
def submit(service: ScoringService, payload: ScoreSubmission, background_tasks: BackgroundTasks) -> Dict[str, Any]:
    return service.submit_score(
        payload.category,
        payload.judge_name,
        payload.candidate_number,
        payload.total_score,
        payload.scores,
        dispatch=background_tasks.add_task,
    )


@app.post("/scores")
def submit_score(
    payload: ScoreSubmission,
    background_tasks: BackgroundTasks,
    service: ScoringService = Depends(get_service),
):
    return reply(submit(service, payload, background_tasks))


@app.get("/results/{category}")
def get_results(category: str, service: ScoringService = Depends(get_service)):
    return reply(service.get_results(category))


@app.get("/results/{category}/csv")
def download_results(category: str, service: ScoringService = Depends(get_service)):
    result = service.get_results(category)
    if result["status"] != "success":
        return reply(result)

    records = [
        {
            "Candidate": r["candidateId"],
            "TotalScore": r["totalScore"],
            "JudgeCount": r["judgeCount"],
            **r["perCriterionAverage"],
        }
        for r in result["results"]
    ]
    df = pd.DataFrame(records) if records else pd.DataFrame(columns=["Candidate", "TotalScore", "JudgeCount"])
    df.insert(0, "Rank", range(1, len(df) + 1))

    buf = StringIO()
    df.to_csv(buf, index=False)
    return Response(
        content=buf.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{category}_results.csv"'},
    )


@app.post("/recompute")
def recompute_overall(service: ScoringService = Depends(get_service)):
    return reply(service.recompute_overall())


@app.get("/overall/table")
def overall_table(service: ScoringService = Depends(get_service)):
    return reply(service.get_overall_table())


# -----------------------
# Routes: action dispatch (what the judge/admin pages call)
# -----------------------
@app.get("/exec")
def exec_get(
    background_tasks: BackgroundTasks,
    action: Optional[str] = None,
    category: str = "overall",
    data: Optional[str] = None,
    service: ScoringService = Depends(get_service),
):
    if action == "getResults":
        return reply(service.get_results(category))
    if action == "calculateOverallScores":
        return reply(service.recompute_overall())
    if action == "submitScore":
        # GET fallback for pages that cannot POST cross-origin
        try:
            payload = ScoreSubmission.model_validate(json.loads(data or ""))
        except ValueError as e:
            return JSONResponse({"status": "error", "message": f"GET Error: {e}"}, status_code=400)
        return reply(submit(service, payload, background_tasks))
    return JSONResponse({"status": "error", "message": "Invalid action"}, status_code=400)


@app.post("/exec")
def exec_post(
    background_tasks: BackgroundTasks,
    body: Dict[str, Any] = Body(...),
    service: ScoringService = Depends(get_service),
):
    try:
        payload = ScoreSubmission.model_validate(body)
    except ValueError as e:
        return JSONResponse({"status": "error", "message": f"POST Error: {e}"}, status_code=400)
    return reply(submit(service, payload, background_tasks))


def main() -> None:
    uvicorn.run("pageant_scoring.main:app", host="0.0.0.0")


if __name__ == "__main__":
    main()
