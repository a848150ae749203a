"""Trigger service for the US financial statement collector.

  POST /usa-financial-statements/collect  — start a collection job (202)
  GET  /usa-financial-statements/health   — liveness probe

The job runs as a background task; its progress is recorded in the
MongoDB ``jobs`` collection under the returned job id.

Run:  python -m edgar_statements.app
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, FastAPI, status

from edgar_statements.jobs import PROCESSING, new_job_id, run_collection_job

log = logging.getLogger(__name__)

app = FastAPI(title="US Financial Statements")
router = APIRouter(prefix="/usa-financial-statements")


def _run_job(job_id: str) -> None:
    try:
        run_collection_job(job_id)
    except Exception:
        # run_collection_job has already recorded the failure on the job
        log.exception("Collection job %s aborted", job_id)


@router.post("/collect", status_code=status.HTTP_202_ACCEPTED)
def collect(bg: BackgroundTasks) -> dict:
    """Start a collection job in the background and return its id."""
    job_id = new_job_id()
    bg.add_task(_run_job, job_id)
    log.info("Collection job %s accepted", job_id)
    return {"job_id": job_id, "status": PROCESSING}


@router.get("/health")
def health() -> dict:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    from edgar_statements.config import get_config

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=get_config().port, log_level="info")
