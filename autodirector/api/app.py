"""HTTP API (FastAPI).

Endpoints:
    GET  /health               liveness
    GET  /status               capability readiness
    POST /plan                 text -> plan (no side effects)
    POST /run                  start a run, returns its id
    GET  /run/{id}             poll a run record
    POST /run/sync             run inline, returns the record
    POST /quick                screenshot a URL and optionally mail it
    POST /sweep/<type>         sweep one job type
    POST /sweep                sweep every job type
    GET  /runs/<file>          artifacts

Synchronous failures answer {"ok": false, "error": "..."}.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from autodirector import __version__
from autodirector.api.models import PlanRequest, QuickRequest, RunRequest
from autodirector.core.exceptions import AutoDirectorError, ValidationError
from autodirector.core.logging import get_logger
from autodirector.engine.context import RunRecord, RunStatus
from autodirector.engine.runtime import Runtime, build_runtime
from autodirector.engine.steps import Plan, Step, StepKind, steps_from_payload
from autodirector.store.jobs import JobType

logger = get_logger(__name__)

SERVICE_NAME = "mediad-autodirector"

# URL segment -> job type
SWEEP_ROUTES: dict[str, JobType] = {
    "monitors": JobType.MONITOR,
    "briefings": JobType.BRIEFING,
    "competitors": JobType.COMPETITOR_WATCH,
    "job-alerts": JobType.JOB_ALERT,
}


def _error(message: str, status_code: int = 500) -> JSONResponse:
    return JSONResponse({"ok": False, "error": message}, status_code=status_code)


def failure_message(record: RunRecord) -> str:
    """The fault line of a failed run, without its timestamp."""
    for line in reversed(record.log):
        text = line.split("] ", 1)[-1]
        if text.startswith(("Step fault:", "Unexpected error:")):
            return text.split(": ", 1)[1]
    return "Run failed"


def create_app(runtime: Optional[Runtime] = None) -> FastAPI:
    """Build the FastAPI app around a Runtime (default: from config)."""
    rt = runtime or build_runtime()
    config = rt.config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # Let accepted background runs finish before the loop goes away
        await rt.executor.tasks.shutdown()
        logger.info("Background runs drained")

    app = FastAPI(title="Mediad AutoDirector", version=__version__, lifespan=lifespan)
    app.state.runtime = rt

    config.runs_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/runs", StaticFiles(directory=str(config.runs_dir)), name="runs")

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return _error(str(exc), status_code=400)

    @app.exception_handler(RequestValidationError)
    async def _request_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = ", ".join(".".join(str(p) for p in err["loc"][1:]) for err in exc.errors())
        return _error(f"Invalid request body: {fields or 'malformed JSON'}", status_code=400)

    @app.exception_handler(AutoDirectorError)
    async def _app_error(request: Request, exc: AutoDirectorError) -> JSONResponse:
        logger.error(f"Request failed: {exc}", extra={"context": {"path": request.url.path}})
        return _error(str(exc))

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            f"Unhandled error: {exc}",
            extra={"context": {"path": request.url.path}},
            exc_info=True,
        )
        return _error(str(exc) or type(exc).__name__)

    def _absolute(request: Request, href: str) -> str:
        base = config.public_base_url or str(request.base_url)
        return base.rstrip("/") + href

    @app.get("/health")
    async def health() -> dict:
        return {
            "ok": True,
            "service": SERVICE_NAME,
            "version": __version__,
            "time": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/status")
    async def status() -> dict:
        report = rt.registry.readiness_report()
        return {
            "ok": report.ready,
            "services": [svc.to_dict() for svc in report.services],
            "summary": report.summary,
        }

    @app.post("/plan")
    async def plan(body: PlanRequest) -> dict:
        result = await rt.planner.plan(body.prompt)
        response = {
            "ok": not result.is_empty,
            "plan": result.to_dict(),
            "steps": [step.to_dict() for step in result.steps],
        }
        if result.is_empty:
            response["message"] = "Could not understand the request; no steps planned."
        return response

    @app.post("/run")
    async def run(body: RunRequest) -> dict:
        steps = steps_from_payload(body.steps)
        run_id = rt.executor.execute(Plan(steps=steps, source="request"))
        return {"id": run_id, "status": RunStatus.RUNNING.value}

    @app.get("/run/{run_id}")
    async def get_run(run_id: str):
        record = rt.runs.get(run_id)
        if record is None:
            return _error(f"Unknown run {run_id}", status_code=404)
        return record.to_dict()

    @app.post("/run/sync")
    async def run_sync(body: RunRequest) -> dict:
        steps = steps_from_payload(body.steps)
        record = await rt.executor.run(Plan(steps=steps, source="request"))
        return {"ok": record.status == RunStatus.DONE, "results": record.to_dict()}

    @app.post("/quick")
    async def quick(body: QuickRequest, request: Request):
        if not body.url.strip():
            return _error("Missing or invalid url", status_code=400)

        to = body.email or config.default_to
        steps = [Step(StepKind.CAPTURE_SCREENSHOT.value, {"url": body.url.strip()})]
        if to:
            steps.append(Step(StepKind.NOTIFY_WITH_ARTIFACT.value, {"to": to}))

        record = await rt.executor.run(Plan(steps=steps, source="quick"))
        if record.status != RunStatus.DONE or not record.artifacts:
            return _error(failure_message(record))

        artifact = record.artifacts[0]
        # link is the artifact path, url its public address
        return {
            "ok": True,
            "link": artifact.href,
            "url": _absolute(request, artifact.href),
            "email": to,
        }

    @app.post("/sweep/{job_route}")
    async def sweep_one(job_route: str):
        job_type = SWEEP_ROUTES.get(job_route)
        if job_type is None:
            return _error(
                f"Unknown job type '{job_route}' (one of: {', '.join(SWEEP_ROUTES)})",
                status_code=404,
            )
        result = await rt.sweeps.sweep(job_type)
        return {
            "ok": True,
            "processed": result.processed,
            "changed": result.changed,
            "errors": result.errors,
        }

    @app.post("/sweep")
    async def sweep_all() -> dict:
        results = await rt.sweeps.sweep_all()
        return {
            "ok": True,
            "processed": sum(r.processed for r in results.values()),
            "changed": sum(r.changed for r in results.values()),
            "errors": sum(r.errors for r in results.values()),
            "results": {name: r.to_dict() for name, r in results.items()},
        }

    return app
