"""HTTP surface over the analysis orchestrator and its stored results."""

from __future__ import annotations

import asyncio
import os
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path

import duckdb
from fastapi import BackgroundTasks, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from jobs.analyze import AnalysisAborted, analyze_async
from jobs.config import Settings
from pipelines.matching import RegionMatcher
from pipelines.model import AnalysisResult, LocationQuery
from pipelines.ratelimit import RateLimiter
from storage.db import connect, fetch_runs
from storage.exports import EXPORT_FORMATS, MEDIA_TYPES, export_runs
from storage.housing import load_dataset
from storage.snapshots import SnapshotStore, build_summary, is_slug

RUNS_PAGE_SIZE = 200
RUNS_PAGE_MAX = 2000


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings.from_env()
    app.state.settings = settings
    # creates the run-store schema before the first request
    connect(settings.database_path).close()
    # shared by every run for the life of the process
    app.state.collaborators = {
        "limiter": RateLimiter(settings.rate_limits_ms),
        "matcher": RegionMatcher(),
        "dataset": await asyncio.to_thread(load_dataset, settings.housing_data_dir),
    }
    yield


app = FastAPI(title="Location Investment Analysis API", version="0.1.0", lifespan=lifespan)

_cors_origins = [
    origin.strip() for origin in os.getenv("API_CORS_ORIGINS", "*").split(",") if origin.strip()
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins or ["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


def _settings() -> Settings:
    return app.state.settings


def _snapshot(slug: str) -> AnalysisResult:
    if not is_slug(slug):
        raise HTTPException(status_code=404, detail=f"No analysis stored for '{slug}'")
    try:
        return SnapshotStore(_settings().output_dir).load(slug)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def _remove(path: Path) -> None:
    path.unlink(missing_ok=True)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/analyze")
async def run_analysis(query: LocationQuery):
    """Run one analysis; a failed geocode answers 422 with the error result."""
    try:
        result = await analyze_async(query, _settings(), **app.state.collaborators)
    except AnalysisAborted as exc:
        return JSONResponse(status_code=422, content=exc.result.model_dump(mode="json"))
    return JSONResponse(content=result.model_dump(mode="json"))


@app.get("/analyses")
def list_analyses(
    background_tasks: BackgroundTasks,
    format: str = Query("json", description="json, csv or parquet"),
    limit: int = Query(RUNS_PAGE_SIZE, ge=1, le=RUNS_PAGE_MAX, description="Newest runs to return"),
):
    fmt = format.lower()
    if fmt != "json" and fmt not in EXPORT_FORMATS:
        raise HTTPException(status_code=400, detail=f"Unsupported format '{format}'.")

    conn = connect(_settings().database_path)
    try:
        if fmt == "json":
            runs = fetch_runs(conn, limit=limit)
            for run in runs:
                run["created_at"] = run["created_at"].isoformat()
            return JSONResponse(content={"count": len(runs), "items": runs})

        with tempfile.NamedTemporaryFile(suffix=f".{fmt}", delete=False) as handle:
            export_path = Path(handle.name)
        export_runs(conn, export_path, fmt=fmt, limit=limit)
    except duckdb.Error as exc:
        raise HTTPException(status_code=500, detail="Run store query failed") from exc
    finally:
        conn.close()

    background_tasks.add_task(_remove, export_path)
    return FileResponse(
        export_path,
        media_type=MEDIA_TYPES[fmt],
        filename=f"analyses.{fmt}",
        background=background_tasks,
    )


@app.get("/analyses/{slug}")
def get_analysis(slug: str):
    return JSONResponse(content=_snapshot(slug).model_dump(mode="json"))


@app.get("/analyses/{slug}/summary")
def get_summary(slug: str):
    return JSONResponse(content=build_summary(_snapshot(slug)))
