"""FastAPI application entry point for the watch-planning scheduler."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import FastAPI, HTTPException, Query

from watchplan.config import get_settings
from watchplan.domain.errors import ConflictError, SchedulingError
from watchplan.domain.models import (
    Availability,
    CommitResult,
    GenerateScheduleRequest,
    GenerationResult,
    PendingPlacement,
    ScheduledInterval,
    StageRequest,
)
from watchplan.repos.memory import DraftStore, ScheduleRepository
from watchplan.services.drafts import commit_all, stage, to_scheduled, unstage
from watchplan.services.occupancy import OccupancyIndex
from watchplan.services.planner import plan
from watchplan.services.timeutils import to_calendar_date, to_wall_clock

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)

# ── Singletons (created at import time for simplicity) ────────────────
schedule_repo = ScheduleRepository()
draft_store = DraftStore()


def _bad_request(exc: SchedulingError) -> HTTPException:
    return HTTPException(status_code=400, detail=str(exc))


# ── Routes ────────────────────────────────────────────────────────────


@app.get("/schedule", response_model=list[ScheduledInterval])
def list_schedule(day: str = Query(alias="date")) -> list[ScheduledInterval]:
    """Return the saved entries overlapping a calendar date."""
    try:
        calendar_date = to_calendar_date(day)
    except SchedulingError as exc:
        raise _bad_request(exc) from exc
    return schedule_repo.list_for_day(calendar_date)


@app.get("/schedule/availability", response_model=Availability)
def availability(at: datetime) -> Availability:
    """Hover feedback: is a one-slot window free at *at*, and for how long."""
    at = to_wall_clock(at)
    day = at.date()
    index = OccupancyIndex(
        schedule_repo.list_for_day(day), draft_store.list_for_day(day), day=day
    )
    blocking = index.find_blocking_interval(at, settings.slot_step_minutes)
    return Availability(
        at=at,
        occupied=blocking is not None,
        available_minutes=index.available_minutes_from(at),
        blocking=blocking,
    )


@app.post("/schedule/generate", response_model=GenerationResult)
def generate_schedule(body: GenerateScheduleRequest) -> GenerationResult:
    """Generate placements for the request and save them as one batch."""
    try:
        result = plan(
            body.settings,
            body.queue,
            body.episodes,
            schedule_for_day=schedule_repo.list_for_day,
            pending_for_day=draft_store.list_for_day,
            watch_history=body.watch_history,
        )
    except SchedulingError as exc:
        raise _bad_request(exc) from exc

    schedule_repo.add_many(result.placed)
    if result.skipped:
        logger.info(
            "Skipped: %s",
            "; ".join(f"{s.candidate.label} ({s.reason})" for s in result.skipped),
        )
    return result


@app.get("/drafts", response_model=list[PendingPlacement])
def list_drafts() -> list[PendingPlacement]:
    """Return all staged placements."""
    return draft_store.list_all()


@app.post("/drafts", response_model=PendingPlacement, status_code=201)
def stage_draft(body: StageRequest) -> PendingPlacement:
    """Stage a provisional placement; 409 if the slot is taken."""
    try:
        return stage(
            draft_store,
            body.candidate,
            body.start,
            saved=schedule_repo.list_for_day(body.start.date()),
        )
    except ConflictError as exc:
        raise HTTPException(
            status_code=409,
            detail={
                "message": exc.message,
                "blocking_title": exc.blocking.title,
                "blocking_start": exc.blocking_start.isoformat(),
                "blocking_end": exc.blocking_end.isoformat(),
            },
        ) from exc
    except SchedulingError as exc:
        raise _bad_request(exc) from exc


@app.delete("/drafts/{key}", status_code=200)
def unstage_draft(key: str) -> dict:
    """Remove a staged placement."""
    if unstage(draft_store, key) is None:
        raise HTTPException(status_code=404, detail="Draft not found")
    return {"status": "removed"}


@app.post("/drafts/commit", response_model=CommitResult)
def commit_drafts() -> CommitResult:
    """Save every staged placement, reporting failures individually."""
    return commit_all(draft_store, lambda p: schedule_repo.add(to_scheduled(p)))
