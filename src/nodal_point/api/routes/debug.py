"""Client-side debug log sink (development only)."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Body, Depends
from starlette.concurrency import run_in_threadpool

from src.nodal_point.api.deps import get_app_settings
from src.nodal_point.api.errors import NotFoundError
from src.nodal_point.config import Environment, Settings

router = APIRouter(prefix="/api/debug", tags=["debug"])


def append_log_line(path: Path, entry: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as fh:
        fh.write(json.dumps(entry, default=str) + "\n")


@router.post("/log")
async def debug_log(
    entry: dict[str, Any] = Body(...),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    """Append the posted JSON object, stamped with server time, as one line."""
    if settings.ENVIRONMENT == Environment.production:
        raise NotFoundError("Not found")

    record = {"serverTimestamp": datetime.now(timezone.utc).isoformat(), **entry}
    await run_in_threadpool(append_log_line, Path(settings.DEBUG_LOG_PATH), record)
    return {"ok": True}
