"""Top-level API router aggregating all route modules."""

from __future__ import annotations

from fastapi import APIRouter

from src.nodal_point.api.routes import (
    ai,
    assembly,
    auth,
    calls,
    debug,
    health,
    intelligence,
    maps,
    market,
    twilio,
)

router = APIRouter()

router.include_router(health.router)
router.include_router(maps.router)
router.include_router(ai.router)
router.include_router(debug.router)
router.include_router(auth.router)
router.include_router(assembly.router)
router.include_router(intelligence.router)
router.include_router(market.router)
router.include_router(twilio.router)
router.include_router(calls.router)
