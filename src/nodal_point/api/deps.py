"""Dependency helpers that fetch lifespan-built services from ``app.state``.

A missing service means startup skipped it (e.g. the database was
unreachable), so routes answer 503 instead of failing obscurely.
"""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, status

from src.nodal_point.config import Settings, get_settings


def _from_state(request: Request, attr: str, label: str) -> Any:
    service = getattr(request.app.state, attr, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} not initialized",
        )
    return service


def get_app_settings(request: Request) -> Settings:
    """Settings override placed on app.state by tests, else the cached singleton."""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_call_service(request: Request) -> Any:
    return _from_state(request, "call_service", "Call service")


def get_call_repository(request: Request) -> Any:
    return _from_state(request, "call_repository", "Call repository")


def get_twilio_client(request: Request) -> Any:
    return _from_state(request, "twilio_client", "Twilio client")


def get_forecast_poller(request: Request) -> Any:
    return _from_state(request, "forecast_poller", "Forecast poller")


def get_ercot_client(request: Request) -> Any:
    return _from_state(request, "ercot_client", "ERCOT client")


def get_eia_client(request: Request) -> Any:
    return _from_state(request, "eia_client", "EIA client")


def get_strike_list_repository(request: Request) -> Any:
    return _from_state(request, "strike_list_repository", "Strike list")


def get_intelligence_repository(request: Request) -> Any:
    return _from_state(request, "intelligence_repository", "Market intelligence")


def get_scrape_trigger(request: Request) -> Any:
    return _from_state(request, "scrape_trigger", "Scrape trigger")


def get_llm_service(request: Request) -> Any:
    return _from_state(request, "llm_service", "LLM service")


def get_maps_service(request: Request) -> Any:
    return _from_state(request, "maps_service", "Maps service")


def get_zoho_service(request: Request) -> Any:
    return _from_state(request, "zoho_service", "Zoho service")


def get_zoho_repository(request: Request) -> Any:
    return _from_state(request, "zoho_repository", "Zoho connections")


def get_assembly_service(request: Request) -> Any:
    return _from_state(request, "assembly_service", "AssemblyAI service")
