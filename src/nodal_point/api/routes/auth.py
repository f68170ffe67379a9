"""Zoho Mail OAuth login and callback.

The callback is reachable at both paths the Zoho app registrations use.
Every outcome ends in a redirect to the frontend: ``/network`` on success,
``/login?error=...`` otherwise.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

import httpx
import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

from src.nodal_point.api.deps import get_app_settings, get_zoho_repository, get_zoho_service
from src.nodal_point.api.errors import NotConfiguredError
from src.nodal_point.config import Settings
from src.nodal_point.services.zoho import ZohoAuthError, email_allowed

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _frontend(settings: Settings, path: str, **params: str) -> RedirectResponse:
    url = settings.PUBLIC_BASE_URL.rstrip("/") + path
    if params:
        url = f"{url}?{urlencode(params)}"
    return RedirectResponse(url=url, status_code=302)


@router.get("/zoho/login")
async def zoho_login(zoho: Any = Depends(get_zoho_service)) -> RedirectResponse:
    if not zoho.configured:
        raise NotConfiguredError("Zoho OAuth not configured")
    return RedirectResponse(url=zoho.authorize_url(), status_code=302)


@router.get("/callback/zoho")
@router.get("/zoho/callback")
async def zoho_callback(
    code: str | None = Query(default=None),
    error: str | None = Query(default=None),
    settings: Settings = Depends(get_app_settings),
    zoho: Any = Depends(get_zoho_service),
    connections: Any = Depends(get_zoho_repository),
) -> RedirectResponse:
    if error:
        logger.warning("zoho.callback_error", error=error)
        return _frontend(settings, "/login", error=error)
    if not code:
        return _frontend(settings, "/login", error="Missing authorization code")
    if not zoho.configured:
        return _frontend(settings, "/login", error="Zoho OAuth not configured")

    try:
        tokens = await zoho.exchange_code(code)
        identity = await zoho.identity(tokens)
    except (ZohoAuthError, httpx.HTTPError) as exc:
        logger.warning("zoho.callback_failed", error=str(exc))
        return _frontend(settings, "/login", error=str(exc))

    if not email_allowed(identity.email, settings.ALLOWED_EMAIL_DOMAIN):
        logger.warning("zoho.unauthorized_domain", email=identity.email)
        return _frontend(settings, "/login", error="Only Nodal Point emails are authorized")

    try:
        account_id = await zoho.mail_account_id(tokens.access_token)
    except httpx.HTTPError as exc:
        logger.warning("zoho.mail_account_lookup_failed", error=str(exc))
        account_id = None

    await connections.upsert_connection(identity, tokens, account_id)
    logger.info("zoho.connected", email=identity.email, has_mail_account=bool(account_id))
    return _frontend(settings, "/network")
