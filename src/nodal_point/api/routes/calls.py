"""Call history API.

POST upserts a partial call keyed by its resolved Twilio Call SID; updates
that cannot be tied to a Call SID yet are acknowledged with 202 and dropped.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from src.nodal_point.api.deps import get_call_repository, get_call_service
from src.nodal_point.api.errors import NotFoundError
from src.nodal_point.calls.schemas import CallUpsert

router = APIRouter(prefix="/api/calls", tags=["calls"])

PENDING_BODY = {"ok": True, "pending": True, "reason": "Awaiting valid Call SID"}


@router.post("")
async def upsert_call(
    body: CallUpsert,
    service: Any = Depends(get_call_service),
) -> JSONResponse:
    result = await service.upsert(body)
    if result.pending:
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=PENDING_BODY)
    return JSONResponse(content={"ok": True, "call": result.call.to_response()})


@router.get("")
async def list_calls(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    call_sid: str | None = Query(default=None, alias="callSid"),
    repo: Any = Depends(get_call_repository),
) -> dict:
    if call_sid:
        calls = await repo.list_calls(limit=1, call_sid=call_sid)
        return {"ok": True, "calls": [c.to_response() for c in calls]}

    calls = await repo.list_calls(limit=limit, offset=offset)
    return {
        "ok": True,
        "calls": [c.to_response() for c in calls],
        "hasMore": len(calls) == limit,
    }


@router.get("/account/{account_id}")
async def account_calls(
    account_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    repo: Any = Depends(get_call_repository),
) -> dict:
    calls = await repo.calls_for_account(account_id, limit=limit)
    if calls is None:
        raise NotFoundError("Account not found")
    return {
        "ok": True,
        "calls": [c.to_response() for c in calls],
        "total": len(calls),
        "accountId": account_id,
    }


@router.get("/contact/{contact_id}")
async def contact_calls(
    contact_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    repo: Any = Depends(get_call_repository),
) -> dict:
    calls = await repo.calls_for_contact(contact_id, limit=limit)
    if calls is None:
        raise NotFoundError("Contact not found")
    return {
        "ok": True,
        "calls": [c.to_response() for c in calls],
        "total": len(calls),
        "contactId": contact_id,
    }
