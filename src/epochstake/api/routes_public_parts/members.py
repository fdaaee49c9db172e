from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, Request

from epochstake.api.errors import ApiError
from epochstake.api.routes_public_parts.common import _engine, _now
from epochstake.ledger.constants import DEFAULT_LIMIT, MAX_LIMIT

router = APIRouter()

Json = Dict[str, Any]


@router.get("/staking/members")
def members_list(
    request: Request,
    start_after: Optional[str] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1),
    now: Optional[int] = Query(default=None, ge=0),
) -> Json:
    """Page of members in account-id order.

    `next_start_after` is the last address of a full page, else null.
    """
    members = _engine(request).list_members(start_after=start_after, limit=limit, now=_now(now))
    items = [m.to_json() for m in members]
    page = DEFAULT_LIMIT if limit is None else min(int(limit), MAX_LIMIT)
    nxt = items[-1]["address"] if items and len(items) >= page else None
    return {"ok": True, "members": items, "next_start_after": nxt}


@router.get("/staking/members/{account}")
def members_get(request: Request, account: str, now: Optional[int] = Query(default=None, ge=0)) -> Json:
    info = _engine(request).member(account, _now(now))
    if info is None:
        raise ApiError.not_found("member_not_found", "account has never bonded", {"account": account})
    return {"ok": True, "member": info.to_json()}


@router.get("/staking/members/{account}/weights")
def members_weights(request: Request, account: str) -> Json:
    """Stored (settled) per-epoch weights; pending accrual is not included."""
    weights = _engine(request).member_weights(account)
    return {"ok": True, "account": account, "weights": {str(k): int(v) for k, v in sorted(weights.items())}}
