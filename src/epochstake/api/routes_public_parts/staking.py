from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, Request

from epochstake.api.routes_public_parts.common import _engine, _now
from epochstake.api.schemas import (
    AckRequest,
    BondRequest,
    ConfigUpdateRequest,
    SenderRequest,
    UnbondRequest,
)

router = APIRouter()

Json = Dict[str, Any]


@router.get("/staking/config")
def staking_config(request: Request) -> Json:
    return {"ok": True, "config": _engine(request).config().to_public_json()}


@router.get("/staking/total")
def staking_total(request: Request) -> Json:
    total = _engine(request).total()
    return {"ok": True, "total": total.amount, "last_updated": total.time}


@router.get("/staking/epochs/{epoch_id}")
def staking_epoch(request: Request, epoch_id: int, now: Optional[int] = Query(default=None, ge=0)) -> Json:
    """Window, rate, emission and total weight of one epoch as of `now`."""
    return {"ok": True, "epoch": _engine(request).epoch(epoch_id, _now(now))}


@router.post("/staking/bond")
def staking_bond(request: Request, req: BondRequest) -> Json:
    res = _engine(request).bond(sender=req.sender, asset=req.asset, amount=req.amount, now=_now(req.now))
    return {"ok": True, **res.to_json()}


@router.post("/staking/unbond")
def staking_unbond(request: Request, req: UnbondRequest) -> Json:
    res = _engine(request).unbond(sender=req.sender, amount=req.amount, now=_now(req.now))
    return {"ok": True, **res.to_json()}


@router.post("/staking/claim")
def staking_claim(request: Request, req: SenderRequest) -> Json:
    res = _engine(request).claim(sender=req.sender, now=_now(req.now))
    return {"ok": True, **res.to_json()}


@router.post("/staking/instant_claim")
def staking_instant_claim(request: Request, req: SenderRequest) -> Json:
    res = _engine(request).instant_claim(sender=req.sender, now=_now(req.now))
    return {"ok": True, **res.to_json()}


@router.post("/staking/withdraw")
def staking_withdraw(request: Request, req: SenderRequest) -> Json:
    res = _engine(request).withdraw(sender=req.sender, now=_now(req.now))
    return {"ok": True, **res.to_json()}


@router.post("/staking/config")
def staking_update_config(request: Request, req: ConfigUpdateRequest) -> Json:
    schedule = None
    if req.distribution_schedule is not None:
        schedule = [e.model_dump() for e in req.distribution_schedule]
    res = _engine(request).update_config(
        sender=req.sender,
        owner=req.owner,
        burn_address=req.burn_address,
        unbonding_period=req.unbonding_period,
        instant_claim_percentage_loss=req.instant_claim_percentage_loss,
        distribution_schedule=schedule,
    )
    return {"ok": True, **res.to_json()}


@router.get("/staking/transfers/pending")
def staking_transfers_pending(request: Request, limit: Optional[int] = Query(default=None, ge=1)) -> Json:
    items = _engine(request).pending_transfers(limit)
    return {"ok": True, "transfers": [t.to_json() for t in items]}


@router.post("/staking/transfers/ack")
def staking_transfers_ack(request: Request, req: AckRequest) -> Json:
    acked = _engine(request).ack_transfers(req.ids)
    return {"ok": True, "acked": acked}
