from __future__ import annotations

"""Pydantic request schemas for the staking API.

`sender` is the caller identity as established by whatever sits in front of
this service (gateway, host chain adapter). The API does not authenticate it.

`now` is optional on every mutation; when omitted the server clock is used.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class SenderRequest(BaseModel):
    sender: str = Field(..., description="Caller account id")
    now: Optional[int] = Field(default=None, ge=0, description="Unix seconds; defaults to server time")


class BondRequest(SenderRequest):
    asset: str = Field(..., description="Asset id of the deposited tokens")
    amount: int = Field(..., description="Amount deposited")


class UnbondRequest(SenderRequest):
    amount: int = Field(..., description="Amount to unbond")


class ScheduleEntryModel(BaseModel):
    amount: int = Field(..., ge=0)
    start_time: int = Field(..., ge=0)
    end_time: int = Field(..., ge=0)


class ConfigUpdateRequest(BaseModel):
    sender: str = Field(..., description="Must be the current owner")
    owner: Optional[str] = None
    burn_address: Optional[str] = None
    unbonding_period: Optional[int] = Field(default=None, ge=0)
    instant_claim_percentage_loss: Optional[int] = Field(default=None, ge=0, le=100)
    distribution_schedule: Optional[List[ScheduleEntryModel]] = None


class AckRequest(BaseModel):
    ids: List[int] = Field(..., description="Outbox ids of executed transfers")
