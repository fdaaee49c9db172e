from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class StakingError(Exception):
    """Canonical error type for staking operations and queries.

    Raising any StakingError inside an engine operation aborts the whole
    store transaction.
    """

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


@dataclass
class Overflow(StakingError):
    code: str = "overflow"
    reason: str = "u128_overflow"
    details: Any | None = None


@dataclass
class Underflow(StakingError):
    code: str = "underflow"
    reason: str = "u128_underflow"
    details: Any | None = None


@dataclass
class InvalidToken(StakingError):
    code: str = "invalid_token"
    reason: str = "asset_is_not_staking_token"
    details: Any | None = None


@dataclass
class StakingClosed(StakingError):
    code: str = "staking_closed"
    reason: str = "outside_distribution_window"
    details: Any | None = None


@dataclass
class NothingToClaim(StakingError):
    code: str = "nothing_to_claim"
    reason: str = "no_claims_can_be_released"
    details: Any | None = None


@dataclass
class NothingToWithdraw(StakingError):
    code: str = "nothing_to_withdraw"
    reason: str = "no_reward_available"
    details: Any | None = None


@dataclass
class Unauthorized(StakingError):
    code: str = "unauthorized"
    reason: str = "sender_is_not_owner"
    details: Any | None = None


@dataclass
class InvalidAmount(StakingError):
    code: str = "invalid_amount"
    reason: str = "amount_must_be_positive"
    details: Any | None = None


@dataclass
class InvalidAccount(StakingError):
    code: str = "invalid_account"
    reason: str = "bad_account_id"
    details: Any | None = None


@dataclass
class InvalidTime(StakingError):
    code: str = "invalid_time"
    reason: str = "time_out_of_range"
    details: Any | None = None


@dataclass
class InvalidConfig(StakingError):
    code: str = "invalid_config"
    reason: str = "bad_params"
    details: Any | None = None


@dataclass
class NotInitialized(StakingError):
    code: str = "not_initialized"
    reason: str = "params_missing"
    details: Any | None = None


@dataclass
class AlreadyInitialized(StakingError):
    code: str = "already_initialized"
    reason: str = "params_present"
    details: Any | None = None


__all__ = [
    "AlreadyInitialized",
    "InvalidAccount",
    "InvalidAmount",
    "InvalidConfig",
    "InvalidTime",
    "InvalidToken",
    "NotInitialized",
    "NothingToClaim",
    "NothingToWithdraw",
    "Overflow",
    "StakingClosed",
    "StakingError",
    "Unauthorized",
    "Underflow",
]
