# src/epochstake/ledger/checked.py
from __future__ import annotations

from epochstake.ledger.constants import U128_MAX
from epochstake.runtime.errors import Overflow, Underflow


def as_u128(v: int, *, field: str = "value") -> int:
    """Validate that v is an int in the u128 range.

    bool is an int subclass; reject it explicitly.
    """
    if isinstance(v, bool) or not isinstance(v, int):
        raise Overflow(reason="not_an_integer", details={"field": field, "type": type(v).__name__})
    if v < 0:
        raise Underflow(details={"field": field, "value": v})
    if v > U128_MAX:
        raise Overflow(details={"field": field, "value": v})
    return v


def checked_add(a: int, b: int) -> int:
    out = int(a) + int(b)
    if out > U128_MAX:
        raise Overflow(details={"op": "add", "a": int(a), "b": int(b)})
    if out < 0:
        raise Underflow(details={"op": "add", "a": int(a), "b": int(b)})
    return out


def checked_sub(a: int, b: int) -> int:
    out = int(a) - int(b)
    if out < 0:
        raise Underflow(details={"op": "sub", "a": int(a), "b": int(b)})
    return out


def checked_mul(a: int, b: int) -> int:
    out = int(a) * int(b)
    if out > U128_MAX:
        raise Overflow(details={"op": "mul", "a": int(a), "b": int(b)})
    if out < 0:
        raise Underflow(details={"op": "mul", "a": int(a), "b": int(b)})
    return out


def mul_div(a: int, b: int, d: int) -> int:
    """floor(a * b / d).

    The intermediate product is widened; only the quotient must fit in u128.
    """
    if int(d) <= 0:
        raise Underflow(reason="division_by_zero", details={"op": "mul_div", "d": int(d)})
    out = (int(a) * int(b)) // int(d)
    if out > U128_MAX:
        raise Overflow(details={"op": "mul_div", "a": int(a), "b": int(b), "d": int(d)})
    if out < 0:
        raise Underflow(details={"op": "mul_div", "a": int(a), "b": int(b), "d": int(d)})
    return out
