# src/epochstake/ledger/constants.py
from __future__ import annotations

"""Staking ledger constants.

Amounts and weights follow unsigned 128-bit semantics: any result outside
[0, U128_MAX] is an error, never a wrap or a saturation.
"""

# Epoch length (seconds)
WEEK: int = 7 * 24 * 3600

# Fixed-width integer bounds
U128_MAX: int = (1 << 128) - 1

# Instant-claim fee is a whole percentage of the released amount
PERCENT_DENOMINATOR: int = 100

# Member listing pagination
DEFAULT_LIMIT: int = 10
MAX_LIMIT: int = 30

# Outbox listing pagination
DEFAULT_OUTBOX_LIMIT: int = 100
MAX_OUTBOX_LIMIT: int = 1_000
