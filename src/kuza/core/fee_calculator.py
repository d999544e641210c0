"""
Early-exit fee computation.

The penalty for leaving a lock early starts at ``base_fee_rate`` of the fee
basis on day zero and decays linearly to nothing at maturity. Time is counted
in whole days; the fee is rounded down to the smallest unit of the native
asset.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal, localcontext
from typing import Union

from kuza.core.config import SECONDS_PER_DAY, U64_MAX
from kuza.core.vault_exceptions import ArithmeticOverflowError

RateLike = Union[Decimal, str, int]

# u64 amounts times a short decimal rate stay well inside this
_PRECISION = 60


@dataclass(frozen=True)
class FeeQuote:
    elapsed_days: int
    duration_days: int
    completion: Decimal
    fee_fraction: Decimal
    fee: int

    @property
    def matured(self) -> bool:
        return self.duration_days <= 0 or self.elapsed_days >= self.duration_days

    def to_dict(self) -> dict:
        return {
            "elapsed_days": self.elapsed_days,
            "duration_days": self.duration_days,
            "completion": str(self.completion),
            "fee_fraction": str(self.fee_fraction),
            "fee": self.fee,
            "matured": self.matured,
        }


def _to_decimal(value: RateLike) -> Decimal:
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def quote_early_exit(
    now: int,
    deposit_timestamp: int,
    lock_duration: int,
    base_fee_rate: RateLike,
    fee_basis: int,
) -> FeeQuote:
    """Compute the early-exit fee together with the figures behind it.

    Args:
        now: Current unix time in seconds
        deposit_timestamp: Unix time of the lock-establishing deposit
        lock_duration: Lock length in seconds
        base_fee_rate: Fraction of ``fee_basis`` charged on day zero
        fee_basis: Amount the rate applies to, in native base units

    Raises:
        ArithmeticOverflowError: If ``now`` precedes the deposit or the fee
            does not fit in an unsigned 64-bit amount.
        ValueError: If the rate or basis is negative.
    """
    rate = _to_decimal(base_fee_rate)
    if rate < 0:
        raise ValueError(f"Fee rate cannot be negative: {rate}")
    if fee_basis < 0:
        raise ValueError(f"Fee basis cannot be negative: {fee_basis}")
    if now < deposit_timestamp:
        raise ArithmeticOverflowError(
            "Current time precedes the deposit timestamp",
            details={"now": now, "deposit_timestamp": deposit_timestamp},
        )

    elapsed_days = (now - deposit_timestamp) // SECONDS_PER_DAY
    duration_days = max(lock_duration, 0) // SECONDS_PER_DAY

    if duration_days == 0 or elapsed_days >= duration_days:
        completion = Decimal(1)
        return FeeQuote(elapsed_days, duration_days, completion, Decimal(0), 0)

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        ctx.rounding = ROUND_FLOOR
        completion = Decimal(elapsed_days) / Decimal(duration_days)
        fee_fraction = rate * (Decimal(1) - completion)
        # scale before dividing so an exact fee is never floored one unit low
        remaining_days = Decimal(duration_days - elapsed_days)
        exact_fee = rate * remaining_days * Decimal(fee_basis) / Decimal(duration_days)
        fee = int(exact_fee.to_integral_value(rounding=ROUND_FLOOR))

    if fee > U64_MAX:
        raise ArithmeticOverflowError(
            "Early exit fee exceeds the representable range",
            details={"fee": fee},
        )
    return FeeQuote(elapsed_days, duration_days, completion, fee_fraction, fee)


def early_exit_fee(
    now: int,
    deposit_timestamp: int,
    lock_duration: int,
    base_fee_rate: RateLike,
    fee_basis: int,
) -> int:
    """Return the early-exit fee in native base units (0 once matured)."""
    return quote_early_exit(now, deposit_timestamp, lock_duration, base_fee_rate, fee_basis).fee
