"""
Unit tests for the early-exit fee.

Coverage targets:
- Linear decay from the base rate to zero at maturity
- Whole-day granularity and floor rounding
- Zero duration, clock skew and overflow edges
"""

from decimal import Decimal

import pytest

from kuza.core.config import SECONDS_PER_DAY, U64_MAX
from kuza.core.fee_calculator import early_exit_fee, quote_early_exit
from kuza.core.vault_exceptions import ArithmeticOverflowError

DEPOSIT = 1_700_000_000
THIRTY_DAYS = 30 * SECONDS_PER_DAY
ENTRY_FEE = 100_000_000


def _at(days: float) -> int:
    return DEPOSIT + int(days * SECONDS_PER_DAY)


class TestEarlyExitFee:
    def test_half_way_through_lock(self):
        quote = quote_early_exit(_at(15), DEPOSIT, THIRTY_DAYS, "0.75", ENTRY_FEE)

        assert quote.elapsed_days == 15
        assert quote.duration_days == 30
        assert quote.completion == Decimal("0.5")
        assert quote.fee_fraction == Decimal("0.375")
        assert quote.fee == 37_500_000
        assert not quote.matured

    def test_day_zero_charges_full_rate(self):
        assert early_exit_fee(DEPOSIT, DEPOSIT, THIRTY_DAYS, "0.75", ENTRY_FEE) == 75_000_000

    def test_fee_is_non_increasing(self):
        fees = [
            early_exit_fee(_at(day), DEPOSIT, THIRTY_DAYS, Decimal("0.75"), ENTRY_FEE)
            for day in range(0, 32)
        ]
        assert all(later <= earlier for earlier, later in zip(fees, fees[1:]))
        assert fees[30] == 0

    @pytest.mark.parametrize("days", [30, 31, 365])
    def test_matured_lock_is_free(self, days):
        quote = quote_early_exit(_at(days), DEPOSIT, THIRTY_DAYS, "0.75", ENTRY_FEE)
        assert quote.fee == 0
        assert quote.matured

    def test_partial_days_are_truncated(self):
        assert early_exit_fee(_at(15.9), DEPOSIT, THIRTY_DAYS, "0.75", ENTRY_FEE) == 37_500_000

    def test_fee_rounds_down(self):
        # 0.75 * 29 * 7 / 30 = 5.075
        assert early_exit_fee(_at(1), DEPOSIT, THIRTY_DAYS, "0.75", 7) == 5

    def test_zero_duration_is_free(self):
        quote = quote_early_exit(DEPOSIT, DEPOSIT, 0, "0.75", ENTRY_FEE)
        assert quote.fee == 0
        assert quote.matured

    def test_sub_day_duration_is_free(self):
        assert early_exit_fee(DEPOSIT, DEPOSIT, SECONDS_PER_DAY - 1, "0.75", ENTRY_FEE) == 0

    def test_float_rate_is_accepted(self):
        assert early_exit_fee(_at(15), DEPOSIT, THIRTY_DAYS, 0.75, ENTRY_FEE) == 37_500_000


class TestEarlyExitFeeErrors:
    def test_clock_before_deposit(self):
        with pytest.raises(ArithmeticOverflowError):
            quote_early_exit(DEPOSIT - 1, DEPOSIT, THIRTY_DAYS, "0.75", ENTRY_FEE)

    def test_fee_beyond_u64_range(self):
        with pytest.raises(ArithmeticOverflowError):
            quote_early_exit(DEPOSIT, DEPOSIT, THIRTY_DAYS, 1, U64_MAX * 2)

    def test_negative_rate(self):
        with pytest.raises(ValueError):
            quote_early_exit(_at(1), DEPOSIT, THIRTY_DAYS, "-0.1", ENTRY_FEE)

    def test_negative_basis(self):
        with pytest.raises(ValueError):
            quote_early_exit(_at(1), DEPOSIT, THIRTY_DAYS, "0.75", -1)


def test_quote_to_dict():
    data = quote_early_exit(_at(15), DEPOSIT, THIRTY_DAYS, "0.75", ENTRY_FEE).to_dict()
    assert data["fee"] == 37_500_000
    assert data["fee_fraction"] == "0.375"
    assert data["matured"] is False
