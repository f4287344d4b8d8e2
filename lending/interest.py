"""
interest.py - Stepped simple interest on outstanding debt

Interest is never stored. It is computed on demand from the debt and the time
of the position's last update, and is forgiven once a repay has collected it.

Key Formulas:
    periods  = floor((now - last_updated) / interest_period)
    interest = floor(debt * interest_rate_percent * periods / 100)

This is a step function: with the default weekly period, interest is exactly
zero for the first 6 days 23:59:59 and then jumps by a full week's worth at
each boundary. There is no compounding.
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .core import TOKEN_DECIMALS, ZERO, floor_amount, lending_context
from .policy import DEFAULT_POLICY, ProtocolPolicy


def weeks_elapsed(
    last_updated: Optional[datetime],
    now: Optional[datetime],
    policy: ProtocolPolicy = DEFAULT_POLICY,
) -> int:
    """
    Number of whole interest periods between last_updated and now.

    Returns 0 if either time is missing or now is not after last_updated.
    """
    if last_updated is None or now is None or now <= last_updated:
        return 0
    return (now - last_updated) // policy.interest_period


def calculate_interest(
    debt: Decimal,
    last_updated: Optional[datetime],
    now: Optional[datetime],
    policy: ProtocolPolicy = DEFAULT_POLICY,
    decimal_places: int = TOKEN_DECIMALS,
) -> Decimal:
    """
    Calculate interest accrued on debt since last_updated.

    PURE FUNCTION - All inputs explicit, no hidden state.

    Args:
        debt: Outstanding principal
        last_updated: When the position last changed in a way that resets accrual
        now: Current timestamp
        policy: Protocol constants (rate and period)
        decimal_places: Loan asset precision the result is floored to

    Returns:
        Accrued interest (Decimal("0") if there is no debt or no whole period has passed)

    Example:
        >>> calculate_interest(Decimal("1000"), datetime(2025, 1, 1), datetime(2025, 1, 8))
        Decimal('50.000000000000000000')
    """
    if not isinstance(debt, Decimal):
        debt = Decimal(str(debt))
    if debt <= 0:
        return ZERO

    periods = weeks_elapsed(last_updated, now, policy)
    if periods == 0:
        return ZERO

    with lending_context():
        return floor_amount(
            debt * policy.interest_rate_percent * periods / Decimal("100"),
            decimal_places,
        )


def calculate_total_owed(
    debt: Decimal,
    last_updated: Optional[datetime],
    now: Optional[datetime],
    policy: ProtocolPolicy = DEFAULT_POLICY,
    decimal_places: int = TOKEN_DECIMALS,
) -> Decimal:
    """Principal plus accrued interest, i.e. what a repay collects."""
    interest = calculate_interest(debt, last_updated, now, policy, decimal_places)
    with lending_context():
        return debt + interest
