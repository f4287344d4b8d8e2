"""
policy.py - Fixed protocol parameters and collateral requirement math

The protocol is ungoverned. Every deployed pool runs on DEFAULT_POLICY
(5% a week, 150% collateral, 1:1 price) and nothing can change a pool's
policy after construction. Other ProtocolPolicy values are only passed in by
tests and what-if simulations that need different constants. The two assets
are valued 1:1, so no price source is ever consulted.

Key Formulas:
    required_collateral = floor(amount * collateral_ratio_percent / 100)
    collateral_value    = collateral * price_ratio
    can_borrow          <=> collateral_value >= required_collateral
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from .core import ONE_WEEK, TOKEN_DECIMALS, floor_amount, lending_context


@dataclass(frozen=True, slots=True)
class ProtocolPolicy:
    """
    Immutable protocol constants.

    Attributes:
        interest_rate_percent: Simple interest charged per whole interest period
        collateral_ratio_percent: Minimum collateral value as a percent of a borrow
        price_ratio: Collateral units of value per loan unit (fixed, no oracle)
        interest_period: Length of one accrual step
    """
    interest_rate_percent: Decimal = Decimal("5")
    collateral_ratio_percent: Decimal = Decimal("150")
    price_ratio: Decimal = Decimal("1")
    interest_period: timedelta = ONE_WEEK

    def __post_init__(self):
        # Accept ints for readability at call sites
        for name in ('interest_rate_percent', 'collateral_ratio_percent', 'price_ratio'):
            value = getattr(self, name)
            if not isinstance(value, Decimal):
                object.__setattr__(self, name, Decimal(str(value)))

        if self.interest_rate_percent < 0:
            raise ValueError(f"interest_rate_percent must be non-negative, got {self.interest_rate_percent}")
        if self.collateral_ratio_percent <= 0:
            raise ValueError(f"collateral_ratio_percent must be positive, got {self.collateral_ratio_percent}")
        if self.price_ratio <= 0:
            raise ValueError(f"price_ratio must be positive, got {self.price_ratio}")
        if self.interest_period <= timedelta(0):
            raise ValueError(f"interest_period must be positive, got {self.interest_period}")


DEFAULT_POLICY = ProtocolPolicy()


def required_collateral(
    amount: Decimal,
    policy: ProtocolPolicy = DEFAULT_POLICY,
    decimal_places: int = TOKEN_DECIMALS,
) -> Decimal:
    """
    Collateral needed to borrow amount, floored to asset precision.

    Only the newly requested amount is considered. Debt already outstanding
    is not added in.
    """
    with lending_context():
        return floor_amount(amount * policy.collateral_ratio_percent / Decimal("100"), decimal_places)


def collateral_value(collateral: Decimal, policy: ProtocolPolicy = DEFAULT_POLICY) -> Decimal:
    """Value of posted collateral in loan asset units."""
    with lending_context():
        return collateral * policy.price_ratio


def can_borrow(
    collateral: Decimal,
    amount: Decimal,
    policy: ProtocolPolicy = DEFAULT_POLICY,
    decimal_places: int = TOKEN_DECIMALS,
) -> bool:
    """True if collateral supports borrowing amount. The boundary is inclusive."""
    return collateral_value(collateral, policy) >= required_collateral(amount, policy, decimal_places)
