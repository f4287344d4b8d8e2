"""
Core types and pure helpers for the collateralized lending ledger.

This module provides the foundational data structures and protocols:
1. Protocols: TransferGateway for moving assets in and out of custody
2. Immutable data structures: Asset, Position, PositionReport, PoolEvent
3. Exceptions: LendingError and domain-specific error types
4. Validation helpers shared by the pool and the token ledger

Nothing in this module mutates state. The LendingPool is the only component
that owns positions; the gateway is the only component that moves assets.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Context, Decimal, ROUND_DOWN, ROUND_HALF_EVEN, localcontext
from typing import Any, Iterator, Optional, Protocol, runtime_checkable


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Amounts are Decimal in whole-token units and may be as large as the
# 256-bit base-unit range the tokens were defined over (78 digits). Derived
# amounts such as amount * 150 or debt * 5 * weeks need a few more digits
# before they are floored back to asset precision.
#
# The global Decimal context is thread-local, so setting it at import would
# only configure the importing thread. Every amount calculation instead runs
# under lending_context(), which gives each caller, on any thread, a private
# copy of the same context.
#
_LENDING_DECIMAL_CONTEXT = Context(prec=120, rounding=ROUND_HALF_EVEN)


def lending_context():
    """Context manager applying the lending Decimal context to the current thread."""
    return localcontext(_LENDING_DECIMAL_CONTEXT)


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved token account for issuance. Exempt from balance validation.
SYSTEM_ACCOUNT = "system"

# Decimal places shared by both shipped tokens.
TOKEN_DECIMALS = 18

SECONDS_PER_WEEK = 7 * 24 * 60 * 60
ONE_WEEK = timedelta(seconds=SECONDS_PER_WEEK)

ZERO = Decimal("0")

# Largest amount any asset can hold, in base units (a 256-bit unsigned integer).
MAX_BASE_UNITS = 2 ** 256 - 1

# Event kinds (strings, matching the names observers subscribe to).
EVENT_DEPOSITED = "Deposited"
EVENT_BORROWED = "Borrowed"
EVENT_REPAID = "Repaid"
EVENT_WITHDRAWN = "Withdrawn"

# Position status values.
STATUS_EMPTY = "EMPTY"
STATUS_COLLATERALIZED = "COLLATERALIZED"
STATUS_BORROWED = "BORROWED"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LendingError(Exception):
    """Base exception for all lending-related errors."""
    pass


class InsufficientBalance(LendingError):
    """Raised when the source account does not hold enough of the asset to move."""
    pass


class InsufficientAllowance(LendingError):
    """Raised when a move on behalf of an account exceeds what it has approved."""
    pass


class InsufficientCollateral(LendingError):
    """Raised when a borrow would exceed what the posted collateral supports."""
    pass


class InsufficientLiquidity(LendingError):
    """Raised when the pool does not hold enough of the loan asset to disburse a borrow."""
    pass


class NoDebtToRepay(LendingError):
    """Raised when repay is called for an account with zero debt."""
    pass


class OutstandingDebt(LendingError):
    """Raised when collateral withdrawal is attempted while debt is outstanding."""
    pass


class NoCollateral(LendingError):
    """Raised when collateral withdrawal is attempted with nothing deposited."""
    pass


class AssetNotRegistered(LendingError):
    """Raised when operating on an asset symbol the token ledger does not know."""
    pass


# ============================================================================
# ASSETS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Asset:
    """
    Definition of a fungible asset held in custody or lent out.

    Attributes:
        symbol: Short identifier (e.g., "cUSD").
        name: Human-readable name.
        decimal_places: Smallest representable fraction is 10 ** -decimal_places.
    """
    symbol: str
    name: str
    decimal_places: int = TOKEN_DECIMALS

    def __post_init__(self):
        if not self.symbol or not self.symbol.strip():
            raise ValueError("Asset symbol cannot be empty")
        if self.decimal_places < 0:
            raise ValueError(f"decimal_places must be non-negative, got {self.decimal_places}")

    @property
    def quantum(self) -> Decimal:
        """The smallest representable amount of this asset."""
        with lending_context():
            return Decimal(10) ** -self.decimal_places

    @property
    def max_amount(self) -> Decimal:
        """The largest amount of this asset that can be held or moved."""
        with lending_context():
            return Decimal(MAX_BASE_UNITS).scaleb(-self.decimal_places)

    def floor(self, value: Decimal) -> Decimal:
        """
        Floor a value to this asset's precision.

        Equivalent to integer floor division on base units, which is how
        every derived amount (required collateral, interest) is rounded.
        """
        return floor_amount(value, self.decimal_places)


def floor_amount(value: Decimal, decimal_places: int = TOKEN_DECIMALS) -> Decimal:
    """Quantize toward zero at the given number of decimal places."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    with lending_context():
        return value.quantize(Decimal(10) ** -decimal_places, rounding=ROUND_DOWN)


def validate_amount(amount: Any, asset: Asset) -> Decimal:
    """
    Check that an amount can be moved as the given asset.

    Amounts must be finite, non-negative Decimals with no more precision than
    the asset supports, and no larger than Asset.max_amount. Zero is accepted;
    token transfers of zero are legal.

    Raises:
        ValueError: if the amount is malformed.
    """
    if not isinstance(amount, Decimal):
        raise ValueError(f"Amount must be Decimal, got {type(amount).__name__}")
    if amount.is_nan() or amount.is_infinite():
        raise ValueError(f"Amount must be finite, got {amount}")
    if amount < 0:
        raise ValueError(f"Amount must be non-negative, got {amount}")
    if amount > asset.max_amount:
        raise ValueError(f"Amount {amount} exceeds the {asset.symbol} maximum of {asset.max_amount}")
    if floor_amount(amount, asset.decimal_places) != amount:
        raise ValueError(
            f"Amount {amount} exceeds {asset.symbol} precision of "
            f"{asset.decimal_places} decimal places"
        )
    return amount


def validate_account(account: str) -> str:
    """Reject empty or non-string account identifiers."""
    if not isinstance(account, str) or not account.strip():
        raise ValueError(f"Account must be a non-empty string, got {account!r}")
    return account


# ============================================================================
# POSITIONS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Position:
    """
    Immutable snapshot of one account's standing with the pool.

    Each mutation produces a NEW instance (value semantics), which lets the
    pool swap records in with a single assignment and lets readers see a
    consistent record without locking.

    Attributes:
        collateral: Collateral asset held in custody for this account.
        debt: Outstanding loan principal. Interest is never stored.
        last_updated: Time of the last deposit or borrow (None until then).
    """
    collateral: Decimal = ZERO
    debt: Decimal = ZERO
    last_updated: Optional[datetime] = None

    @property
    def status(self) -> str:
        """Which state of the position lifecycle this record is in."""
        if self.debt > 0:
            return STATUS_BORROWED
        if self.collateral > 0:
            return STATUS_COLLATERALIZED
        return STATUS_EMPTY

    def __repr__(self) -> str:
        return f"Position(collateral={self.collateral}, debt={self.debt}, last_updated={self.last_updated})"


EMPTY_POSITION = Position()


@dataclass(frozen=True, slots=True)
class PositionReport:
    """
    Result of a position query: stored balances plus interest accrued as of now.

    Unpacks as (collateral, debt, interest).
    """
    collateral: Decimal
    debt: Decimal
    interest: Decimal

    @property
    def total_owed(self) -> Decimal:
        """Amount a repay would move right now."""
        with lending_context():
            return self.debt + self.interest

    def __iter__(self) -> Iterator[Decimal]:
        return iter((self.collateral, self.debt, self.interest))


# ============================================================================
# EVENTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class PoolEvent:
    """
    Immutable record of a committed pool operation.

    Attributes:
        kind: One of EVENT_DEPOSITED, EVENT_BORROWED, EVENT_REPAID, EVENT_WITHDRAWN
        account: Account the operation was performed for
        amount: Amount moved (for Repaid, principal plus interest)
        timestamp: Pool logical time when the operation committed
        sequence_number: Monotonic position in the pool's event log
    """
    kind: str
    account: str
    amount: Decimal
    timestamp: datetime
    sequence_number: int

    def __repr__(self) -> str:
        return f"{self.kind}({self.account}, {self.amount})"


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class TransferGateway(Protocol):
    """
    Capability to move one asset between accounts and the pool's custody.

    The pool holds two independent instances, one for the collateral asset
    and one for the loan asset, and never assumes they share a store.
    """

    @property
    def asset(self) -> Asset:
        """The asset this gateway moves."""
        ...

    @property
    def custody_account(self) -> str:
        """Account that holds assets on behalf of the pool."""
        ...

    def move_in(self, account: str, amount: Decimal) -> None:
        """
        Move amount from account into custody.

        Raises:
            InsufficientBalance: account does not hold amount
            InsufficientAllowance: account has not authorized the move
        """
        ...

    def move_out(self, account: str, amount: Decimal) -> None:
        """Move amount from custody to account."""
        ...

    def balance_of(self, holder: str) -> Decimal:
        """Return holder's balance of the asset."""
        ...
