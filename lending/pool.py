"""
pool.py - Stateful Collateralized Lending Ledger

The LendingPool is the authoritative store of every account's Position. It is
the only module that mutates positions, and it only does so through four
operations: deposit, borrow, repay and withdraw_collateral.

Key responsibilities:
    - Validates every operation against the ProtocolPolicy and the current Position
    - Moves assets through two TransferGateways (collateral and loan)
    - Commits atomically: the new Position and its event are recorded only
      after validation and the gateway call have both succeeded
    - Tracks logical time and computes interest on read
    - Always logs - every committed operation appends a PoolEvent
"""

from __future__ import annotations
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
import threading

from .core import (
    # Types
    Asset, Position, PositionReport, PoolEvent, TransferGateway,
    # Constants
    EMPTY_POSITION, ZERO,
    EVENT_DEPOSITED, EVENT_BORROWED, EVENT_REPAID, EVENT_WITHDRAWN,
    # Exceptions
    InsufficientCollateral, InsufficientLiquidity,
    NoDebtToRepay, OutstandingDebt, NoCollateral, LendingError,
    # Helper functions
    validate_account, validate_amount, lending_context,
)
from .interest import calculate_interest
from .policy import DEFAULT_POLICY, ProtocolPolicy, collateral_value, required_collateral


class LendingPool:
    """
    Collateralized lending ledger with atomic settlement and an event log.

    Design Principles:
        - Always validates: preconditions are checked before any asset moves.
        - Atomic: a failing gateway call aborts the operation before the
          position or the event log is touched.
        - Always logs: every committed operation is recorded as a PoolEvent.

    Thread Safety:
        Mutating operations run one at a time under a pool-wide lock, which
        also covers the shared loan liquidity check in borrow. get_position
        takes no lock; positions are immutable and replaced by a single
        assignment, so readers always see a whole record. Amount arithmetic
        runs under lending_context(), so results never depend on the
        calling thread's Decimal context.

    Example:
        pool = LendingPool("pool", collateral_gateway, loan_gateway)
        pool.deposit("alice", Decimal("2000"))
        pool.borrow("alice", Decimal("1000"))
        pool.advance_time(pool.current_time + timedelta(weeks=1))
        pool.get_position("alice")   # interest == 50
        pool.repay("alice")          # moves 1050
        pool.withdraw_collateral("alice")
    """

    def __init__(
        self,
        name: str,
        collateral: TransferGateway,
        loan: TransferGateway,
        initial_time: Optional[datetime] = None,
        policy: ProtocolPolicy = DEFAULT_POLICY,
        verbose: bool = True,
    ):
        """
        Create a lending pool.

        Args:
            name: Pool identifier
            collateral: Gateway for the collateral asset
            loan: Gateway for the loan asset
            initial_time: Starting logical time (default: 1970-01-01)
            policy: Protocol constants, fixed for the life of the pool. Leave
                as DEFAULT_POLICY; other values are for tests and simulations.
            verbose: Print one line per committed or rejected operation
        """
        if not isinstance(collateral, TransferGateway):
            raise TypeError(f"collateral gateway does not implement TransferGateway: {collateral!r}")
        if not isinstance(loan, TransferGateway):
            raise TypeError(f"loan gateway does not implement TransferGateway: {loan!r}")
        self.name = name
        self._collateral = collateral
        self._loan = loan
        self._policy = policy
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self._positions: Dict[str, Position] = {}
        self.event_log: List[PoolEvent] = []
        self._next_sequence: int = 0
        self._lock = threading.RLock()

    # ========================================================================
    # READ-ONLY QUERIES
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the pool."""
        return self._current_time

    @property
    def policy(self) -> ProtocolPolicy:
        return self._policy

    @property
    def collateral_asset(self) -> Asset:
        return self._collateral.asset

    @property
    def loan_asset(self) -> Asset:
        return self._loan.asset

    def get_position(self, account: str) -> PositionReport:
        """
        Report an account's collateral, debt and interest accrued as of now.

        Idempotent and side-effect free: no gateway calls, no events, no locks.
        Accounts the pool has never seen report all zeros.
        """
        position = self._positions.get(account, EMPTY_POSITION)
        interest = calculate_interest(
            position.debt,
            position.last_updated,
            self._current_time,
            self._policy,
            self.loan_asset.decimal_places,
        )
        return PositionReport(
            collateral=position.collateral,
            debt=position.debt,
            interest=interest,
        )

    def position_record(self, account: str) -> Position:
        """Return the stored Position for an account, including last_updated."""
        return self._positions.get(account, EMPTY_POSITION)

    def list_accounts(self) -> List[str]:
        """List every account that has a position record."""
        return sorted(self._positions.keys())

    def available_liquidity(self) -> Decimal:
        """Loan asset held in custody and available to borrow."""
        return self._loan.balance_of(self._loan.custody_account)

    def events_for(self, account: str) -> List[PoolEvent]:
        """All events emitted for one account, in commit order."""
        return [e for e in self.event_log if e.account == account]

    def verify_custody(self) -> Dict[str, Any]:
        """
        Verify that collateral custody covers every recorded collateral balance.

        Returns:
            Dict with keys:
            - 'valid': bool - True if custody holds at least the recorded total
            - 'collateral_recorded': Decimal - sum of all positions' collateral
            - 'collateral_held': Decimal - collateral asset balance in custody
            - 'debt_outstanding': Decimal - sum of all positions' debt
            - 'discrepancies': List[Dict] - details of any shortfall
        """
        positions = [self._positions[a] for a in sorted(self._positions)]
        with lending_context():
            recorded = sum((p.collateral for p in positions), ZERO)
            debt = sum((p.debt for p in positions), ZERO)
        held = self._collateral.balance_of(self._collateral.custody_account)

        discrepancies = []
        if held < recorded:
            with lending_context():
                shortfall = recorded - held
            discrepancies.append({
                'asset': self.collateral_asset.symbol,
                'expected': recorded,
                'actual': held,
                'difference': shortfall,
            })

        return {
            'valid': len(discrepancies) == 0,
            'collateral_recorded': recorded,
            'collateral_held': held,
            'debt_outstanding': debt,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the pool's logical clock.

        Time can only move forward, never backward.

        Raises:
            ValueError: If new_time is before the current time
        """
        with self._lock:
            if new_time < self._current_time:
                raise ValueError(
                    f"Cannot move time backwards: {new_time} < {self._current_time}"
                )
            self._current_time = new_time

    # ========================================================================
    # OPERATIONS (Mutating)
    # ========================================================================

    def deposit(self, account: str, amount: Decimal) -> PoolEvent:
        """
        Post collateral for an account.

        Resets the account's interest clock, including on debt already
        outstanding.

        Raises:
            InsufficientBalance: account does not hold amount of the collateral asset
            InsufficientAllowance: account has not approved the pool for amount
        """
        with self._lock, lending_context():
            validate_account(account)
            validate_amount(amount, self.collateral_asset)
            position = self.position_record(account)
            updated = replace(
                position,
                collateral=position.collateral + amount,
                last_updated=self._current_time,
            )
            self._move(self._collateral.move_in, EVENT_DEPOSITED, account, amount)
            return self._commit(account, updated, EVENT_DEPOSITED, amount)

    def borrow(self, account: str, amount: Decimal) -> PoolEvent:
        """
        Disburse the loan asset against posted collateral.

        The check compares current collateral with the requirement for this
        borrow alone; existing debt is not counted against it.

        Raises:
            InsufficientCollateral: collateral value is below floor(amount * ratio / 100)
            InsufficientLiquidity: the pool holds less than amount of the loan asset
        """
        with self._lock, lending_context():
            validate_account(account)
            validate_amount(amount, self.loan_asset)
            position = self.position_record(account)

            required = required_collateral(amount, self._policy, self.collateral_asset.decimal_places)
            value = collateral_value(position.collateral, self._policy)
            if value < required:
                self._reject(EVENT_BORROWED, account, amount, f"collateral {value} < required {required}")
                raise InsufficientCollateral(
                    f"{account} has collateral worth {value}, borrowing {amount} requires {required}"
                )

            liquidity = self.available_liquidity()
            if liquidity < amount:
                self._reject(EVENT_BORROWED, account, amount, f"liquidity {liquidity} < {amount}")
                raise InsufficientLiquidity(
                    f"Pool holds {liquidity} {self.loan_asset.symbol}, cannot lend {amount}"
                )

            updated = replace(
                position,
                debt=position.debt + amount,
                last_updated=self._current_time,
            )
            self._move(self._loan.move_out, EVENT_BORROWED, account, amount)
            return self._commit(account, updated, EVENT_BORROWED, amount)

    def repay(self, account: str) -> PoolEvent:
        """
        Collect principal plus accrued interest and clear the debt.

        The interest clock is not reset, so last_updated keeps pointing at the
        last deposit or borrow.

        Raises:
            NoDebtToRepay: account has no outstanding debt
            InsufficientBalance: account holds less than debt + interest
            InsufficientAllowance: account has approved less than debt + interest
        """
        with self._lock, lending_context():
            validate_account(account)
            position = self.position_record(account)
            if position.debt == 0:
                self._reject(EVENT_REPAID, account, ZERO, "no debt")
                raise NoDebtToRepay(f"{account} has no debt to repay")

            interest = calculate_interest(
                position.debt,
                position.last_updated,
                self._current_time,
                self._policy,
                self.loan_asset.decimal_places,
            )
            total = position.debt + interest
            updated = replace(position, debt=ZERO)
            self._move(self._loan.move_in, EVENT_REPAID, account, total)
            return self._commit(account, updated, EVENT_REPAID, total)

    def withdraw_collateral(self, account: str) -> PoolEvent:
        """
        Return all of an account's collateral.

        Raises:
            OutstandingDebt: account still owes principal
            NoCollateral: account has nothing deposited
        """
        with self._lock, lending_context():
            validate_account(account)
            position = self.position_record(account)
            if position.debt != 0:
                self._reject(EVENT_WITHDRAWN, account, position.collateral, f"debt {position.debt} outstanding")
                raise OutstandingDebt(f"{account} must repay {position.debt} before withdrawing")
            if position.collateral == 0:
                self._reject(EVENT_WITHDRAWN, account, ZERO, "no collateral")
                raise NoCollateral(f"{account} has no collateral to withdraw")

            amount = position.collateral
            updated = replace(position, collateral=ZERO)
            self._move(self._collateral.move_out, EVENT_WITHDRAWN, account, amount)
            return self._commit(account, updated, EVENT_WITHDRAWN, amount)

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _move(self, gateway_call, kind: str, account: str, amount: Decimal) -> None:
        """Run a gateway movement, reporting the rejection if it fails."""
        try:
            gateway_call(account, amount)
        except LendingError as e:
            self._reject(kind, account, amount, str(e))
            raise

    def _commit(self, account: str, updated: Position, kind: str, amount: Decimal) -> PoolEvent:
        """Record the new position and its event. Caller holds the lock."""
        event = PoolEvent(
            kind=kind,
            account=account,
            amount=amount,
            timestamp=self._current_time,
            sequence_number=self._next_sequence,
        )
        self._positions[account] = updated
        self._next_sequence += 1
        self.event_log.append(event)
        if self.verbose:
            print(f"✓ {event!r} → {updated!r}")
        return event

    def _reject(self, kind: str, account: str, amount: Decimal, reason: str) -> None:
        if self.verbose:
            print(f"✗ REJECTED {kind}({account}, {amount}): {reason}")
