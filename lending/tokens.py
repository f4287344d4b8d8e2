"""
tokens.py - In-memory token ledger and per-asset transfer gateways

The TokenLedger is a stateful balance book for fungible assets with the
allowance semantics of the tokens the lending pool was built against:

    - balances per (account, asset)
    - approve(owner, spender, amount) sets an allowance
    - transfer_from(spender, source, dest, amount) spends allowance, then moves
    - zero-amount transfers are legal; a transfer to self changes nothing

Supply is created by issuing from SYSTEM_ACCOUNT, which is exempt from balance
validation and therefore carries the negative of everything issued. The sum
of all balances of an asset, system account included, is always zero.

TokenGateway binds one asset of a TokenLedger to the TransferGateway protocol
so a LendingPool can move that asset in and out of its custody account.
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Tuple
import threading

from .core import (
    # Types
    Asset,
    # Constants
    SYSTEM_ACCOUNT, TOKEN_DECIMALS, ZERO,
    # Exceptions
    AssetNotRegistered, InsufficientAllowance, InsufficientBalance,
    # Helper functions
    validate_account, validate_amount, lending_context,
)


# ============================================================================
# ASSET FACTORIES
# ============================================================================

def collateral_usd(decimal_places: int = TOKEN_DECIMALS) -> Asset:
    """The collateral asset: Collateral USD (cUSD)."""
    return Asset(symbol="cUSD", name="Collateral USD", decimal_places=decimal_places)


def loan_dai(decimal_places: int = TOKEN_DECIMALS) -> Asset:
    """The loan asset: Loan DAI (dDAI)."""
    return Asset(symbol="dDAI", name="Loan DAI", decimal_places=decimal_places)


# ============================================================================
# LOG RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Transfer:
    """Immutable record of an applied balance movement."""
    symbol: str
    source: str
    dest: str
    amount: Decimal
    sequence_number: int

    def __repr__(self) -> str:
        return f"Transfer({self.amount} {self.symbol}: {self.source}→{self.dest})"


@dataclass(frozen=True, slots=True)
class Approval:
    """Immutable record of an allowance being set."""
    symbol: str
    owner: str
    spender: str
    amount: Decimal
    sequence_number: int


# ============================================================================
# TOKEN LEDGER
# ============================================================================

class TokenLedger:
    """
    Multi-asset balance book with allowance-based delegated transfers.

    Design Principles:
        - Always validates: every movement is checked against allowance and
          balance before anything is applied, so a failed call changes nothing.
        - Always logs: every applied movement and approval is recorded in order.

    Thread Safety:
        Mutations are serialized by an internal lock. A LendingPool calls in
        while holding its own lock, never the other way round.

    Example:
        tokens = TokenLedger("chain")
        tokens.register_asset(collateral_usd())
        tokens.issue("cUSD", "alice", Decimal("1000"))
        tokens.approve("cUSD", "alice", "pool", Decimal("500"))
        tokens.transfer_from("cUSD", "pool", "alice", "pool", Decimal("500"))
    """

    def __init__(self, name: str, verbose: bool = True):
        """
        Create a token ledger.

        Args:
            name: Ledger identifier
            verbose: Print a line for every applied or rejected movement
        """
        self.name = name
        self.verbose = verbose
        self.assets: Dict[str, Asset] = {}
        self.balances: Dict[str, Dict[str, Decimal]] = defaultdict(lambda: defaultdict(lambda: ZERO))
        self.allowances: Dict[Tuple[str, str, str], Decimal] = {}
        self.transfer_log: List[Transfer] = []
        self.approval_log: List[Approval] = []
        self._next_sequence: int = 0
        self._lock = threading.RLock()

    # ========================================================================
    # READ-ONLY QUERIES
    # ========================================================================

    def get_asset(self, symbol: str) -> Asset:
        """Return the Asset for a registered symbol."""
        if symbol not in self.assets:
            raise AssetNotRegistered(f"Asset {symbol} not registered")
        return self.assets[symbol]

    def list_assets(self) -> List[str]:
        """List all registered asset symbols."""
        return sorted(self.assets.keys())

    def balance_of(self, symbol: str, holder: str) -> Decimal:
        """
        Get holder's balance of an asset.

        Returns Decimal("0") for accounts that have never held the asset.

        Raises:
            AssetNotRegistered: If the asset is not registered
        """
        self.get_asset(symbol)
        return self.balances[symbol].get(holder, ZERO)

    def allowance(self, symbol: str, owner: str, spender: str) -> Decimal:
        """Amount spender may still move out of owner's balance."""
        self.get_asset(symbol)
        return self.allowances.get((symbol, owner, spender), ZERO)

    def total_supply(self, symbol: str) -> Decimal:
        """Total issued supply: everything held outside the system account."""
        self.get_asset(symbol)
        with lending_context():
            return -self.balances[symbol].get(SYSTEM_ACCOUNT, ZERO)

    def verify_conservation(self) -> Dict[str, Any]:
        """
        Verify that balances of every asset sum to zero.

        Issuance debits SYSTEM_ACCOUNT, so any movement that created or
        destroyed value shows up as a non-zero sum.

        Returns:
            Dict with keys:
            - 'valid': bool - True if every asset balances
            - 'supplies': Dict[str, Decimal] - issued supply per asset
            - 'discrepancies': List[Dict] - asset and non-zero sum for each violation
        """
        supplies = {}
        discrepancies = []
        for symbol in self.list_assets():
            supplies[symbol] = self.total_supply(symbol)
            with lending_context():
                net = sum((self.balances[symbol][a] for a in sorted(self.balances[symbol])), ZERO)
            if net != 0:
                discrepancies.append({'asset': symbol, 'net': net})
        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_asset(self, asset: Asset) -> None:
        """
        Register a new asset.

        Raises:
            ValueError: If the symbol is already registered
        """
        with self._lock:
            if asset.symbol in self.assets:
                raise ValueError(f"Asset {asset.symbol} already registered")
            self.assets[asset.symbol] = asset
            if self.verbose:
                print(f"📝 Registered: {asset.symbol} ({asset.name}) [{asset.decimal_places} dp]")

    # ========================================================================
    # MOVEMENTS (Mutating)
    # ========================================================================

    def issue(self, symbol: str, to: str, amount: Decimal) -> Transfer:
        """Create new supply of an asset and credit it to an account."""
        with self._lock, lending_context():
            return self._transfer(symbol, SYSTEM_ACCOUNT, to, amount)

    def transfer(self, symbol: str, source: str, dest: str, amount: Decimal) -> Transfer:
        """
        Move amount from source to dest.

        Raises:
            InsufficientBalance: If source holds less than amount
        """
        with self._lock, lending_context():
            return self._transfer(symbol, source, dest, amount)

    def approve(self, symbol: str, owner: str, spender: str, amount: Decimal) -> Approval:
        """Set (not add to) the amount spender may move out of owner's balance."""
        with self._lock, lending_context():
            asset = self.get_asset(symbol)
            validate_account(owner)
            validate_account(spender)
            validate_amount(amount, asset)
            self.allowances[(symbol, owner, spender)] = amount
            approval = Approval(symbol, owner, spender, amount, self._take_sequence())
            self.approval_log.append(approval)
            return approval

    def transfer_from(self, symbol: str, spender: str, source: str, dest: str, amount: Decimal) -> Transfer:
        """
        Move amount from source to dest on source's behalf.

        The allowance is checked before the balance; both checks complete
        before either the allowance or any balance changes.

        Raises:
            InsufficientAllowance: If spender's allowance from source is below amount
            InsufficientBalance: If source holds less than amount
        """
        with self._lock, lending_context():
            asset = self.get_asset(symbol)
            validate_account(spender)
            validate_amount(amount, asset)
            key = (symbol, source, spender)
            current = self.allowances.get(key, ZERO)
            if current < amount:
                self._reject(f"allowance {source}→{spender} {current} < {amount} {symbol}")
                raise InsufficientAllowance(
                    f"{spender} may move {current} {symbol} from {source}, needs {amount}"
                )
            record = self._transfer(symbol, source, dest, amount)
            self.allowances[key] = current - amount
            return record

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _take_sequence(self) -> int:
        sequence = self._next_sequence
        self._next_sequence += 1
        return sequence

    def _reject(self, reason: str) -> None:
        if self.verbose:
            print(f"✗ REJECTED: {reason}")

    def _transfer(self, symbol: str, source: str, dest: str, amount: Decimal) -> Transfer:
        """Validate and apply a single movement. Caller holds the lock."""
        asset = self.get_asset(symbol)
        validate_account(source)
        validate_account(dest)
        validate_amount(amount, asset)

        book = self.balances[symbol]
        # Note: SYSTEM_ACCOUNT is exempt from balance validation - it can go negative
        if source != SYSTEM_ACCOUNT and book[source] < amount:
            self._reject(f"{source} {symbol}: {book[source]} < {amount}")
            raise InsufficientBalance(
                f"{source} holds {book[source]} {symbol}, needs {amount}"
            )

        if source != dest:
            book[source] = book[source] - amount
            book[dest] = book[dest] + amount

        record = Transfer(symbol, source, dest, amount, self._take_sequence())
        self.transfer_log.append(record)
        if self.verbose:
            print(f"✓ {record!r}")
        return record


# ============================================================================
# GATEWAY
# ============================================================================

class TokenGateway:
    """
    TransferGateway over one asset of a TokenLedger.

    move_in spends the allowance the account granted to the custody account,
    so a deposit or repay fails with InsufficientAllowance until the account
    has approved at least the amount being moved.
    """

    def __init__(self, tokens: TokenLedger, symbol: str, custody_account: str):
        self._tokens = tokens
        self._symbol = symbol
        self._custody_account = validate_account(custody_account)
        # Fail at construction rather than on first use
        tokens.get_asset(symbol)

    @property
    def asset(self) -> Asset:
        return self._tokens.get_asset(self._symbol)

    @property
    def custody_account(self) -> str:
        return self._custody_account

    def move_in(self, account: str, amount: Decimal) -> None:
        self._tokens.transfer_from(
            self._symbol, self._custody_account, account, self._custody_account, amount
        )

    def move_out(self, account: str, amount: Decimal) -> None:
        self._tokens.transfer(self._symbol, self._custody_account, account, amount)

    def balance_of(self, holder: str) -> Decimal:
        return self._tokens.balance_of(self._symbol, holder)

    def __repr__(self) -> str:
        return f"TokenGateway({self._symbol} via {self._tokens.name}, custody={self._custody_account})"
