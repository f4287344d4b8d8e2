"""
lending - Collateralized Lending Ledger

Tracks, per account, posted collateral, outstanding debt and weekly stepped
simple interest, and settles deposits, borrows, repayments and withdrawals as
atomic state transitions against a fixed 150% collateral ratio.

Usage:
    from decimal import Decimal
    from lending import deploy_lending_market

    market = deploy_lending_market(verbose=False)
    market.fund("alice", "cUSD", Decimal("2000"))
    market.approve_pool("alice", "cUSD", Decimal("2000"))

    pool = market.pool
    pool.deposit("alice", Decimal("2000"))
    pool.borrow("alice", Decimal("1000"))

    collateral, debt, interest = pool.get_position("alice")
"""

# Core types
from .core import (
    Asset,
    Position,
    PositionReport,
    PoolEvent,
    TransferGateway,
    EMPTY_POSITION,
    floor_amount,
    validate_amount,
    lending_context,
    LendingError,
    InsufficientBalance,
    InsufficientAllowance,
    InsufficientCollateral,
    InsufficientLiquidity,
    NoDebtToRepay,
    OutstandingDebt,
    NoCollateral,
    AssetNotRegistered,
    SYSTEM_ACCOUNT,
    TOKEN_DECIMALS,
    MAX_BASE_UNITS,
    SECONDS_PER_WEEK,
    ONE_WEEK,
    EVENT_DEPOSITED,
    EVENT_BORROWED,
    EVENT_REPAID,
    EVENT_WITHDRAWN,
    STATUS_EMPTY,
    STATUS_COLLATERALIZED,
    STATUS_BORROWED,
)

# Protocol policy
from .policy import (
    ProtocolPolicy,
    DEFAULT_POLICY,
    required_collateral,
    collateral_value,
    can_borrow,
)

# Interest
from .interest import (
    calculate_interest,
    calculate_total_owed,
    weeks_elapsed,
)

# Tokens and gateways
from .tokens import (
    TokenLedger,
    TokenGateway,
    Transfer,
    Approval,
    collateral_usd,
    loan_dai,
)

# Pool
from .pool import LendingPool

# Deployment
from .deployment import (
    LendingMarket,
    deploy_lending_market,
    INITIAL_TOKEN_SUPPLY,
    DEFAULT_POOL_LIQUIDITY,
    DEFAULT_DEPLOYER,
)

__all__ = [
    # Core
    'Asset', 'Position', 'PositionReport', 'PoolEvent', 'TransferGateway',
    'EMPTY_POSITION', 'floor_amount', 'validate_amount', 'lending_context',
    'LendingError', 'InsufficientBalance', 'InsufficientAllowance',
    'InsufficientCollateral', 'InsufficientLiquidity', 'NoDebtToRepay',
    'OutstandingDebt', 'NoCollateral', 'AssetNotRegistered',
    'SYSTEM_ACCOUNT', 'TOKEN_DECIMALS', 'MAX_BASE_UNITS', 'SECONDS_PER_WEEK', 'ONE_WEEK',
    'EVENT_DEPOSITED', 'EVENT_BORROWED', 'EVENT_REPAID', 'EVENT_WITHDRAWN',
    'STATUS_EMPTY', 'STATUS_COLLATERALIZED', 'STATUS_BORROWED',
    # Policy
    'ProtocolPolicy', 'DEFAULT_POLICY', 'required_collateral', 'collateral_value', 'can_borrow',
    # Interest
    'calculate_interest', 'calculate_total_owed', 'weeks_elapsed',
    # Tokens
    'TokenLedger', 'TokenGateway', 'Transfer', 'Approval', 'collateral_usd', 'loan_dai',
    # Pool
    'LendingPool',
    # Deployment
    'LendingMarket', 'deploy_lending_market',
    'INITIAL_TOKEN_SUPPLY', 'DEFAULT_POOL_LIQUIDITY', 'DEFAULT_DEPLOYER',
]

__version__ = '1.0.0'
