"""
deployment.py - Bootstrap a complete lending market

Mirrors how the facility is stood up in practice:
    1. Both tokens are created and their full initial supply is issued to the deployer
    2. The pool is created with one gateway per token, custody held under the pool's name
    3. The deployer seeds the pool with loan asset liquidity

Test users are funded afterwards by transfers from the deployer.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .core import Asset
from .policy import DEFAULT_POLICY, ProtocolPolicy
from .pool import LendingPool
from .tokens import TokenGateway, TokenLedger, Transfer, collateral_usd, loan_dai


INITIAL_TOKEN_SUPPLY = Decimal("1000000")
DEFAULT_POOL_LIQUIDITY = Decimal("100000")
DEFAULT_DEPLOYER = "deployer"


@dataclass(frozen=True, slots=True)
class LendingMarket:
    """Everything a deployment produces, wired together."""
    tokens: TokenLedger
    pool: LendingPool
    deployer: str

    @property
    def collateral_symbol(self) -> str:
        return self.pool.collateral_asset.symbol

    @property
    def loan_symbol(self) -> str:
        return self.pool.loan_asset.symbol

    def fund(self, account: str, symbol: str, amount: Decimal) -> Transfer:
        """Transfer tokens from the deployer to an account."""
        return self.tokens.transfer(symbol, self.deployer, account, amount)

    def approve_pool(self, account: str, symbol: str, amount: Decimal) -> None:
        """Let the pool pull up to amount of symbol from account."""
        self.tokens.approve(symbol, account, self.pool.name, amount)


def deploy_lending_market(
    name: str = "lending_pool",
    deployer: str = DEFAULT_DEPLOYER,
    liquidity: Decimal = DEFAULT_POOL_LIQUIDITY,
    collateral_asset: Optional[Asset] = None,
    loan_asset: Optional[Asset] = None,
    initial_supply: Decimal = INITIAL_TOKEN_SUPPLY,
    initial_time: Optional[datetime] = None,
    policy: ProtocolPolicy = DEFAULT_POLICY,
    verbose: bool = True,
) -> LendingMarket:
    """
    Create tokens, gateways and a pool, and seed the pool with liquidity.

    Args:
        name: Pool name, also used as its custody account on the token ledger
        deployer: Account that receives the initial supply of both tokens
        liquidity: Loan asset moved from the deployer into pool custody
        collateral_asset: Defaults to Collateral USD (cUSD)
        loan_asset: Defaults to Loan DAI (dDAI)
        initial_supply: Supply issued to the deployer for each token
        initial_time: Starting logical time of the pool
        policy: Protocol constants. DEFAULT_POLICY outside tests and simulations.
        verbose: Print token movements and pool operations

    Returns:
        A LendingMarket holding the token ledger, the pool and the deployer id

    Raises:
        ValueError: If liquidity exceeds the initial supply
    """
    if liquidity > initial_supply:
        raise ValueError(f"liquidity {liquidity} exceeds initial supply {initial_supply}")

    collateral_asset = collateral_asset or collateral_usd()
    loan_asset = loan_asset or loan_dai()

    tokens = TokenLedger(f"{name}_tokens", verbose=verbose)
    tokens.register_asset(collateral_asset)
    tokens.register_asset(loan_asset)
    tokens.issue(collateral_asset.symbol, deployer, initial_supply)
    tokens.issue(loan_asset.symbol, deployer, initial_supply)

    pool = LendingPool(
        name,
        collateral=TokenGateway(tokens, collateral_asset.symbol, custody_account=name),
        loan=TokenGateway(tokens, loan_asset.symbol, custody_account=name),
        initial_time=initial_time,
        policy=policy,
        verbose=verbose,
    )

    if liquidity > 0:
        tokens.transfer(loan_asset.symbol, deployer, name, liquidity)

    return LendingMarket(tokens=tokens, pool=pool, deployer=deployer)
