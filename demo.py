#!/usr/bin/env python3
"""
demo.py - Walkthrough: One Borrower, One Loan, Start to Finish

Follows a single account through the full position lifecycle on a freshly
deployed market. Press Enter to advance.

WHAT YOU'LL SEE:
  1-2: Setup      - Deploying the market, funding the borrower
  3-4: Borrowing  - Posting collateral, the 150% rule, drawing a loan
  5-6: Repayment  - A week of interest, repaying principal plus interest
  7-8: Exit       - Withdrawing collateral, custody and conservation checks

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
import sys

from lending import (
    deploy_lending_market, LendingMarket,
    InsufficientCollateral, ONE_WEEK,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the walkthrough. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)
    borrower: str = "alice"

    collateral_funding: Decimal = Decimal("5000")
    deposit: Decimal = Decimal("2000")
    greedy_borrow: Decimal = Decimal("2000")
    borrow: Decimal = Decimal("1000")

    # Extra dDAI to cover interest on repay
    interest_funding: Decimal = Decimal("100")


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def show_position(market: LendingMarket):
    collateral, debt, interest = market.pool.get_position(CONFIG.borrower)
    print(f"Collateral: {collateral:>12} cUSD")
    print(f"Debt:       {debt:>12} dDAI")
    print(f"Interest:   {interest:>12} dDAI")


# ============================================================================
# SETUP (Steps 1-2)
# ============================================================================

def step_01_deploy() -> LendingMarket:
    """Deploy tokens, gateways and the pool."""
    step_header(1, "Deploying the Market",
        "Two tokens, one pool. The pool is seeded with loan liquidity.")

    print("""
>>> from lending import deploy_lending_market
>>> market = deploy_lending_market(initial_time=...)
""")
    market = deploy_lending_market(initial_time=CONFIG.start_time, verbose=True)

    section_header("Pool Liquidity")
    print(f"Available to lend: {market.pool.available_liquidity()} {market.loan_symbol}")
    return market


def step_02_fund(market: LendingMarket):
    """Give the borrower collateral and enough dDAI to cover interest."""
    step_header(2, "Funding the Borrower",
        "Tokens move from the deployer to the borrower. The pool is not involved yet.")

    market.fund(CONFIG.borrower, market.collateral_symbol, CONFIG.collateral_funding)
    market.fund(CONFIG.borrower, market.loan_symbol, CONFIG.interest_funding)


# ============================================================================
# BORROWING (Steps 3-4)
# ============================================================================

def step_03_deposit(market: LendingMarket):
    """Approve the pool and post collateral."""
    step_header(3, "Posting Collateral",
        "The pool can only pull tokens the borrower has approved.")

    print(f"""
>>> market.approve_pool("{CONFIG.borrower}", "cUSD", Decimal("{CONFIG.deposit}"))
>>> market.pool.deposit("{CONFIG.borrower}", Decimal("{CONFIG.deposit}"))
""")
    market.approve_pool(CONFIG.borrower, market.collateral_symbol, CONFIG.deposit)
    market.pool.deposit(CONFIG.borrower, CONFIG.deposit)

    section_header("Position")
    show_position(market)


def step_04_borrow(market: LendingMarket):
    """Show the collateral check rejecting, then accepting, a borrow."""
    step_header(4, "Borrowing Against Collateral",
        "A borrow needs collateral worth at least 150% of the amount.")

    section_header(f"Attempt: borrow {CONFIG.greedy_borrow}")
    try:
        market.pool.borrow(CONFIG.borrower, CONFIG.greedy_borrow)
    except InsufficientCollateral as e:
        print(f"Rejected as expected: {e}")

    section_header(f"Attempt: borrow {CONFIG.borrow}")
    market.pool.borrow(CONFIG.borrower, CONFIG.borrow)
    show_position(market)


# ============================================================================
# REPAYMENT (Steps 5-6)
# ============================================================================

def step_05_accrue(market: LendingMarket):
    """Advance the clock one week and watch interest appear."""
    step_header(5, "A Week of Interest",
        "Interest is 5% per WHOLE week. Nothing accrues until a week has passed.")

    market.pool.advance_time(CONFIG.start_time + ONE_WEEK / 2)
    section_header("Half a Week Later")
    show_position(market)

    market.pool.advance_time(CONFIG.start_time + ONE_WEEK)
    section_header("One Week Later")
    show_position(market)


def step_06_repay(market: LendingMarket):
    """Repay principal plus interest in one move."""
    step_header(6, "Repaying the Loan",
        "Repay always settles the full debt plus interest. There are no partial repays.")

    owed = market.pool.get_position(CONFIG.borrower).total_owed
    print(f"Total owed: {owed} dDAI")

    market.approve_pool(CONFIG.borrower, market.loan_symbol, owed)
    market.pool.repay(CONFIG.borrower)

    section_header("Position")
    show_position(market)


# ============================================================================
# EXIT (Steps 7-8)
# ============================================================================

def step_07_withdraw(market: LendingMarket):
    """Take all collateral back once the debt is gone."""
    step_header(7, "Withdrawing Collateral",
        "Withdrawal returns ALL collateral and is only allowed with zero debt.")

    market.pool.withdraw_collateral(CONFIG.borrower)

    section_header("Borrower Balances")
    tokens = market.tokens
    print(f"cUSD: {tokens.balance_of(market.collateral_symbol, CONFIG.borrower)}")
    print(f"dDAI: {tokens.balance_of(market.loan_symbol, CONFIG.borrower)}")


def step_08_checks(market: LendingMarket):
    """Verify custody and token conservation."""
    step_header(8, "Custody and Conservation",
        "The pool holds what its positions record, and no token was created or lost.")

    custody = market.pool.verify_custody()
    conservation = market.tokens.verify_conservation()

    print(f"Custody valid:        {custody['valid']}")
    print(f"Collateral recorded:  {custody['collateral_recorded']}")
    print(f"Collateral held:      {custody['collateral_held']}")
    print(f"Tokens conserved:     {conservation['valid']}")

    section_header("Event Log")
    for event in market.pool.event_log:
        print(f"  #{event.sequence_number} {event.timestamp}  {event!r}")


def main():
    """Run the complete walkthrough."""
    print("=" * 70)
    print("       LENDING LEDGER - WALKTHROUGH")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")

    market = step_01_deploy()
    wait_for_enter()

    step_02_fund(market)
    wait_for_enter()

    step_03_deposit(market)
    wait_for_enter()

    step_04_borrow(market)
    wait_for_enter()

    step_05_accrue(market)
    wait_for_enter()

    step_06_repay(market)
    wait_for_enter()

    step_07_withdraw(market)
    wait_for_enter()

    step_08_checks(market)

    print("\n" + "=" * 70)
    print("       WALKTHROUGH COMPLETE")
    print("=" * 70)


if __name__ == "__main__":
    main()
