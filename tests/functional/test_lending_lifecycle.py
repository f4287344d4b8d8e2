"""
test_lending_lifecycle.py - End-to-end lending scenarios on a deployed market

Tests complete flows through the token ledger and the pool:
- Deployment state
- Deposit, borrow, repay and withdraw with their events
- Interest after one and several weeks
- Full lending cycle
- Multiple independent users
"""

import pytest
from decimal import Decimal

from lending import (
    InsufficientBalance, InsufficientAllowance, InsufficientCollateral,
    NoDebtToRepay, OutstandingDebt, NoCollateral,
    EVENT_DEPOSITED, EVENT_BORROWED, EVENT_REPAID, EVENT_WITHDRAWN,
)

from tests.conftest import START, ONE_WEEK, USER_FUNDING, approve_and_deposit, approve_and_repay


class TestDeployment:

    def test_constants(self, market):
        assert market.pool.policy.interest_rate_percent == Decimal("5")
        assert market.pool.policy.collateral_ratio_percent == Decimal("150")

    def test_initial_liquidity(self, market):
        assert market.tokens.balance_of("dDAI", market.pool.name) == Decimal("100000")


class TestDepositCollateral:

    def test_success(self, funded_market):
        approve_and_deposit(funded_market, "user1", Decimal("1000"))
        report = funded_market.pool.get_position("user1")
        assert report.collateral == Decimal("1000")
        assert report.debt == Decimal("0")

    def test_event(self, funded_market):
        event = approve_and_deposit(funded_market, "user1", Decimal("1000"))
        assert (event.kind, event.account, event.amount) == (EVENT_DEPOSITED, "user1", Decimal("1000"))

    def test_more_than_held(self, funded_market):
        funded_market.approve_pool("user1", "cUSD", Decimal("20000"))
        with pytest.raises(InsufficientBalance):
            funded_market.pool.deposit("user1", Decimal("20000"))

    def test_not_approved(self, funded_market):
        with pytest.raises(InsufficientAllowance):
            funded_market.pool.deposit("user1", Decimal("1000"))


class TestBorrow:

    @pytest.fixture(autouse=True)
    def deposited(self, funded_market):
        approve_and_deposit(funded_market, "user1", Decimal("2000"))

    def test_success(self, funded_market):
        before = funded_market.tokens.balance_of("dDAI", "user1")
        funded_market.pool.borrow("user1", Decimal("1000"))
        assert funded_market.pool.get_position("user1").debt == Decimal("1000")
        assert funded_market.tokens.balance_of("dDAI", "user1") == before + Decimal("1000")

    def test_event(self, funded_market):
        event = funded_market.pool.borrow("user1", Decimal("1000"))
        assert (event.kind, event.account, event.amount) == (EVENT_BORROWED, "user1", Decimal("1000"))

    def test_insufficient_collateral(self, funded_market):
        """2000 dDAI would need 3000 cUSD."""
        with pytest.raises(InsufficientCollateral):
            funded_market.pool.borrow("user1", Decimal("2000"))

    def test_no_collateral(self, funded_market):
        with pytest.raises(InsufficientCollateral):
            funded_market.pool.borrow("user2", Decimal("1000"))


class TestRepay:

    def test_success(self, borrowed_market):
        approve_and_repay(borrowed_market, "user1")
        assert borrowed_market.pool.get_position("user1").debt == Decimal("0")

    def test_event_carries_total(self, borrowed_market):
        owed = borrowed_market.pool.get_position("user1").total_owed
        event = approve_and_repay(borrowed_market, "user1")
        assert (event.kind, event.account, event.amount) == (EVENT_REPAID, "user1", owed)

    def test_no_debt(self, borrowed_market):
        with pytest.raises(NoDebtToRepay):
            borrowed_market.pool.repay("user2")

    def test_not_approved(self, borrowed_market):
        with pytest.raises(InsufficientAllowance):
            borrowed_market.pool.repay("user1")


class TestWithdrawCollateral:

    @pytest.fixture(autouse=True)
    def deposited(self, funded_market):
        approve_and_deposit(funded_market, "user1", Decimal("1000"))

    def test_success(self, funded_market):
        before = funded_market.tokens.balance_of("cUSD", "user1")
        funded_market.pool.withdraw_collateral("user1")
        assert funded_market.tokens.balance_of("cUSD", "user1") == before + Decimal("1000")
        assert funded_market.pool.get_position("user1").collateral == Decimal("0")

    def test_event(self, funded_market):
        event = funded_market.pool.withdraw_collateral("user1")
        assert (event.kind, event.account, event.amount) == (EVENT_WITHDRAWN, "user1", Decimal("1000"))

    def test_outstanding_debt(self, funded_market):
        funded_market.pool.borrow("user1", Decimal("500"))
        with pytest.raises(OutstandingDebt):
            funded_market.pool.withdraw_collateral("user1")

    def test_no_collateral(self, funded_market):
        with pytest.raises(NoCollateral):
            funded_market.pool.withdraw_collateral("user2")


class TestInterestCalculation:

    def test_one_week(self, borrowed_market):
        borrowed_market.pool.advance_time(START + ONE_WEEK)
        assert borrowed_market.pool.get_position("user1").interest == Decimal("50")

    def test_three_weeks(self, borrowed_market):
        borrowed_market.pool.advance_time(START + 3 * ONE_WEEK)
        assert borrowed_market.pool.get_position("user1").interest == Decimal("150")

    def test_no_debt_no_interest(self, borrowed_market):
        borrowed_market.pool.advance_time(START + 3 * ONE_WEEK)
        assert borrowed_market.pool.get_position("user2").interest == Decimal("0")

    def test_no_time_no_interest(self, borrowed_market):
        report = borrowed_market.pool.get_position("user1")
        assert (report.collateral, report.debt, report.interest) == (
            Decimal("2000"), Decimal("1000"), Decimal("0")
        )


class TestIntegration:

    def test_complete_lending_cycle(self, funded_market):
        market = funded_market
        pool = market.pool

        approve_and_deposit(market, "user1", Decimal("2000"))
        pool.borrow("user1", Decimal("1000"))
        pool.advance_time(START + ONE_WEEK)

        # Top up the borrower so they can cover interest
        owed = pool.get_position("user1").total_owed
        shortfall = owed - market.tokens.balance_of("dDAI", "user1")
        if shortfall > 0:
            market.fund("user1", "dDAI", shortfall)

        approve_and_repay(market, "user1")
        pool.withdraw_collateral("user1")

        report = pool.get_position("user1")
        assert (report.collateral, report.debt, report.interest) == (
            Decimal("0"), Decimal("0"), Decimal("0")
        )
        assert market.tokens.balance_of("cUSD", "user1") == USER_FUNDING
        assert [e.kind for e in pool.events_for("user1")] == [
            EVENT_DEPOSITED, EVENT_BORROWED, EVENT_REPAID, EVENT_WITHDRAWN,
        ]

    def test_multiple_users(self, funded_market):
        market = funded_market
        pool = market.pool

        approve_and_deposit(market, "user1", Decimal("2000"))
        pool.borrow("user1", Decimal("1000"))
        approve_and_deposit(market, "user2", Decimal("1500"))
        pool.borrow("user2", Decimal("500"))

        first = pool.get_position("user1")
        second = pool.get_position("user2")
        assert (first.collateral, first.debt) == (Decimal("2000"), Decimal("1000"))
        assert (second.collateral, second.debt) == (Decimal("1500"), Decimal("500"))
        assert pool.available_liquidity() == Decimal("98500")

    def test_repay_then_borrow_again(self, borrowed_market):
        market = borrowed_market
        pool = market.pool
        approve_and_repay(market, "user1")
        pool.borrow("user1", Decimal("1200"))
        assert pool.get_position("user1").debt == Decimal("1200")
