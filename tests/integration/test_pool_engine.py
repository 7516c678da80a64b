"""End-to-end tests for the pool engine (asset units, oracles, staging)."""

from __future__ import annotations

import logging

import pytest

from ramm.core.errors import (
    BelowMinimumTradeError,
    DepositsDisabledError,
    FeedMismatchError,
    InputError,
    NoLiquidityError,
    NotAuthorizedError,
    StalePriceError,
    UnknownAssetError,
    WrongPhaseError,
)
from ramm.core.fixed_point import LP_PREC, ONE
from ramm.core.oracle import ManualPriceFeed
from ramm.core.trade import TradeOutcome
from ramm.integration.engine import PoolEngine
from ramm.integration.events import EventKind
from ramm.state.pool import AdminCredential, create_pool
from tests.pool_fixtures import NOW, FixedClock, make_engine, make_feeds


ETH = 10**8
USDC = 10**6
LP_ONE = 10**LP_PREC
PRICES = {"ETH": 2000, "USDC": 1}


@pytest.fixture
def funded():
    """ETH/USDC pool holding 10 ETH and 20,000 USDC at 2000 USDC/ETH."""
    engine, admin, clock = make_engine()
    feeds = make_feeds(PRICES)
    engine.deposit("ETH", 10 * ETH, feeds)
    engine.deposit("USDC", 20_000 * USDC, feeds)
    return engine, admin, clock, feeds


# ---------------------------------------------------------------------------
# Deposits
# ---------------------------------------------------------------------------

class TestDeposit:
    def test_seed_deposits(self, funded) -> None:
        engine, _, _, _ = funded
        eth, usdc = engine.pool.assets
        assert eth.balance == 10 * ETH
        assert eth.claim_tokens_issued == 10 * LP_ONE
        assert usdc.balance == 20_000 * USDC
        assert usdc.claim_tokens_issued == 20_000 * LP_ONE

    def test_receipt_and_event(self, funded) -> None:
        engine, _, _, feeds = funded
        receipt = engine.deposit("ETH", ETH, feeds)
        assert receipt.claim_tokens == LP_ONE
        assert engine.events.of_kind(EventKind.LIQUIDITY_DEPOSITED)[-1].data["claim_tokens"] == LP_ONE

    def test_disabled(self, funded) -> None:
        engine, admin, _, feeds = funded
        engine.disable_deposits(admin, "ETH")
        with pytest.raises(DepositsDisabledError):
            engine.deposit("ETH", ETH, feeds)

    def test_zero_amount_rejected(self, funded) -> None:
        engine, _, _, feeds = funded
        before = engine.pool.slot("USDC").balance
        with pytest.raises(InputError):
            engine.deposit("USDC", 0, feeds)
        assert engine.pool.slot("USDC").balance == before

    def test_dust_rejected_and_refunded(self) -> None:
        engine, _, _ = make_engine(assets=(("ETH", 8), ("WEI", 12)))
        feeds = make_feeds({"ETH": 2000, "WEI": 1})
        engine.deposit("ETH", ETH, feeds)
        with pytest.raises(InputError):
            engine.deposit("WEI", 1, feeds)
        assert engine.pool.slot("WEI").balance == 0
        rejected = engine.events.of_kind(EventKind.DEPOSIT_REJECTED)
        assert [e.data["refund"] for e in rejected] == [1]

    def test_below_minimum(self) -> None:
        engine, _, _ = make_engine(min_trade_amount=1000)
        with pytest.raises(BelowMinimumTradeError):
            engine.deposit("ETH", 999, make_feeds(PRICES))

    def test_unknown_asset(self, funded) -> None:
        engine, _, _, feeds = funded
        with pytest.raises(UnknownAssetError):
            engine.deposit("DOGE", 1, feeds)


# ---------------------------------------------------------------------------
# Trading
# ---------------------------------------------------------------------------

class TestTrade:
    def test_trade_in(self, funded) -> None:
        engine, _, _, feeds = funded
        receipt = engine.trade_in("ETH", "USDC", ETH, 0, feeds)
        assert receipt.executed
        assert 1_990 * USDC < receipt.amount_out < 1_998 * USDC
        assert receipt.protocol_fee == 30_000
        eth, usdc = engine.pool.assets
        assert eth.balance == 11 * ETH - 30_000
        assert eth.collected_fees == 30_000
        assert usdc.balance == 20_000 * USDC - receipt.amount_out
        assert engine.events.of_kind(EventKind.TRADE_EXECUTED)[-1].data["amount_out"] == receipt.amount_out

    def test_trade_in_slippage_refunds(self, funded) -> None:
        engine, _, _, feeds = funded
        before = [a.balance for a in engine.pool.assets]
        receipt = engine.trade_in("ETH", "USDC", ETH, 2_000 * USDC, feeds)
        assert receipt.outcome is TradeOutcome.FAILED_SLIPPAGE
        assert receipt.refund == ETH
        assert receipt.amount_out == 0
        assert [a.balance for a in engine.pool.assets] == before
        assert engine.events.of_kind(EventKind.TRADE_FAILED)[-1].data["outcome"] == "failed_slippage"

    def test_trade_out_refunds_unused(self, funded) -> None:
        engine, _, _, feeds = funded
        receipt = engine.trade_out("ETH", "USDC", 1_000 * USDC, ETH, feeds)
        assert receipt.executed
        assert receipt.amount_out == 1_000 * USDC
        assert ETH // 2 < receipt.amount_in < ETH
        assert receipt.refund == ETH - receipt.amount_in
        assert engine.pool.slot("USDC").balance == 19_000 * USDC

    def test_trade_out_max_in_too_low(self, funded) -> None:
        engine, _, _, feeds = funded
        receipt = engine.trade_out("ETH", "USDC", 1_000 * USDC, ETH // 2, feeds)
        assert receipt.outcome is TradeOutcome.FAILED_SLIPPAGE
        assert receipt.refund == ETH // 2

    def test_imbalancing_trade_fails_and_refunds(self, funded) -> None:
        engine, _, _, feeds = funded
        receipt = engine.trade_in("ETH", "USDC", 4 * ETH, 0, feeds)
        assert receipt.outcome is TradeOutcome.FAILED_POOL_IMBALANCE
        assert receipt.refund == 4 * ETH
        assert engine.pool.slot("USDC").balance == 20_000 * USDC

    def test_below_minimum(self) -> None:
        engine, _, _ = make_engine(min_trade_amount=1000)
        with pytest.raises(BelowMinimumTradeError):
            engine.trade_in("ETH", "USDC", 999, 0, make_feeds(PRICES))

    def test_same_asset(self, funded) -> None:
        engine, _, _, feeds = funded
        with pytest.raises(InputError):
            engine.trade_in("ETH", "ETH", ETH, 0, feeds)

    def test_no_liquidity(self) -> None:
        engine, _, _ = make_engine()
        feeds = make_feeds(PRICES)
        engine.deposit("ETH", ETH, feeds)
        with pytest.raises(NoLiquidityError):
            engine.trade_in("ETH", "USDC", ETH // 10, 0, feeds)

    def test_volatility_surcharge(self, funded) -> None:
        engine, _, clock, _ = funded
        clock.advance(10)
        moved = make_feeds({"ETH": 2010, "USDC": 1}, timestamp=clock.now)
        receipt = engine.trade_in("ETH", "USDC", ETH, 0, moved)
        assert receipt.executed
        # 0.03% protocol share of the trading fee plus the 0.5% move
        assert receipt.protocol_fee == 530_000
        eth = engine.pool.slot("ETH")
        assert eth.previous_price == 2010 * ONE
        assert eth.volatility_index == ONE // 200
        assert eth.volatility_timestamp == clock.now

    def test_failed_trade_still_records_prices(self, funded) -> None:
        engine, _, clock, _ = funded
        clock.advance(5)
        moved = make_feeds({"ETH": 2001, "USDC": 1}, timestamp=clock.now)
        receipt = engine.trade_in("ETH", "USDC", ETH, 10**6 * USDC, moved)
        assert not receipt.executed
        assert engine.pool.slot("ETH").previous_price == 2001 * ONE
        assert engine.pool.slot("ETH").previous_price_timestamp == clock.now


# ---------------------------------------------------------------------------
# Withdrawals
# ---------------------------------------------------------------------------

class TestWithdraw:
    def test_round_trip(self, funded) -> None:
        engine, _, _, feeds = funded
        claims = engine.deposit("ETH", ETH, feeds).claim_tokens
        receipt = engine.withdraw("ETH", claims, feeds)
        assert receipt.payouts == {"ETH": ETH}
        assert receipt.fees == {}
        assert receipt.claim_tokens_burned == claims
        assert receipt.claim_tokens_returned == 0
        assert receipt.remaining == 0
        assert engine.pool.slot("ETH").balance == 10 * ETH
        assert engine.pool.slot("ETH").claim_tokens_issued == 10 * LP_ONE

    def test_spill_over_pays_fee(self, funded) -> None:
        engine, _, _, feeds = funded
        # buying ETH leaves it under-supplied (r_ETH ~ 0.8)
        assert engine.trade_in("USDC", "ETH", 4_000 * USDC, 0, feeds).executed
        fees_before = engine.pool.slot("USDC").collected_fees
        receipt = engine.withdraw("ETH", 9 * LP_ONE, feeds)
        assert set(receipt.payouts) == {"ETH", "USDC"}
        assert receipt.payouts["ETH"] < 8 * ETH
        assert receipt.fees["USDC"] > 0
        assert engine.pool.slot("USDC").collected_fees - fees_before == receipt.fees["USDC"]
        assert receipt.remaining == 0
        assert receipt.claim_tokens_returned == 0

    def test_more_than_issued(self, funded) -> None:
        engine, _, _, feeds = funded
        with pytest.raises(InputError):
            engine.withdraw("ETH", 11 * LP_ONE, feeds)


# ---------------------------------------------------------------------------
# Large pools
# ---------------------------------------------------------------------------

class TestLargePool:
    """10,000 ETH and 20,000,000 USDC: about 40M of value."""

    @pytest.fixture
    def deep(self):
        engine, _, _ = make_engine()
        feeds = make_feeds(PRICES)
        engine.deposit("ETH", 10_000 * ETH, feeds)
        engine.deposit("USDC", 20_000_000 * USDC, feeds)
        return engine, feeds

    def test_deposits(self, deep) -> None:
        engine, _ = deep
        assert engine.pool.slot("ETH").claim_tokens_issued == 10_000 * LP_ONE
        assert engine.pool.slot("USDC").claim_tokens_issued == 20_000_000 * LP_ONE

    def test_trade(self, deep) -> None:
        engine, feeds = deep
        receipt = engine.trade_in("ETH", "USDC", 10 * ETH, 0, feeds)
        assert receipt.executed
        assert 19_900 * USDC < receipt.amount_out < 20_000 * USDC
        assert receipt.protocol_fee == 300_000

    def test_withdraw_after_trade(self, deep) -> None:
        engine, feeds = deep
        engine.trade_in("ETH", "USDC", 10 * ETH, 0, feeds)
        receipt = engine.withdraw("ETH", 100 * LP_ONE, feeds)
        assert receipt.payouts["ETH"] >= 100 * ETH
        assert receipt.fees == {}
        assert receipt.remaining == 0


# ---------------------------------------------------------------------------
# Oracles
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "operation",
    [
        lambda e, f: e.trade_in("ETH", "USDC", ETH, 0, f),
        lambda e, f: e.trade_out("ETH", "USDC", 100 * USDC, ETH, f),
        lambda e, f: e.deposit("USDC", 100 * USDC, f),
        lambda e, f: e.withdraw("USDC", LP_ONE, f),
    ],
    ids=["trade_in", "trade_out", "deposit", "withdraw"],
)
def test_stale_price_aborts_every_operation(funded, operation) -> None:
    engine, _, clock, feeds = funded
    clock.advance(61)
    before = [(a.balance, a.claim_tokens_issued, a.previous_price_timestamp) for a in engine.pool.assets]
    with pytest.raises(StalePriceError):
        operation(engine, feeds)
    assert [(a.balance, a.claim_tokens_issued, a.previous_price_timestamp) for a in engine.pool.assets] == before


def test_stale_price_of_untouched_asset(funded) -> None:
    engine, _, clock, feeds = funded
    clock.advance(30)
    feeds["ETH"].set(2000 * ONE, clock.now)
    feeds["USDC"].set(ONE, clock.now - 120)
    with pytest.raises(StalePriceError):
        engine.deposit("ETH", ETH, feeds)


def test_wrong_feed(funded) -> None:
    engine, _, _, feeds = funded
    feeds = dict(feeds)
    feeds["ETH"] = ManualPriceFeed("not-the-eth-feed", 2000 * ONE, NOW)
    with pytest.raises(FeedMismatchError):
        engine.trade_in("ETH", "USDC", ETH, 0, feeds)


def test_missing_feed(funded) -> None:
    engine, _, _, feeds = funded
    with pytest.raises(FeedMismatchError):
        engine.deposit("ETH", ETH, {"ETH": feeds["ETH"]})


# ---------------------------------------------------------------------------
# Administration through the engine
# ---------------------------------------------------------------------------

def test_operations_need_initialized_pool() -> None:
    pool, admin, new_asset = create_pool("fee-collector")
    engine = PoolEngine(pool, clock=FixedClock())
    engine.add_asset(admin, new_asset, "ETH", "feed-ETH", 8)
    with pytest.raises(WrongPhaseError):
        engine.deposit("ETH", ETH, make_feeds({"ETH": 2000}))


def test_collect_fees_sweeps_trade_fees(funded) -> None:
    engine, admin, _, feeds = funded
    engine.trade_in("ETH", "USDC", ETH, 0, feeds)
    effect = engine.collect_fees(admin)
    assert dict(effect.swept) == {"ETH": 30_000, "USDC": 0}
    assert effect.destination == "fee-collector"
    assert engine.pool.slot("ETH").collected_fees == 0
    assert engine.events.of_kind(EventKind.FEES_COLLECTED)[-1].data["swept"]["ETH"] == 30_000


def test_collect_fees_sweeps_each_asset_once(funded) -> None:
    engine, admin, _, feeds = funded
    engine.trade_in("ETH", "USDC", ETH, 0, feeds)
    with pytest.raises(InputError):
        engine.collect_fees(admin, ["ETH", "ETH"])
    assert engine.pool.slot("ETH").collected_fees == 30_000
    assert engine.events.of_kind(EventKind.FEES_COLLECTED) == []


def test_admin_needs_credential(funded) -> None:
    engine, _, _, _ = funded
    with pytest.raises(NotAuthorizedError):
        engine.set_fee_collector(AdminCredential(), "thief")


def test_set_min_trade_amount(funded) -> None:
    engine, admin, _, feeds = funded
    engine.set_min_trade_amount(admin, "ETH", ETH)
    with pytest.raises(BelowMinimumTradeError):
        engine.trade_in("ETH", "USDC", ETH - 1, 0, feeds)


def test_commits_are_logged(funded, caplog) -> None:
    engine, _, _, feeds = funded
    with caplog.at_level(logging.INFO, logger="ramm.integration.engine"):
        engine.trade_in("ETH", "USDC", ETH, 0, feeds)
        engine.trade_in("ETH", "USDC", ETH, 10**6 * USDC, feeds)
    levels = [r.levelno for r in caplog.records]
    assert logging.INFO in levels
    assert logging.WARNING in levels
