"""交易引擎测试"""

import asyncio
from decimal import Decimal

import pytest
from pydantic import ValidationError

from astertrader.common.config import TradingConfig
from astertrader.common.enums import (
    ExitReason,
    OrderSide,
    PositionSide,
    PositionStatus,
    SignalType,
    TradePhase,
)
from astertrader.common.exceptions import ConfigurationError, ExchangeError, NetworkError
from astertrader.common.models import Position, TradeDecision, TradeOverrides
from astertrader.core.execution.engine import TradingEngine
from astertrader.core.execution.exchange.precision import FixedPrecisionPolicy
from astertrader.core.execution.logger import ExecutionEvent
from tests.mocks.clock import FakeClock
from tests.mocks.exchange import MockExchangeClient


def _decision(signal: SignalType = SignalType.LONG, confidence: float = 80) -> TradeDecision:
    return TradeDecision(signal=signal, confidence=confidence, decision_id="d-1")


@pytest.fixture
def exchange():
    return MockExchangeClient(price=50000.0, available=1000.0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(exchange, clock):
    return TradingEngine(
        exchange,
        config=TradingConfig(enabled=True),
        clock=clock,
        precision=FixedPrecisionPolicy(quantity_decimals=4),
    )


class TestExecuteTrade:
    """开仓流程测试"""

    @pytest.mark.asyncio
    async def test_long_success(self, engine, exchange):
        result = await engine.execute_trade(_decision())

        assert result.success
        assert result.error is None
        position = result.position
        assert position.side == PositionSide.LONG
        assert position.entry_price == 50000
        assert position.quantity == pytest.approx(0.003)
        assert position.position_size == pytest.approx(150)
        assert position.margin == pytest.approx(1.5)
        assert position.leverage == 100
        assert position.targets.tp1 == pytest.approx(50150)
        assert position.liquidation_price == pytest.approx(49500)
        assert position.decision_id == "d-1"
        assert engine.get_current_position() is position
        assert engine.phase == TradePhase.OPEN
        assert engine.state.daily_trade_count == 1

        entry = exchange.calls_of("place_market_order")[0]
        assert entry["side"] == OrderSide.BUY
        assert entry["quantity"] == Decimal("0.0030")
        assert entry["leverage"] == 100

        tps = exchange.calls_of("place_take_profit_order")
        assert sorted(c["quantity"] for c in tps) == [
            Decimal("0.0006"), Decimal("0.0009"), Decimal("0.0015"),
        ]
        assert {c["stop_price"] for c in tps} == {
            Decimal("50150.00"), Decimal("50250.00"), Decimal("50400.00"),
        }
        assert all(c["side"] == OrderSide.SELL for c in tps)

        sl = exchange.calls_of("place_stop_loss_order")[0]
        assert sl["stop_price"] == Decimal("49700.00")
        assert sl["quantity"] == Decimal("0.0030")
        assert len(result.orders) == 5

    @pytest.mark.asyncio
    async def test_stop_loss_after_take_profits(self, engine, exchange):
        await engine.execute_trade(_decision())
        names = exchange.call_names()
        assert names.index("place_stop_loss_order") > max(
            i for i, n in enumerate(names) if n == "place_take_profit_order"
        )
        assert names.index("wait_for_fill") > names.index("place_market_order")

    @pytest.mark.asyncio
    async def test_short_success(self, engine, exchange):
        result = await engine.execute_trade(_decision(SignalType.SHORT))

        assert result.success
        assert result.position.side == PositionSide.SHORT
        assert exchange.calls_of("place_market_order")[0]["side"] == OrderSide.SELL
        sl = exchange.calls_of("place_stop_loss_order")[0]
        assert sl["side"] == OrderSide.BUY
        assert sl["stop_price"] == Decimal("50300.00")

    @pytest.mark.asyncio
    async def test_targets_use_fill_price(self, engine, exchange):
        exchange.fill_price = 50100.0
        result = await engine.execute_trade(_decision())
        assert result.position.entry_price == 50100
        assert result.position.targets.tp1 == pytest.approx(50100 * 1.003)

    @pytest.mark.asyncio
    async def test_overrides(self, engine, exchange):
        overrides = TradeOverrides(symbols=["ETHUSDT"], position_size_percent=10, leverage=20)
        result = await engine.execute_trade(_decision(), overrides=overrides)

        assert result.success
        assert result.position.symbol == "ETHUSDT"
        assert result.position.leverage == 20
        assert result.position.position_size == pytest.approx(100)
        assert result.position.margin == pytest.approx(5)
        assert exchange.calls_of("place_market_order")[0]["leverage"] == 20

    @pytest.mark.asyncio
    async def test_skips_zero_quantity_tranches(self, exchange, clock):
        engine = TradingEngine(
            exchange,
            config=TradingConfig(enabled=True),
            clock=clock,
            precision=FixedPrecisionPolicy(quantity_decimals=3),
        )
        result = await engine.execute_trade(_decision())

        assert result.success
        tps = exchange.calls_of("place_take_profit_order")
        assert [c["quantity"] for c in tps] == [Decimal("0.001")]
        assert exchange.calls_of("place_stop_loss_order")[0]["quantity"] == Decimal("0.003")


class TestRejections:
    """拒绝路径测试（无副作用）"""

    @pytest.mark.asyncio
    async def test_disabled(self, exchange, clock):
        engine = TradingEngine(exchange, config=TradingConfig(enabled=False), clock=clock)
        result = await engine.execute_trade(_decision(confidence=99))

        assert not result.success
        assert result.error == "Trading is disabled"
        assert exchange.calls == []

    @pytest.mark.asyncio
    async def test_low_confidence(self, engine, exchange):
        result = await engine.execute_trade(_decision(confidence=60))
        assert result.error == "Confidence 60% below threshold 75%"
        assert exchange.calls == []
        assert engine.phase == TradePhase.IDLE

    @pytest.mark.asyncio
    async def test_hold(self, engine, exchange):
        result = await engine.execute_trade(_decision(SignalType.HOLD, 95))
        assert not result.success
        assert result.error == "Signal is HOLD"
        assert exchange.calls == []

    @pytest.mark.asyncio
    async def test_second_trade_blocked_by_open_position(self, engine, exchange):
        assert (await engine.execute_trade(_decision())).success
        result = await engine.execute_trade(_decision())
        assert result.error == "Position already open"
        assert len(exchange.calls_of("place_market_order")) == 1

    @pytest.mark.asyncio
    async def test_cooldown_after_close(self, engine, clock):
        await engine.execute_trade(_decision())
        await engine.emergency_close()
        clock.advance(minutes=1)

        result = await engine.execute_trade(_decision())
        assert result.error == "Cooldown active: 240s remaining"

        clock.advance(minutes=4)
        assert (await engine.execute_trade(_decision())).success

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, engine, exchange):
        exchange.balance = exchange.balance.model_copy(update={"available": 0.0})
        result = await engine.execute_trade(_decision())
        assert result.error == "Insufficient balance"
        assert exchange.calls_of("place_market_order") == []
        assert engine.phase == TradePhase.IDLE

    @pytest.mark.asyncio
    async def test_quantity_below_lot_size(self, engine, exchange):
        exchange.balance = exchange.balance.model_copy(update={"available": 1.0})
        result = await engine.execute_trade(_decision())
        assert result.error == "Order quantity below minimum lot size"
        assert exchange.calls_of("place_market_order") == []
        assert exchange.calls_of("cancel_all_orders") == []

    @pytest.mark.asyncio
    async def test_gate_denial_not_counted(self, engine):
        await engine.execute_trade(_decision(confidence=10))
        assert engine.state.daily_trade_count == 0
        assert engine.state.last_trade_time is None


class TestFailurePaths:
    """失败与紧急平仓测试"""

    @pytest.mark.asyncio
    async def test_entry_not_filled(self, engine, exchange):
        exchange.fills = False
        result = await engine.execute_trade(_decision())

        assert not result.success
        assert result.error == "Entry order not filled"
        assert engine.get_current_position() is None
        # 没有仓位时紧急平仓为空操作
        assert exchange.calls_of("close_position") == []
        assert engine.phase == TradePhase.IDLE
        assert engine.state.daily_trade_count == 0

    @pytest.mark.asyncio
    async def test_entry_rejected(self, engine, exchange):
        exchange.fail_on("place_market_order")
        result = await engine.execute_trade(_decision())

        assert not result.success
        assert "place_market_order" in result.error
        assert exchange.calls_of("place_take_profit_order") == []

    @pytest.mark.asyncio
    async def test_exit_failure_triggers_emergency_close(self, engine, exchange):
        exchange.fail_on("place_stop_loss_order", NetworkError("connection reset"))
        result = await engine.execute_trade(_decision())

        assert not result.success
        assert result.error == "connection reset"
        names = exchange.call_names()
        assert names[-2:] == ["cancel_all_orders", "close_position"]

        position = engine.get_current_position()
        assert position.status == PositionStatus.CLOSED
        assert position.exit_reason == ExitReason.MANUAL
        assert engine.phase == TradePhase.IDLE
        assert engine.state.daily_trade_count == 0

        events = [e.event_type for e in engine.execution_logger.get_recent_logs()]
        assert ExecutionEvent.TRADE_FAILED in events
        assert ExecutionEvent.EMERGENCY_CLOSE in events

    @pytest.mark.asyncio
    async def test_emergency_close_failure_does_not_mask_error(self, engine, exchange):
        exchange.fail_on("place_take_profit_order", ExchangeError("tp rejected", status_code=400))
        exchange.fail_on("close_position", NetworkError("exchange down"))

        result = await engine.execute_trade(_decision())

        assert result.error == "tp rejected"
        assert engine.get_current_position().status == PositionStatus.OPEN
        assert engine.phase == TradePhase.IDLE

    @pytest.mark.asyncio
    async def test_pricing_failure_has_no_side_effects(self, engine, exchange):
        exchange.fail_on("get_current_price", NetworkError("timeout"))
        result = await engine.execute_trade(_decision())
        assert result.error == "timeout"
        assert exchange.calls_of("place_market_order") == []
        assert exchange.calls_of("cancel_all_orders") == []


class TestEmergencyClose:
    """紧急平仓测试"""

    @pytest.mark.asyncio
    async def test_no_position_noop(self, engine, exchange):
        assert await engine.emergency_close() is False
        assert exchange.calls == []

    @pytest.mark.asyncio
    async def test_closes_and_is_idempotent(self, engine, exchange, clock):
        await engine.execute_trade(_decision())

        assert await engine.emergency_close() is True
        position = engine.get_current_position()
        assert position.status == PositionStatus.CLOSED
        assert position.exit_reason == ExitReason.MANUAL
        assert position.closed_at == clock.now()
        assert exchange.calls_of("close_position")[0]["side"] == PositionSide.LONG

        assert await engine.emergency_close() is False
        assert len(exchange.calls_of("close_position")) == 1

    @pytest.mark.asyncio
    async def test_failure_propagates(self, engine, exchange):
        await engine.execute_trade(_decision())
        exchange.fail_on("cancel_all_orders")
        with pytest.raises(ExchangeError):
            await engine.emergency_close()
        assert engine.get_current_position().is_open


class TestConcurrency:
    """单飞约束测试"""

    @pytest.mark.asyncio
    async def test_concurrent_trades_open_one_position(self, engine, exchange):
        results = await asyncio.gather(
            engine.execute_trade(_decision()),
            engine.execute_trade(_decision()),
        )
        assert sum(r.success for r in results) == 1
        assert len(exchange.calls_of("place_market_order")) == 1

    @pytest.mark.asyncio
    async def test_is_busy_during_trade(self, engine, exchange):
        seen = []
        original = exchange.get_current_price

        async def spy(symbol):
            seen.append(engine.is_busy)
            return await original(symbol)

        exchange.get_current_price = spy
        await engine.execute_trade(_decision())
        assert seen == [True]
        assert not engine.is_busy

    @pytest.mark.asyncio
    async def test_manual_close_waits_for_exits(self, engine, exchange):
        started = asyncio.Event()
        release = asyncio.Event()
        original = exchange.place_take_profit_order

        async def slow_take_profit(*args, **kwargs):
            started.set()
            await release.wait()
            return await original(*args, **kwargs)

        exchange.place_take_profit_order = slow_take_profit
        trade = asyncio.create_task(engine.execute_trade(_decision()))
        await started.wait()

        close = asyncio.create_task(engine.emergency_close())
        await asyncio.sleep(0)
        assert not close.done()
        assert exchange.calls_of("cancel_all_orders") == []

        release.set()
        result = await trade
        assert await close is True

        assert result.success
        names = exchange.call_names()
        cancel_at = names.index("cancel_all_orders")
        assert "place_take_profit_order" not in names[cancel_at:]
        assert "place_stop_loss_order" not in names[cancel_at:]
        assert engine.get_current_position().status == PositionStatus.CLOSED
        assert engine.phase == TradePhase.IDLE

    @pytest.mark.asyncio
    async def test_failed_take_profit_waits_for_other_tranches(self, engine, exchange):
        original = exchange.place_take_profit_order
        attempts = []

        async def flaky_take_profit(symbol, side, stop_price, quantity):
            attempts.append(stop_price)
            if len(attempts) == 1:
                raise ExchangeError("tp1 rejected", status_code=400)
            await asyncio.sleep(0.01)
            return await original(symbol, side, stop_price, quantity)

        exchange.place_take_profit_order = flaky_take_profit
        result = await engine.execute_trade(_decision())

        assert not result.success
        assert result.error == "tp1 rejected"
        names = exchange.call_names()
        assert names[-2:] == ["cancel_all_orders", "close_position"]
        assert names.count("place_take_profit_order") == 2
        assert "place_stop_loss_order" not in names
        # 入场单 + 两档已挂出的止盈
        assert len(result.orders) == 3
        assert engine.get_current_position().status == PositionStatus.CLOSED


class TestMarkPriceAndReconcile:
    """标记价格与对账测试"""

    @pytest.mark.asyncio
    async def test_hit_flags_sticky(self, engine):
        await engine.execute_trade(_decision())

        position = engine.update_mark_price(50260)
        assert position.hits.tp1 and position.hits.tp2
        assert not position.hits.tp3
        assert position.unrealized_pnl == pytest.approx(0.78)

        engine.update_mark_price(50000)
        assert position.hits.tp1 and position.hits.tp2

    def test_mark_price_without_position(self, engine):
        assert engine.update_mark_price(50000) is None

    @pytest.mark.asyncio
    async def test_reconcile_still_open(self, engine, exchange):
        await engine.execute_trade(_decision())
        remote = engine.get_current_position().model_copy(
            update={"mark_price": 50100.0, "liquidation_price": 49600.0}
        )
        exchange.remote_position = remote

        position = await engine.reconcile_position()
        assert position.is_open
        assert position.mark_price == 50100
        assert position.liquidation_price == 49600

    @pytest.mark.asyncio
    async def test_reconcile_closed_by_take_profit(self, engine, exchange):
        await engine.execute_trade(_decision())
        engine.update_mark_price(50420)
        exchange.remote_position = None

        position = await engine.reconcile_position()
        assert position.status == PositionStatus.CLOSED
        assert position.exit_reason == ExitReason.TP3
        assert position.exit_price == 50420

    @pytest.mark.asyncio
    async def test_reconcile_stop_loss(self, engine, exchange):
        await engine.execute_trade(_decision())
        engine.update_mark_price(49690)

        position = await engine.reconcile_position()
        assert position.status == PositionStatus.CLOSED
        assert position.exit_reason == ExitReason.SL

    @pytest.mark.asyncio
    async def test_reconcile_liquidated(self, engine, exchange):
        await engine.execute_trade(_decision(SignalType.SHORT))
        engine.update_mark_price(50510)

        position = await engine.reconcile_position()
        assert position.status == PositionStatus.LIQUIDATED
        assert position.exit_reason == ExitReason.LIQUIDATED
        assert ExecutionEvent.POSITION_RECONCILED in [
            e.event_type for e in engine.execution_logger.get_recent_logs()
        ]

    @pytest.mark.asyncio
    async def test_reconcile_without_position(self, engine, exchange):
        assert await engine.reconcile_position() is None
        assert exchange.calls == []


class TestConfigAndStats:
    """配置与状态测试"""

    def test_update_config(self, engine):
        config = engine.update_config(leverage=50, cooldown_minutes=1)
        assert config.leverage == 50
        assert engine.config.cooldown_minutes == 1
        assert engine.config.enabled is True

    def test_update_config_unknown_field(self, engine):
        with pytest.raises(ConfigurationError):
            engine.update_config(bogus=1)

    def test_update_config_out_of_range(self, engine):
        with pytest.raises(ValidationError):
            engine.update_config(leverage=500)
        assert engine.config.leverage == 100

    @pytest.mark.asyncio
    async def test_stats(self, engine, clock):
        stats = engine.get_stats()
        assert stats["daily_trade_count"] == 0
        assert stats["current_position"] is None
        assert stats["cooldown_remaining_ms"] == 0

        await engine.execute_trade(_decision())
        stats = engine.get_stats()
        assert stats["daily_trade_count"] == 1
        assert stats["phase"] == "OPEN"
        assert stats["last_trade_time"] == clock.now()
        assert isinstance(stats["current_position"], Position)
        assert stats["cooldown_remaining_ms"] == 300_000

    @pytest.mark.asyncio
    async def test_fill_timing_follows_updated_config(self, engine, exchange):
        engine.update_config(fill_timeout_ms=3_000, fill_poll_interval_ms=50)
        await engine.execute_trade(_decision())

        call = exchange.calls_of("wait_for_fill")[0]
        assert call["max_wait_ms"] == 3_000
        assert call["poll_interval_ms"] == 50
