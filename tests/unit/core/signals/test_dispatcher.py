"""信号分发器测试"""

import asyncio

import pytest

from astertrader.common.config import TradingConfig
from astertrader.common.enums import SignalType
from astertrader.common.models import TradeDecision, TradeSignal
from astertrader.core.execution.engine import TradingEngine
from astertrader.core.execution.exchange.precision import FixedPrecisionPolicy
from astertrader.core.signals.dispatcher import SignalDispatcher
from tests.mocks.clock import FakeClock
from tests.mocks.exchange import MockExchangeClient
from tests.mocks.store import InMemoryTradeStore


def _signal(confidence: float = 80, decision_id: str = "d-1") -> TradeSignal:
    return TradeSignal(
        decision=TradeDecision(
            signal=SignalType.LONG,
            confidence=confidence,
            decision_id=decision_id,
        )
    )


@pytest.fixture
def exchange():
    return MockExchangeClient()


@pytest.fixture
def engine(exchange):
    return TradingEngine(
        exchange,
        config=TradingConfig(enabled=True),
        clock=FakeClock(),
        precision=FixedPrecisionPolicy(quantity_decimals=4),
    )


@pytest.fixture
def store():
    return InMemoryTradeStore()


@pytest.fixture
async def dispatcher(engine, store):
    dispatcher = SignalDispatcher(engine, store=store)
    dispatcher.start()
    yield dispatcher
    await dispatcher.stop()


class TestSignalDispatcher:
    """分发器测试"""

    @pytest.mark.asyncio
    async def test_executes_and_records(self, dispatcher, store, engine):
        assert dispatcher.submit(_signal())
        await dispatcher.join()

        assert dispatcher.last_result.success
        assert store.executed == ["d-1"]
        assert store.trades[0][0] is engine.get_current_position()
        assert store.trades[0][1] == "d-1"
        assert dispatcher.accepted_count == 1

    @pytest.mark.asyncio
    async def test_failed_trade_not_recorded(self, dispatcher, store):
        assert dispatcher.submit(_signal(confidence=10))
        await dispatcher.join()

        assert not dispatcher.last_result.success
        assert store.executed == []
        assert store.trades == []

    @pytest.mark.asyncio
    async def test_rejects_when_queue_full(self, engine, store):
        dispatcher = SignalDispatcher(engine, store=store, queue_size=1)
        assert dispatcher.submit(_signal(decision_id="a"))
        assert not dispatcher.submit(_signal(decision_id="b"))
        assert dispatcher.rejected_count == 1
        assert dispatcher.is_busy

    @pytest.mark.asyncio
    async def test_rejects_while_trade_in_flight(self, dispatcher, exchange):
        release = asyncio.Event()
        original = exchange.get_account_balance

        async def slow_balance():
            await release.wait()
            return await original()

        exchange.get_account_balance = slow_balance

        assert dispatcher.submit(_signal(decision_id="a"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert dispatcher.is_busy
        assert not dispatcher.submit(_signal(decision_id="b"))

        release.set()
        await dispatcher.join()
        assert not dispatcher.is_busy
        assert len(exchange.calls_of("place_market_order")) == 1

    @pytest.mark.asyncio
    async def test_start_stop(self, engine):
        dispatcher = SignalDispatcher(engine)
        assert not dispatcher.is_running
        dispatcher.start()
        dispatcher.start()
        assert dispatcher.is_running
        await dispatcher.stop()
        assert not dispatcher.is_running
        await dispatcher.stop()

    @pytest.mark.asyncio
    async def test_worker_survives_engine_exception(self, dispatcher, engine, monkeypatch):
        async def broken(*args, **kwargs):
            raise RuntimeError("unexpected")

        monkeypatch.setattr(engine, "execute_trade", broken)
        assert dispatcher.submit(_signal())
        await dispatcher.join()
        assert dispatcher.is_running
        assert not dispatcher.is_busy
