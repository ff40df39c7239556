"""运行时装配集成测试"""

import pytest

from astertrader.common.config import ExchangeConfig, Settings, TradingConfig
from astertrader.common.enums import SignalType
from astertrader.common.exceptions import ConfigurationError
from astertrader.common.models import TradeDecision, TradeSignal
from astertrader.core.execution.exchange.aster import AsterClient
from astertrader.core.execution.exchange.precision import (
    ExchangeFilterPolicy,
    FixedPrecisionPolicy,
)
from astertrader.runtime import build_precision, build_runtime
from tests.mocks.exchange import MockExchangeClient
from tests.mocks.store import InMemoryTradeStore
from tests.mocks.wallet import OWNER_ADDRESS, SIGNING_KEY


def _settings(**exchange) -> Settings:
    return Settings(
        trading=TradingConfig(enabled=True),
        exchange=ExchangeConfig(owner_address=OWNER_ADDRESS, signing_key=SIGNING_KEY, **exchange),
    )


class TestBuildRuntime:
    """运行时装配测试"""

    def test_default_exchange_is_aster(self):
        runtime = build_runtime(_settings())
        assert isinstance(runtime.exchange, AsterClient)
        assert runtime.engine.exchange is runtime.exchange
        assert runtime.dispatcher.engine is runtime.engine

    def test_invalid_credentials_fail_fast(self):
        settings = Settings(exchange=ExchangeConfig(owner_address="0x123", signing_key=SIGNING_KEY))
        with pytest.raises(ConfigurationError):
            build_runtime(settings)

    def test_precision_selection(self):
        exchange = MockExchangeClient()
        fixed = build_precision(_settings(quantity_decimals=4), exchange)
        assert isinstance(fixed, FixedPrecisionPolicy)
        assert fixed.quantity_decimals == 4

        filtered = build_precision(_settings(use_exchange_filters=True), exchange)
        assert isinstance(filtered, ExchangeFilterPolicy)

    @pytest.mark.asyncio
    async def test_start_execute_stop(self):
        exchange = MockExchangeClient()
        store = InMemoryTradeStore()
        runtime = build_runtime(_settings(), exchange=exchange, store=store)

        await runtime.start()
        accepted = runtime.dispatcher.submit(
            TradeSignal(decision=TradeDecision(signal=SignalType.LONG, confidence=90, decision_id="d-9"))
        )
        assert accepted
        await runtime.dispatcher.join()
        await runtime.stop()

        assert runtime.engine.get_current_position() is not None
        assert store.executed == ["d-9"]
        assert exchange.closed
        assert not runtime.dispatcher.is_running

    @pytest.mark.asyncio
    async def test_exchange_filters_drive_quantity(self):
        exchange = MockExchangeClient(price=50000.0, available=1000.0)
        runtime = build_runtime(_settings(use_exchange_filters=True), exchange=exchange)

        result = await runtime.engine.execute_trade(
            TradeDecision(signal=SignalType.LONG, confidence=90)
        )

        assert result.success
        assert exchange.call_names().count("get_symbol_filters") == 1
        sl = exchange.calls_of("place_stop_loss_order")[0]
        assert str(sl["quantity"]) == "0.003"
        assert str(sl["stop_price"]) == "49700.0"
