"""工具函数测试"""

from datetime import datetime, timezone
from decimal import Decimal

from astertrader.common.enums import ExitReason, OrderSide, OrderStatus, OrderType, PositionSide
from astertrader.common.exceptions import (
    ExchangeError,
    ExecutionError,
    NetworkError,
    TradingSystemError,
)
from astertrader.common.utils import (
    format_decimal,
    from_utc_ms,
    generate_position_id,
    to_utc,
    to_utc_ms,
)


class TestTimeConversion:
    """时间换算测试"""

    def test_ms_roundtrip(self):
        dt = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
        assert from_utc_ms(to_utc_ms(dt)) == dt

    def test_naive_treated_as_utc(self):
        assert to_utc(datetime(2024, 1, 1)).tzinfo == timezone.utc

    def test_position_id(self):
        dt = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
        assert generate_position_id("BTCUSDT", dt) == "BTCUSDT_1705320000000"


class TestFormatDecimal:
    """数值格式化测试"""

    def test_strips_trailing_zeros(self):
        assert format_decimal(Decimal("0.0020")) == "0.002"
        assert format_decimal(Decimal("50150.00")) == "50150"

    def test_no_scientific_notation(self):
        assert format_decimal(Decimal("1E-7")) == "0.0000001"
        assert format_decimal(1e-5) == "0.00001"

    def test_integers_and_zero(self):
        assert format_decimal(5) == "5"
        assert format_decimal("0.000") == "0"


class TestEnums:
    """枚举测试"""

    def test_position_sides(self):
        assert PositionSide.LONG.entry_side == OrderSide.BUY
        assert PositionSide.LONG.exit_side == OrderSide.SELL
        assert PositionSide.SHORT.entry_side == OrderSide.SELL
        assert PositionSide.SHORT.exit_side == OrderSide.BUY

    def test_terminal_statuses(self):
        assert OrderStatus.FILLED.is_terminal
        assert OrderStatus.CANCELED.is_terminal
        assert not OrderStatus.NEW.is_terminal
        assert not OrderStatus.PARTIALLY_FILLED.is_terminal

    def test_exit_reasons(self):
        assert {r.value for r in ExitReason} == {"TP1", "TP2", "TP3", "SL", "LIQUIDATED", "MANUAL"}

    def test_exit_order_types(self):
        assert "TRAILING_STOP_MARKET" not in {t.value for t in OrderType}
        assert OrderType("TAKE_PROFIT_MARKET") == OrderType.TAKE_PROFIT_MARKET
        assert OrderType("STOP_MARKET") == OrderType.STOP_MARKET


class TestExceptions:
    """异常层级测试"""

    def test_hierarchy(self):
        assert issubclass(ExchangeError, ExecutionError)
        assert issubclass(NetworkError, ExecutionError)
        assert issubclass(ExecutionError, TradingSystemError)

    def test_exchange_error_fields(self):
        error = ExchangeError("bad", status_code=400, code=-2019, details={"path": "/x"})
        assert error.message == "bad"
        assert error.status_code == 400
        assert error.code == -2019
        assert error.details == {"path": "/x"}
