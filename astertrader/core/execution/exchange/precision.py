"""
Aster 信号交易系统 — 数量与价格精度

数量一律向下取整到步长（不能超出可用保证金），价格四舍五入到最小价格变动。

- FixedPrecisionPolicy: 固定小数位（默认数量 3 位、价格 2 位）
- ExchangeFilterPolicy: 使用 exchangeInfo 中 LOT_SIZE / PRICE_FILTER 的实际规则
"""

from abc import ABC, abstractmethod
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

from astertrader.common.exceptions import ExecutionError
from astertrader.common.logging import get_logger

from .base import ExchangeClient, SymbolFilters

logger = get_logger(__name__)


def to_decimal(value: float | int | str | Decimal) -> Decimal:
    """经字符串转换，避免二进制浮点误差进入 Decimal"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def snap_to_step(value: Decimal, step: Decimal, rounding: str = ROUND_DOWN) -> Decimal:
    """对齐到 step 的整数倍，结果保留 step 的小数位"""
    if step <= 0:
        raise ValueError(f"step must be positive: {step}")
    steps = (value / step).to_integral_value(rounding=rounding)
    exponent = step.normalize().as_tuple().exponent
    quant = Decimal(1).scaleb(exponent) if exponent < 0 else Decimal(1)
    return (steps * step).quantize(quant)


class PrecisionPolicy(ABC):
    """精度策略"""

    async def load(self, symbol: str) -> None:
        """下单前准备交易对规则（默认无需准备）"""
        return None

    @abstractmethod
    def quantity_step(self, symbol: str) -> Decimal:
        pass

    @abstractmethod
    def price_step(self, symbol: str) -> Decimal:
        pass

    def min_quantity(self, symbol: str) -> Decimal:
        return self.quantity_step(symbol)

    def round_quantity(self, symbol: str, quantity: float | Decimal) -> Decimal:
        """数量向下取整"""
        return snap_to_step(to_decimal(quantity), self.quantity_step(symbol), ROUND_DOWN)

    def round_price(self, symbol: str, price: float | Decimal) -> Decimal:
        """价格四舍五入"""
        return snap_to_step(to_decimal(price), self.price_step(symbol), ROUND_HALF_UP)


class FixedPrecisionPolicy(PrecisionPolicy):
    """固定小数位精度"""

    def __init__(self, quantity_decimals: int = 3, price_decimals: int = 2):
        self.quantity_decimals = quantity_decimals
        self.price_decimals = price_decimals
        self._quantity_step = Decimal(1).scaleb(-quantity_decimals)
        self._price_step = Decimal(1).scaleb(-price_decimals)

    def quantity_step(self, symbol: str) -> Decimal:
        return self._quantity_step

    def price_step(self, symbol: str) -> Decimal:
        return self._price_step


class ExchangeFilterPolicy(PrecisionPolicy):
    """
    交易所规则精度

    load() 拉取并缓存交易对规则，之后的取整都基于缓存。
    """

    def __init__(self, exchange: ExchangeClient):
        self._exchange = exchange
        self._filters: dict[str, SymbolFilters] = {}

    async def load(self, symbol: str) -> None:
        if symbol in self._filters:
            return
        filters = await self._exchange.get_symbol_filters(symbol)
        self._filters[symbol] = filters
        logger.info(
            f"加载交易对规则: {symbol}",
            extra={
                "step_size": str(filters.step_size),
                "min_qty": str(filters.min_qty),
                "tick_size": str(filters.tick_size),
            },
        )

    def filters_for(self, symbol: str) -> SymbolFilters:
        filters = self._filters.get(symbol)
        if filters is None:
            raise ExecutionError(
                f"Symbol filters not loaded: {symbol}",
                {"symbol": symbol},
            )
        return filters

    def quantity_step(self, symbol: str) -> Decimal:
        return self.filters_for(symbol).step_size

    def price_step(self, symbol: str) -> Decimal:
        return self.filters_for(symbol).tick_size

    def min_quantity(self, symbol: str) -> Decimal:
        filters = self.filters_for(symbol)
        return max(filters.min_qty, filters.step_size)

    def clear(self) -> None:
        """清空缓存（交易规则变更时）"""
        self._filters.clear()
