"""
Aster 信号交易系统 — 交易所基类

定义交易引擎依赖的交易所客户端接口。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from astertrader.common.enums import OrderSide, PositionSide
from astertrader.common.models import AccountBalance, Order, Position


@dataclass(frozen=True)
class SymbolFilters:
    """交易对精度规则"""
    symbol: str
    step_size: Decimal
    min_qty: Decimal
    tick_size: Decimal


@dataclass(frozen=True)
class Kline:
    """K 线（time 为秒级开盘时间）"""
    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float


class ExchangeClient(ABC):
    """
    交易所客户端抽象基类

    每个方法要么返回类型化结果，要么抛出 ExchangeError / NetworkError，
    不吞掉错误（get_order 除外，它只用于轮询）。
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """交易所名称"""
        pass

    @abstractmethod
    async def close(self) -> None:
        """释放连接"""
        pass

    # ========================================
    # 市场数据（无签名）
    # ========================================

    @abstractmethod
    async def get_server_time(self) -> int:
        """服务器时间（毫秒）"""
        pass

    @abstractmethod
    async def get_current_price(self, symbol: str) -> float:
        """最新成交价"""
        pass

    @abstractmethod
    async def get_exchange_info(self, symbol: str | None = None) -> dict[str, Any]:
        """交易规则"""
        pass

    @abstractmethod
    async def get_symbol_filters(self, symbol: str) -> SymbolFilters:
        """交易对的数量步长与价格精度"""
        pass

    @abstractmethod
    async def get_klines(self, symbol: str, interval: str = "1h", limit: int = 100) -> list[Kline]:
        """K 线"""
        pass

    # ========================================
    # 账户与仓位
    # ========================================

    @abstractmethod
    async def get_account_balance(self) -> AccountBalance:
        """
        USDT 余额

        没有 USDT 记录时返回全零，不视为错误。
        """
        pass

    @abstractmethod
    async def get_position(self, symbol: str) -> Position | None:
        """交易所持仓，仓位数量为 0 时返回 None"""
        pass

    @abstractmethod
    async def set_leverage(self, symbol: str, leverage: int) -> None:
        pass

    @abstractmethod
    async def set_position_mode(self, dual_side: bool) -> None:
        """设置单向 / 双向持仓模式"""
        pass

    # ========================================
    # 订单
    # ========================================

    @abstractmethod
    async def place_market_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: Decimal,
        leverage: int | None = None,
    ) -> Order:
        """
        市价单

        给定 leverage 时先设置杠杆，再下单（顺序依赖）。
        """
        pass

    @abstractmethod
    async def place_take_profit_order(
        self,
        symbol: str,
        side: OrderSide,
        stop_price: Decimal,
        quantity: Decimal,
    ) -> Order:
        """只减仓止盈单（按标记价格触发）"""
        pass

    @abstractmethod
    async def place_stop_loss_order(
        self,
        symbol: str,
        side: OrderSide,
        stop_price: Decimal,
        quantity: Decimal,
    ) -> Order:
        """只减仓止损单（按标记价格触发）"""
        pass

    @abstractmethod
    async def close_position(self, symbol: str, side: PositionSide) -> Order:
        """市价全平"""
        pass

    @abstractmethod
    async def cancel_all_orders(self, symbol: str) -> None:
        pass

    @abstractmethod
    async def get_order(self, symbol: str, order_id: str) -> Order | None:
        """查询订单，任何错误都返回 None"""
        pass

    @abstractmethod
    async def wait_for_fill(
        self,
        symbol: str,
        order_id: str,
        max_wait_ms: int = 10_000,
        poll_interval_ms: int | None = None,
    ) -> bool:
        """
        轮询等待成交

        poll_interval_ms 为空时使用客户端的默认轮询间隔。

        Returns:
            FILLED 返回 True；CANCELED / REJECTED / EXPIRED、查询失败或超时返回 False
        """
        pass
