"""
Aster 信号交易系统 — 枚举定义

订单相关枚举的取值与交易所线上协议一致，不可随意修改。
"""

from enum import Enum


class SignalType(str, Enum):
    """分类器输出的交易信号"""
    LONG = "LONG"
    SHORT = "SHORT"
    HOLD = "HOLD"


class PositionSide(str, Enum):
    """仓位方向"""
    LONG = "LONG"
    SHORT = "SHORT"

    @property
    def entry_side(self) -> "OrderSide":
        """开仓方向"""
        return OrderSide.BUY if self is PositionSide.LONG else OrderSide.SELL

    @property
    def exit_side(self) -> "OrderSide":
        """平仓方向"""
        return OrderSide.SELL if self is PositionSide.LONG else OrderSide.BUY


class OrderSide(str, Enum):
    """订单方向"""
    BUY = "BUY"
    SELL = "SELL"


class OrderType(str, Enum):
    """订单类型"""
    LIMIT = "LIMIT"
    MARKET = "MARKET"
    STOP = "STOP"
    STOP_MARKET = "STOP_MARKET"
    TAKE_PROFIT = "TAKE_PROFIT"
    TAKE_PROFIT_MARKET = "TAKE_PROFIT_MARKET"


class OrderStatus(str, Enum):
    """订单状态"""
    NEW = "NEW"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    FILLED = "FILLED"
    CANCELED = "CANCELED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_ORDER_STATUSES


_TERMINAL_ORDER_STATUSES = frozenset({
    OrderStatus.FILLED,
    OrderStatus.CANCELED,
    OrderStatus.REJECTED,
    OrderStatus.EXPIRED,
})


class PositionStatus(str, Enum):
    """仓位状态"""
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    LIQUIDATED = "LIQUIDATED"


class ExitReason(str, Enum):
    """平仓原因"""
    TP1 = "TP1"
    TP2 = "TP2"
    TP3 = "TP3"
    SL = "SL"
    LIQUIDATED = "LIQUIDATED"
    MANUAL = "MANUAL"


class TradePhase(str, Enum):
    """交易编排状态机"""
    IDLE = "IDLE"
    GATE_CHECK = "GATE_CHECK"
    SIZING = "SIZING"
    PRICING = "PRICING"
    ENTRY_SUBMITTED = "ENTRY_SUBMITTED"
    ENTRY_FILLED = "ENTRY_FILLED"
    EXITS_PLACED = "EXITS_PLACED"
    OPEN = "OPEN"
    FAILED = "FAILED"
    EMERGENCY_CLOSE_ATTEMPTED = "EMERGENCY_CLOSE_ATTEMPTED"


class SignalMagnitude(str, Enum):
    """分类器给出的预期波动幅度"""
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
