"""
Aster 信号交易系统 — 数据模型

使用 Pydantic v2。只读模型 frozen=True；Position 由交易引擎修改，不冻结。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .enums import (
    ExitReason,
    OrderSide,
    OrderStatus,
    OrderType,
    PositionSide,
    PositionStatus,
    SignalMagnitude,
    SignalType,
)
from .utils import utc_now


# ============================================================
# 执行层模型
# ============================================================

class Order(BaseModel):
    """交易所订单"""
    model_config = {"frozen": True}

    order_id: str
    client_order_id: str | None = None
    symbol: str
    side: OrderSide
    order_type: OrderType
    quantity: float = Field(ge=0)
    price: float | None = None
    stop_price: float | None = None
    status: OrderStatus
    executed_qty: float = 0.0
    avg_fill_price: float | None = None
    created_at: datetime = Field(default_factory=utc_now)


class AccountBalance(BaseModel):
    """USDT 账户余额"""
    model_config = {"frozen": True}

    total: float = 0.0
    available: float = 0.0
    margin_used: float = 0.0
    unrealized_pnl: float = 0.0


class TradeTargets(BaseModel):
    """
    目标价格

    由入场价和方向唯一决定，计算后不可变。
    """
    model_config = {"frozen": True}

    tp1: float
    tp2: float
    tp3: float
    sl: float
    liq: float


class TargetHits(BaseModel):
    """止盈档位命中标记"""
    tp1: bool = False
    tp2: bool = False
    tp3: bool = False


class Position(BaseModel):
    """
    仓位

    仅在入场单成交后创建；只由交易引擎修改（命中标记、平仓）。
    """
    id: str
    symbol: str
    side: PositionSide
    entry_price: float = Field(gt=0)
    quantity: float = Field(ge=0, description="基础资产数量")
    position_size: float = Field(ge=0, description="名义价值（USDT）")
    leverage: int = Field(ge=1)
    margin: float = Field(ge=0)
    targets: TradeTargets | None = None
    hits: TargetHits = Field(default_factory=TargetHits)
    status: PositionStatus = PositionStatus.OPEN
    mark_price: float | None = None
    unrealized_pnl: float = 0.0
    liquidation_price: float | None = None
    opened_at: datetime = Field(default_factory=utc_now)
    closed_at: datetime | None = None
    exit_price: float | None = None
    exit_reason: ExitReason | None = None
    source_id: str | None = None
    decision_id: str | None = None

    @property
    def is_open(self) -> bool:
        return self.status == PositionStatus.OPEN


# ============================================================
# 风控层模型
# ============================================================

class GateResult(BaseModel):
    """风控闸门结果"""
    model_config = {"frozen": True}

    allowed: bool
    reason: str | None = None
    check: str | None = Field(default=None, description="拒绝的检查项")
    details: dict[str, Any] = Field(default_factory=dict)


class PositionSizing(BaseModel):
    """仓位规模"""
    model_config = {"frozen": True}

    position_size: float
    margin: float


# ============================================================
# 信号 / 编排模型
# ============================================================

class TradeDecision(BaseModel):
    """分类器给出的交易决策"""
    model_config = {"frozen": True}

    signal: SignalType
    confidence: float
    reasoning: str = ""
    magnitude: SignalMagnitude | None = None
    decision_id: str | None = None


class TradeContext(BaseModel):
    """
    交易上下文

    reference_price 仅用于诊断（与实际报价对比），不参与计算。
    """
    model_config = {"frozen": True}

    source_id: str | None = None
    account_id: str | None = None
    reference_price: float | None = None


class TradeOverrides(BaseModel):
    """单次请求覆盖项，优先于引擎配置"""
    model_config = {"frozen": True}

    symbols: list[str] | None = None
    position_size_percent: float | None = None
    leverage: int | None = None

    @field_validator("symbols")
    @classmethod
    def normalize_symbols(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return None
        cleaned = [s.strip().upper() for s in v if s and s.strip()]
        return cleaned or None


class TradeSignal(BaseModel):
    """入站交易触发"""
    model_config = {"frozen": True}

    decision: TradeDecision
    context: TradeContext = Field(default_factory=TradeContext)
    overrides: TradeOverrides = Field(default_factory=TradeOverrides)
    received_at: datetime = Field(default_factory=utc_now)


class TradeResult(BaseModel):
    """交易执行结果"""
    success: bool
    position: Position | None = None
    error: str | None = None
    orders: list[Order] = Field(default_factory=list)
