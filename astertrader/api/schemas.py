"""
Aster 信号交易系统 — API 请求 / 响应模型
"""

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from astertrader.common.enums import SignalMagnitude, SignalType
from astertrader.common.models import (
    Position,
    TradeContext,
    TradeDecision,
    TradeOverrides,
    TradeSignal,
)
from astertrader.common.utils import utc_now

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """统一 API 响应格式"""
    success: bool = True
    data: T | None = None
    error: dict[str, Any] | None = None
    timestamp: datetime = Field(default_factory=utc_now)


class ErrorDetail(BaseModel):
    """错误详情"""
    code: str
    message: str
    details: dict[str, Any] | None = None


# ========================================
# 请求
# ========================================

class SignalRequest(BaseModel):
    """外部投递的交易信号"""
    signal: SignalType
    confidence: float = Field(ge=0, le=100)
    reasoning: str = ""
    magnitude: SignalMagnitude | None = None
    decision_id: str | None = None
    symbols: list[str] | None = None
    position_size_percent: float | None = Field(default=None, gt=0, le=100)
    leverage: int | None = Field(default=None, ge=1, le=125)
    source_id: str | None = None
    account_id: str | None = None
    reference_price: float | None = None

    def to_signal(self) -> TradeSignal:
        return TradeSignal(
            decision=TradeDecision(
                signal=self.signal,
                confidence=self.confidence,
                reasoning=self.reasoning,
                magnitude=self.magnitude,
                decision_id=self.decision_id,
            ),
            context=TradeContext(
                source_id=self.source_id,
                account_id=self.account_id,
                reference_price=self.reference_price,
            ),
            overrides=TradeOverrides(
                symbols=self.symbols,
                position_size_percent=self.position_size_percent,
                leverage=self.leverage,
            ),
        )


class ConfigUpdateRequest(BaseModel):
    """交易配置部分更新，字段约束由 TradingConfig 校验"""
    enabled: bool | None = None
    max_position_size_percent: float | None = None
    leverage: int | None = None
    min_confidence_threshold: float | None = None
    cooldown_minutes: float | None = None
    max_daily_trades: int | None = None
    default_symbol: str | None = None
    fill_timeout_ms: int | None = None


# ========================================
# 响应
# ========================================

class TradingStatusResponse(BaseModel):
    """交易引擎状态"""
    enabled: bool
    phase: str
    is_busy: bool
    daily_trade_count: int
    last_trade_time: datetime | None = None
    cooldown_remaining_ms: int
    current_position: Position | None = None
    signals_accepted: int = 0
    signals_rejected: int = 0


class SignalAcceptedResponse(BaseModel):
    accepted: bool
    decision_id: str | None = None


class EmergencyCloseResponse(BaseModel):
    closed: bool
    position: Position | None = None


class ExecutionEventResponse(BaseModel):
    log_id: str
    trade_id: str
    event_type: str
    details: dict[str, Any]
    timestamp: datetime
