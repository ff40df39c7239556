"""
Aster 信号交易系统 — 风控闸门

开仓前的同步检查，无 I/O。按顺序执行，第一个失败项即拒绝：

1. 交易开关
2. 置信度阈值
3. 已有持仓（单仓位约束的唯一执行点）
4. 冷却时间
5. 每日交易次数（按 UTC 日期重置）
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from astertrader.common.config import TradingConfig
from astertrader.common.logging import get_logger
from astertrader.common.models import GateResult, Position

logger = get_logger(__name__)


@dataclass
class TradingState:
    """
    引擎可变状态

    只由交易引擎在持锁期间写入；风控闸门与状态查询只读，日计数重置除外。
    """
    current_position: Position | None = None
    last_trade_time: datetime | None = None
    daily_trade_count: int = 0
    last_reset_date: str | None = None

    @property
    def has_open_position(self) -> bool:
        return self.current_position is not None and self.current_position.is_open

    def roll_daily_counter(self, now: datetime) -> None:
        """日期变化时清零当日计数"""
        today = now.date().isoformat()
        if today != self.last_reset_date:
            if self.last_reset_date is not None:
                logger.info(
                    f"重置当日交易计数: {self.last_reset_date} -> {today}",
                    extra={"previous_count": self.daily_trade_count},
                )
            self.daily_trade_count = 0
            self.last_reset_date = today

    def record_trade(self, now: datetime) -> None:
        """记录一次成功开仓"""
        self.roll_daily_counter(now)
        self.last_trade_time = now
        self.daily_trade_count += 1

    def cooldown_remaining_ms(self, config: TradingConfig, now: datetime) -> int:
        if self.last_trade_time is None:
            return 0
        cooldown_ms = config.cooldown_minutes * 60_000
        elapsed_ms = (now - self.last_trade_time).total_seconds() * 1000
        return max(0, math.ceil(cooldown_ms - elapsed_ms))


class RiskGate:
    """风控闸门"""

    @property
    def name(self) -> str:
        return "risk_gate"

    def check(
        self,
        confidence: float,
        state: TradingState,
        config: TradingConfig,
        now: datetime,
    ) -> GateResult:
        """
        检查是否允许开仓

        Args:
            confidence: 信号置信度（0-100）
            state: 引擎状态
            config: 当前交易配置
            now: 当前 UTC 时间

        Returns:
            GateResult
        """
        if not config.enabled:
            return self._reject("enabled", "Trading is disabled")

        threshold = config.min_confidence_threshold
        if confidence < threshold:
            return self._reject(
                "confidence",
                f"Confidence {confidence:g}% below threshold {threshold:g}%",
                {
                    "confidence": confidence,
                    "threshold": threshold,
                    "shortfall": threshold - confidence,
                },
            )

        if state.has_open_position:
            return self._reject(
                "open_position",
                "Position already open",
                {"position_id": state.current_position.id},
            )

        if state.last_trade_time is not None:
            cooldown_ms = config.cooldown_minutes * 60_000
            elapsed_ms = (now - state.last_trade_time).total_seconds() * 1000
            if elapsed_ms < cooldown_ms:
                remaining_seconds = math.ceil((cooldown_ms - elapsed_ms) / 1000)
                return self._reject(
                    "cooldown",
                    f"Cooldown active: {remaining_seconds}s remaining",
                    {"remaining_seconds": remaining_seconds},
                )

        state.roll_daily_counter(now)
        if state.daily_trade_count >= config.max_daily_trades:
            return self._reject(
                "daily_limit",
                f"Daily trade limit reached ({config.max_daily_trades})",
                {"daily_trade_count": state.daily_trade_count},
            )

        return self._approve()

    def _approve(self) -> GateResult:
        return GateResult(allowed=True)

    def _reject(
        self,
        check: str,
        reason: str,
        details: dict[str, Any] | None = None,
    ) -> GateResult:
        logger.info(f"风控拒绝 [{check}]: {reason}", extra=details or {})
        return GateResult(
            allowed=False,
            reason=reason,
            check=check,
            details=details or {},
        )
