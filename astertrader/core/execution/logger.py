"""
Aster 信号交易系统 — 执行日志器

记录交易生命周期事件，按交易尝试 ID 追溯审计。
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from astertrader.common.logging import get_logger
from astertrader.common.models import GateResult, Order, Position, TradeSignal
from astertrader.common.utils import utc_now

from .constants import ExecutionConstants

logger = get_logger(__name__)


class ExecutionEvent(str, Enum):
    """交易生命周期事件"""
    TRADE_STARTED = "TRADE_STARTED"
    GATE_DENIED = "GATE_DENIED"
    ENTRY_SUBMITTED = "ENTRY_SUBMITTED"
    ENTRY_FILLED = "ENTRY_FILLED"
    ENTRY_NOT_FILLED = "ENTRY_NOT_FILLED"
    EXIT_PLACED = "EXIT_PLACED"
    TRADE_OPENED = "TRADE_OPENED"
    TRADE_FAILED = "TRADE_FAILED"
    EMERGENCY_CLOSE = "EMERGENCY_CLOSE"
    POSITION_RECONCILED = "POSITION_RECONCILED"


@dataclass
class ExecutionLogEntry:
    """执行日志条目"""
    log_id: str
    trade_id: str
    event_type: ExecutionEvent
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "log_id": self.log_id,
            "trade_id": self.trade_id,
            "event_type": self.event_type.value,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class ExecutionLogger:
    """
    执行日志器

    内存审计追踪，超过 max_entries 时丢弃最旧的条目。
    """

    def __init__(self, max_entries: int = ExecutionConstants.MAX_EVENT_LOG):
        self.max_entries = max_entries
        self._logs: list[ExecutionLogEntry] = []
        self._trade_logs: dict[str, list[ExecutionLogEntry]] = {}

    def log_trade_started(self, trade_id: str, signal: TradeSignal) -> None:
        decision = signal.decision
        self._record(
            trade_id,
            ExecutionEvent.TRADE_STARTED,
            {
                "signal": decision.signal.value,
                "confidence": decision.confidence,
                "source_id": signal.context.source_id,
                "symbols": signal.overrides.symbols,
            },
        )
        logger.info(
            f"交易开始: {trade_id}, {decision.signal.value} @ {decision.confidence}%",
            extra={"trade_id": trade_id, "event": ExecutionEvent.TRADE_STARTED.value},
        )

    def log_gate_denied(self, trade_id: str, result: GateResult) -> None:
        self._record(
            trade_id,
            ExecutionEvent.GATE_DENIED,
            {"reason": result.reason, "check": result.check, **result.details},
        )
        logger.info(
            f"风控拒绝: {trade_id}, 原因: {result.reason}",
            extra={"trade_id": trade_id, "event": ExecutionEvent.GATE_DENIED.value},
        )

    def log_entry_submitted(self, trade_id: str, order: Order) -> None:
        self._record(
            trade_id,
            ExecutionEvent.ENTRY_SUBMITTED,
            {
                "order_id": order.order_id,
                "symbol": order.symbol,
                "side": order.side.value,
                "quantity": order.quantity,
            },
        )
        logger.info(
            f"入场单已提交: {order.order_id}",
            extra={"trade_id": trade_id, "event": ExecutionEvent.ENTRY_SUBMITTED.value},
        )

    def log_entry_filled(self, trade_id: str, order_id: str, fill_price: float) -> None:
        self._record(
            trade_id,
            ExecutionEvent.ENTRY_FILLED,
            {"order_id": order_id, "fill_price": fill_price},
        )
        logger.info(
            f"入场单成交: {order_id}, 价格: {fill_price}",
            extra={"trade_id": trade_id, "event": ExecutionEvent.ENTRY_FILLED.value},
        )

    def log_entry_not_filled(self, trade_id: str, order_id: str) -> None:
        self._record(trade_id, ExecutionEvent.ENTRY_NOT_FILLED, {"order_id": order_id})
        logger.warning(
            f"入场单未成交: {order_id}",
            extra={"trade_id": trade_id, "event": ExecutionEvent.ENTRY_NOT_FILLED.value},
        )

    def log_exit_placed(self, trade_id: str, label: str, order: Order) -> None:
        self._record(
            trade_id,
            ExecutionEvent.EXIT_PLACED,
            {
                "label": label,
                "order_id": order.order_id,
                "stop_price": order.stop_price,
                "quantity": order.quantity,
            },
        )
        logger.info(
            f"{label} 已挂单: {order.order_id} @ {order.stop_price}",
            extra={"trade_id": trade_id, "event": ExecutionEvent.EXIT_PLACED.value},
        )

    def log_trade_opened(self, trade_id: str, position: Position) -> None:
        self._record(
            trade_id,
            ExecutionEvent.TRADE_OPENED,
            {
                "position_id": position.id,
                "symbol": position.symbol,
                "side": position.side.value,
                "entry_price": position.entry_price,
                "quantity": position.quantity,
                "leverage": position.leverage,
            },
        )
        logger.info(
            f"开仓完成: {position.id}",
            extra={"trade_id": trade_id, "event": ExecutionEvent.TRADE_OPENED.value},
        )

    def log_trade_failed(self, trade_id: str, error: str, phase: str) -> None:
        self._record(trade_id, ExecutionEvent.TRADE_FAILED, {"error": error, "phase": phase})
        logger.error(
            f"交易失败: {trade_id}, 阶段: {phase}, 错误: {error}",
            extra={"trade_id": trade_id, "event": ExecutionEvent.TRADE_FAILED.value},
        )

    def log_emergency_close(
        self,
        trade_id: str,
        position_id: str | None,
        success: bool,
        error: str | None = None,
    ) -> None:
        self._record(
            trade_id,
            ExecutionEvent.EMERGENCY_CLOSE,
            {"position_id": position_id, "success": success, "error": error},
        )
        if success:
            logger.warning(
                f"紧急平仓完成: {position_id}",
                extra={"trade_id": trade_id, "event": ExecutionEvent.EMERGENCY_CLOSE.value},
            )
        else:
            logger.error(
                f"紧急平仓失败: {position_id}, 错误: {error}",
                extra={"trade_id": trade_id, "event": ExecutionEvent.EMERGENCY_CLOSE.value},
            )

    def log_position_reconciled(self, trade_id: str, position: Position) -> None:
        self._record(
            trade_id,
            ExecutionEvent.POSITION_RECONCILED,
            {
                "position_id": position.id,
                "status": position.status.value,
                "exit_reason": position.exit_reason.value if position.exit_reason else None,
                "exit_price": position.exit_price,
            },
        )
        logger.info(
            f"仓位对账: {position.id} -> {position.status.value}",
            extra={"trade_id": trade_id, "event": ExecutionEvent.POSITION_RECONCILED.value},
        )

    def get_trade_history(self, trade_id: str) -> list[ExecutionLogEntry]:
        """获取某次交易的全部事件"""
        return list(self._trade_logs.get(trade_id, []))

    def get_recent_logs(self, limit: int = 100) -> list[ExecutionLogEntry]:
        """获取最近事件"""
        return self._logs[-limit:]

    def _record(
        self,
        trade_id: str,
        event_type: ExecutionEvent,
        details: dict[str, Any],
    ) -> ExecutionLogEntry:
        entry = ExecutionLogEntry(
            log_id=str(uuid.uuid4()),
            trade_id=trade_id,
            event_type=event_type,
            details=details,
        )
        self._logs.append(entry)
        self._trade_logs.setdefault(trade_id, []).append(entry)

        if len(self._logs) > self.max_entries:
            dropped = self._logs.pop(0)
            trade_entries = self._trade_logs.get(dropped.trade_id)
            if trade_entries:
                trade_entries.remove(dropped)
                if not trade_entries:
                    del self._trade_logs[dropped.trade_id]

        return entry
