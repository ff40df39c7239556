"""
Aster 信号交易系统 — 交易引擎

编排一次完整的开仓流程：

    风控闸门 → 仓位计算 → 报价 → 市价入场 → 等待成交
    → 按成交均价重算目标价 → 并发挂三档止盈 → 挂止损 → 提交仓位

同一时刻只允许一笔交易在途（asyncio.Lock 包住整个流程），手动紧急平仓与对账
也在这把锁下执行。入场单提交后的任何异常都会触发紧急平仓，
紧急平仓失败只记录日志，不覆盖原始错误。
"""

import asyncio
import uuid
from decimal import Decimal
from typing import Any

from astertrader.common.clock import Clock, SystemClock
from astertrader.common.config import TradingConfig
from astertrader.common.enums import (
    ExitReason,
    PositionSide,
    PositionStatus,
    SignalType,
    TradePhase,
)
from astertrader.common.exceptions import (
    ConfigurationError,
    OrderTimeoutError,
    TradeValidationError,
    TradingSystemError,
)
from astertrader.common.logging import get_logger
from astertrader.common.models import (
    GateResult,
    Order,
    Position,
    TradeContext,
    TradeDecision,
    TradeOverrides,
    TradeResult,
    TradeSignal,
)
from astertrader.common.utils import generate_position_id
from astertrader.core.risk.gate import RiskGate, TradingState
from astertrader.core.risk.sizing import (
    calculate_pnl,
    calculate_position_size,
    calculate_targets,
    is_target_hit,
    split_take_profit_quantities,
    validate_trade_params,
)

from .exchange.base import ExchangeClient
from .exchange.precision import FixedPrecisionPolicy, PrecisionPolicy
from .logger import ExecutionLogger

logger = get_logger(__name__)


def _crossed_against(price: float, level: float, side: PositionSide) -> bool:
    """价格是否朝不利方向穿越 level（止损 / 强平方向）"""
    if side == PositionSide.LONG:
        return price <= level
    return price >= level


class TradingEngine:
    """
    交易引擎

    持有唯一的可变交易状态（当前仓位、上次交易时间、当日计数）。
    交易所客户端、时钟、精度策略均由构造参数注入。
    """

    def __init__(
        self,
        exchange: ExchangeClient,
        config: TradingConfig | None = None,
        clock: Clock | None = None,
        precision: PrecisionPolicy | None = None,
        gate: RiskGate | None = None,
        execution_logger: ExecutionLogger | None = None,
    ):
        self.exchange = exchange
        self.config = config or TradingConfig()
        self.clock = clock or SystemClock()
        self.precision = precision or FixedPrecisionPolicy()
        self.gate = gate or RiskGate()
        self.execution_logger = execution_logger or ExecutionLogger()

        self.state = TradingState()
        self._phase = TradePhase.IDLE
        # 开仓、紧急平仓、对账共用，保证仓位只在同一临界区内被修改
        self._lock = asyncio.Lock()

        logger.info(
            "交易引擎已初始化",
            extra={"exchange": exchange.name, "config": self.config.model_dump()},
        )

    # ========================================
    # 状态查询
    # ========================================

    @property
    def phase(self) -> TradePhase:
        return self._phase

    @property
    def is_busy(self) -> bool:
        """是否有交易在途"""
        return self._lock.locked()

    def get_current_position(self) -> Position | None:
        return self.state.current_position

    def get_stats(self) -> dict[str, Any]:
        now = self.clock.now()
        return {
            "enabled": self.config.enabled,
            "phase": self._phase.value,
            "is_busy": self.is_busy,
            "current_position": self.state.current_position,
            "last_trade_time": self.state.last_trade_time,
            "daily_trade_count": self.state.daily_trade_count,
            "cooldown_remaining_ms": self.state.cooldown_remaining_ms(self.config, now),
        }

    def can_trade(self, confidence: float) -> GateResult:
        """风控闸门检查"""
        return self.gate.check(confidence, self.state, self.config, self.clock.now())

    def update_config(self, **changes: Any) -> TradingConfig:
        """
        部分更新交易配置

        Raises:
            ConfigurationError: 未知字段
            pydantic.ValidationError: 字段值越界
        """
        unknown = set(changes) - set(TradingConfig.model_fields)
        if unknown:
            raise ConfigurationError(
                f"Unknown trading config fields: {', '.join(sorted(unknown))}",
                {"fields": sorted(unknown)},
            )

        self.config = TradingConfig.model_validate({**self.config.model_dump(), **changes})
        logger.info("交易配置已更新", extra={"changes": changes})
        return self.config

    # ========================================
    # 开仓
    # ========================================

    async def execute_trade(
        self,
        decision: TradeDecision,
        context: TradeContext | None = None,
        overrides: TradeOverrides | None = None,
    ) -> TradeResult:
        """
        执行一次交易

        Args:
            decision: 分类器决策（方向与置信度）
            context: 来源上下文
            overrides: 单次覆盖（交易对、仓位比例、杠杆）

        Returns:
            TradeResult，失败时 error 为原因
        """
        signal = TradeSignal(
            decision=decision,
            context=context or TradeContext(),
            overrides=overrides or TradeOverrides(),
        )
        trade_id = str(uuid.uuid4())

        async with self._lock:
            self.execution_logger.log_trade_started(trade_id, signal)
            return await self._execute(trade_id, signal)

    async def _execute(self, trade_id: str, signal: TradeSignal) -> TradeResult:
        decision = signal.decision
        overrides = signal.overrides
        config = self.config

        # 1. 风控闸门
        self._phase = TradePhase.GATE_CHECK
        gate_result = self.can_trade(decision.confidence)
        if not gate_result.allowed:
            self.execution_logger.log_gate_denied(trade_id, gate_result)
            self._phase = TradePhase.IDLE
            return TradeResult(success=False, error=gate_result.reason)

        # 2. HOLD 不开仓
        if decision.signal == SignalType.HOLD:
            logger.info("信号为 HOLD，跳过", extra={"trade_id": trade_id})
            self._phase = TradePhase.IDLE
            return TradeResult(success=False, error="Signal is HOLD")

        # 3. 覆盖项优先于配置
        side = PositionSide(decision.signal.value)
        symbol = overrides.symbols[0] if overrides.symbols else config.default_symbol
        leverage = overrides.leverage or config.leverage
        risk_percent = overrides.position_size_percent or config.max_position_size_percent

        logger.info(
            f"交易参数: {symbol} {side.value} {leverage}x {risk_percent}%",
            extra={"trade_id": trade_id, "account_id": signal.context.account_id},
        )

        orders: list[Order] = []
        entry_submitted = False

        try:
            # 4. 余额与仓位规模
            self._phase = TradePhase.SIZING
            balance = await self.exchange.get_account_balance()
            sizing = calculate_position_size(balance.available, risk_percent, leverage)
            validate_trade_params(
                balance.available,
                sizing.position_size,
                leverage,
                decision.confidence,
            )

            # 5-7. 报价、数量、预估目标价
            self._phase = TradePhase.PRICING
            quoted_price = await self.exchange.get_current_price(symbol)
            await self.precision.load(symbol)
            quantity = self._entry_quantity(symbol, sizing.position_size, quoted_price)

            provisional = calculate_targets(quoted_price, side)
            logger.info(
                f"预估目标价 @ {quoted_price}",
                extra={
                    "trade_id": trade_id,
                    "quantity": str(quantity),
                    "reference_price": signal.context.reference_price,
                    **provisional.model_dump(),
                },
            )

            # 8. 市价入场
            self._phase = TradePhase.ENTRY_SUBMITTED
            entry_submitted = True
            entry = await self.exchange.place_market_order(
                symbol, side.entry_side, quantity, leverage=leverage
            )
            orders.append(entry)
            self.execution_logger.log_entry_submitted(trade_id, entry)

            # 9. 等待成交
            filled = await self.exchange.wait_for_fill(
                symbol,
                entry.order_id,
                config.fill_timeout_ms,
                poll_interval_ms=config.fill_poll_interval_ms,
            )
            if not filled:
                # 交给下方统一的失败路径
                self.execution_logger.log_entry_not_filled(trade_id, entry.order_id)
                raise OrderTimeoutError(
                    "Entry order not filled",
                    {"order_id": entry.order_id, "max_wait_ms": config.fill_timeout_ms},
                )

            # 10. 按成交均价重算目标价，并立即登记仓位
            self._phase = TradePhase.ENTRY_FILLED
            filled_order = await self.exchange.get_order(symbol, entry.order_id)
            entry_price = (
                filled_order.avg_fill_price
                if filled_order and filled_order.avg_fill_price
                else quoted_price
            )
            targets = calculate_targets(entry_price, side)
            opened_at = self.clock.now()

            position = Position(
                id=generate_position_id(symbol, opened_at),
                symbol=symbol,
                side=side,
                entry_price=entry_price,
                quantity=float(quantity),
                position_size=sizing.position_size,
                leverage=leverage,
                margin=sizing.margin,
                targets=targets,
                mark_price=entry_price,
                liquidation_price=targets.liq,
                opened_at=opened_at,
                source_id=signal.context.source_id,
                decision_id=decision.decision_id,
            )
            self.state.current_position = position
            self.execution_logger.log_entry_filled(trade_id, entry.order_id, entry_price)

            # 11-12. 止盈并发挂单，然后止损
            await self._place_exits(trade_id, position, quantity, orders)
            self._phase = TradePhase.EXITS_PLACED

            # 13. 提交状态
            self.state.record_trade(opened_at)
            self._phase = TradePhase.OPEN
            self.execution_logger.log_trade_opened(trade_id, position)
            return TradeResult(success=True, position=position, orders=orders)

        except Exception as e:
            failed_phase = self._phase
            self._phase = TradePhase.FAILED
            message = e.message if isinstance(e, TradingSystemError) else str(e)
            self.execution_logger.log_trade_failed(trade_id, message, failed_phase.value)

            if entry_submitted:
                await self._safe_emergency_close(trade_id)

            self._phase = TradePhase.IDLE
            return TradeResult(success=False, error=message, orders=orders)

    def _entry_quantity(self, symbol: str, position_size: float, price: float) -> Decimal:
        """名义价值换算为下单数量，按步长向下取整"""
        if price <= 0:
            raise TradeValidationError(f"Invalid price for {symbol}: {price}")

        raw = Decimal(str(position_size)) / Decimal(str(price))
        quantity = self.precision.round_quantity(symbol, raw)
        min_qty = self.precision.min_quantity(symbol)
        if quantity <= 0 or quantity < min_qty:
            raise TradeValidationError(
                "Order quantity below minimum lot size",
                {"quantity": str(quantity), "min_qty": str(min_qty)},
            )
        return quantity

    async def _place_exits(
        self,
        trade_id: str,
        position: Position,
        quantity: Decimal,
        orders: list[Order],
    ) -> None:
        """
        挂出三档止盈与止损，已挂出的订单追加到 orders

        三档止盈并发提交，全部返回后才检查失败，失败时不会有止盈单晚于紧急平仓的撤单到达。
        """
        symbol = position.symbol
        exit_side = position.side.exit_side
        targets = position.targets

        tranches = [
            (label, target, qty)
            for label, target, qty in zip(
                ("TP1", "TP2", "TP3"),
                (targets.tp1, targets.tp2, targets.tp3),
                split_take_profit_quantities(symbol, quantity, self.precision),
            )
            if qty > 0
        ]
        skipped = 3 - len(tranches)
        if skipped:
            logger.warning(
                f"{skipped} 档止盈数量取整后为 0，跳过",
                extra={"trade_id": trade_id, "quantity": str(quantity)},
            )

        results = await asyncio.gather(
            *[
                self.exchange.place_take_profit_order(
                    symbol,
                    exit_side,
                    self.precision.round_price(symbol, target),
                    qty,
                )
                for _, target, qty in tranches
            ],
            return_exceptions=True,
        )

        errors: list[BaseException] = []
        for (label, _, _), result in zip(tranches, results):
            if isinstance(result, BaseException):
                logger.error(
                    f"{label} 挂单失败: {result}",
                    extra={"trade_id": trade_id},
                )
                errors.append(result)
            else:
                orders.append(result)
                self.execution_logger.log_exit_placed(trade_id, label, result)
        if errors:
            raise errors[0]

        sl_order = await self.exchange.place_stop_loss_order(
            symbol,
            exit_side,
            self.precision.round_price(symbol, targets.sl),
            quantity,
        )
        orders.append(sl_order)
        self.execution_logger.log_exit_placed(trade_id, "SL", sl_order)

    # ========================================
    # 平仓与对账
    # ========================================

    async def _safe_emergency_close(self, trade_id: str) -> None:
        """失败路径上的紧急平仓，异常只记录"""
        self._phase = TradePhase.EMERGENCY_CLOSE_ATTEMPTED
        try:
            await self._close_position(trade_id)
        except Exception as e:
            logger.error(
                f"紧急平仓异常: {e}",
                extra={"trade_id": trade_id},
                exc_info=True,
            )

    async def emergency_close(self, trade_id: str | None = None) -> bool:
        """
        紧急平仓

        撤销全部挂单并市价全平。没有持仓时为空操作，可重复调用。
        有交易在途时等待其结束（成功挂好止盈止损，或已在失败路径上平仓）后再执行。

        Returns:
            是否实际执行了平仓
        """
        async with self._lock:
            return await self._close_position(trade_id)

    async def _close_position(self, trade_id: str | None) -> bool:
        """撤单并市价全平，调用方须持有 self._lock"""
        position = self.state.current_position
        if position is None or not position.is_open:
            logger.info("没有需要平仓的持仓")
            return False

        trade_id = trade_id or f"close-{position.id}"
        logger.warning(
            f"紧急平仓: {position.id}",
            extra={"trade_id": trade_id, "symbol": position.symbol},
        )

        try:
            await self.exchange.cancel_all_orders(position.symbol)
            close_order = await self.exchange.close_position(position.symbol, position.side)
        except Exception as e:
            self.execution_logger.log_emergency_close(trade_id, position.id, False, str(e))
            raise

        position.status = PositionStatus.CLOSED
        position.closed_at = self.clock.now()
        position.exit_reason = ExitReason.MANUAL
        position.exit_price = close_order.avg_fill_price
        self.execution_logger.log_emergency_close(trade_id, position.id, True)
        self._phase = TradePhase.IDLE
        return True

    def update_mark_price(self, price: float) -> Position | None:
        """
        更新持仓的标记价格、未实现盈亏和止盈命中标记

        命中标记一旦置位不再清除。
        """
        position = self.state.current_position
        if position is None or not position.is_open:
            return None

        position.mark_price = price
        position.unrealized_pnl, _ = calculate_pnl(position, price)

        if position.targets is not None:
            hits = position.hits
            for name in ("tp1", "tp2", "tp3"):
                if not getattr(hits, name) and is_target_hit(
                    price, getattr(position.targets, name), position.side
                ):
                    setattr(hits, name, True)
                    logger.info(
                        f"{name.upper()} 命中: {position.id} @ {price}",
                        extra={"position_id": position.id},
                    )
        return position

    async def reconcile_position(self) -> Position | None:
        """
        与交易所持仓对账

        交易所仍有持仓时同步标记价格；交易所已无持仓时，按价格位置推断平仓原因
        并把本地仓位标记为 CLOSED 或 LIQUIDATED。
        """
        async with self._lock:
            position = self.state.current_position
            if position is None or not position.is_open:
                return None

            remote = await self.exchange.get_position(position.symbol)
            if remote is not None:
                if remote.mark_price:
                    self.update_mark_price(remote.mark_price)
                if remote.liquidation_price:
                    position.liquidation_price = remote.liquidation_price
                return position

            price = position.mark_price or await self.exchange.get_current_price(position.symbol)
            self.update_mark_price(price)
            self._close_from_exchange(position, price)
            self._phase = TradePhase.IDLE
            self.execution_logger.log_position_reconciled(f"reconcile-{position.id}", position)
            return position

    def _close_from_exchange(self, position: Position, price: float) -> None:
        liquidation = position.liquidation_price or (position.targets.liq if position.targets else None)

        if liquidation is not None and _crossed_against(price, liquidation, position.side):
            position.status = PositionStatus.LIQUIDATED
            position.exit_reason = ExitReason.LIQUIDATED
        else:
            position.status = PositionStatus.CLOSED
            if position.targets is not None and _crossed_against(price, position.targets.sl, position.side):
                position.exit_reason = ExitReason.SL
            elif position.hits.tp3:
                position.exit_reason = ExitReason.TP3
            elif position.hits.tp2:
                position.exit_reason = ExitReason.TP2
            elif position.hits.tp1:
                position.exit_reason = ExitReason.TP1
            else:
                position.exit_reason = ExitReason.MANUAL

        position.exit_price = price
        position.closed_at = self.clock.now()
