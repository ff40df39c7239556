"""
Aster 信号交易系统 — 信号分发

有界队列 + 单 worker，把交易信号串行交给交易引擎。
交易在途或队列已满时直接拒绝新信号（背压），不排队等待。
"""

import asyncio

from astertrader.common.logging import get_logger
from astertrader.common.models import TradeResult, TradeSignal
from astertrader.core.execution.engine import TradingEngine

from .base import TradeStore

logger = get_logger(__name__)


class SignalDispatcher:
    """单飞交易信号分发器"""

    def __init__(
        self,
        engine: TradingEngine,
        store: TradeStore | None = None,
        queue_size: int = 1,
    ):
        self.engine = engine
        self.store = store
        self._queue: asyncio.Queue[TradeSignal] = asyncio.Queue(maxsize=queue_size)
        self._worker: asyncio.Task | None = None
        self._in_flight = False

        self.accepted_count = 0
        self.rejected_count = 0
        self.last_result: TradeResult | None = None

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def is_busy(self) -> bool:
        """有交易在途或信号待处理"""
        return self._in_flight or self.engine.is_busy or not self._queue.empty()

    def start(self) -> None:
        if self.is_running:
            return
        self._worker = asyncio.create_task(self._run(), name="signal-dispatcher")
        logger.info("信号分发器已启动", extra={"queue_size": self._queue.maxsize})

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("信号分发器已停止")

    async def join(self) -> None:
        """等待已接收的信号全部处理完"""
        await self._queue.join()

    def submit(self, signal: TradeSignal) -> bool:
        """
        提交信号

        Returns:
            是否接收；交易在途或队列满时返回 False
        """
        if self._in_flight or self.engine.is_busy:
            return self._reject(signal, "trade in flight")

        try:
            self._queue.put_nowait(signal)
        except asyncio.QueueFull:
            return self._reject(signal, "queue full")

        self.accepted_count += 1
        logger.info(
            f"信号已接收: {signal.decision.signal.value} @ {signal.decision.confidence}%",
            extra={"decision_id": signal.decision.decision_id},
        )
        return True

    def _reject(self, signal: TradeSignal, reason: str) -> bool:
        self.rejected_count += 1
        logger.warning(
            f"信号被拒绝: {reason}",
            extra={"decision_id": signal.decision.decision_id},
        )
        return False

    async def _run(self) -> None:
        while True:
            signal = await self._queue.get()
            self._in_flight = True
            try:
                result = await self.engine.execute_trade(
                    signal.decision, signal.context, signal.overrides
                )
                self.last_result = result
                await self._record(signal, result)
            except Exception as e:
                logger.error(f"信号处理异常: {e}", exc_info=True)
            finally:
                self._in_flight = False
                self._queue.task_done()

    async def _record(self, signal: TradeSignal, result: TradeResult) -> None:
        decision_id = signal.decision.decision_id
        if not result.success:
            logger.info(
                f"交易未执行: {result.error}",
                extra={"decision_id": decision_id},
            )
            return

        if self.store is None:
            return
        if decision_id:
            await self.store.mark_decision_executed(decision_id)
        if result.position is not None:
            await self.store.save_trade(result.position, decision_id)
