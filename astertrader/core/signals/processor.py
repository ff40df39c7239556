"""
Aster 信号交易系统 — 信号处理

推文 → 分类 → 置信度加权 → 保存决策 → 过滤 → 提交分发器。
"""

from enum import Enum

from pydantic import BaseModel

from astertrader.common.enums import SignalType
from astertrader.common.logging import get_logger
from astertrader.common.models import TradeContext, TradeDecision, TradeOverrides, TradeSignal

from .base import AccountConfig, SignalClassifier, Tweet, TradeStore
from .dispatcher import SignalDispatcher

logger = get_logger(__name__)


class ProcessStatus(str, Enum):
    SKIPPED = "SKIPPED"
    HOLD = "HOLD"
    BELOW_THRESHOLD = "BELOW_THRESHOLD"
    SUBMITTED = "SUBMITTED"
    REJECTED = "REJECTED"


class ProcessResult(BaseModel):
    """单条推文的处理结果"""
    status: ProcessStatus
    decision_id: str | None = None
    adjusted_confidence: float | None = None
    reason: str | None = None


class SignalProcessor:
    """信号处理器"""

    def __init__(
        self,
        classifier: SignalClassifier,
        dispatcher: SignalDispatcher,
        store: TradeStore,
    ):
        self.classifier = classifier
        self.dispatcher = dispatcher
        self.store = store

    async def process(self, tweet: Tweet, account: AccountConfig) -> ProcessResult:
        """
        处理一条推文

        Args:
            tweet: 推文
            account: 发文账号的监控配置

        Returns:
            ProcessResult
        """
        if not account.enabled:
            logger.info(f"跳过已停用账号: @{account.username}")
            return ProcessResult(status=ProcessStatus.SKIPPED, reason="Account disabled")

        classification = await self.classifier.classify(
            tweet.text,
            custom_prompt=account.custom_prompt,
            author=account.display_name or account.username,
        )
        adjusted = min(100.0, classification.confidence * account.confidence_multiplier)

        decision_id = await self.store.save_decision(tweet, account, classification, adjusted)
        logger.info(
            f"分类结果: {classification.signal.value} {classification.confidence}% -> {adjusted:.1f}%",
            extra={"decision_id": decision_id, "account": account.username},
        )

        if classification.signal == SignalType.HOLD:
            return ProcessResult(
                status=ProcessStatus.HOLD,
                decision_id=decision_id,
                adjusted_confidence=adjusted,
                reason="Signal is HOLD",
            )

        threshold = account.min_confidence_threshold
        if threshold is None:
            threshold = self.dispatcher.engine.config.min_confidence_threshold
        if adjusted < threshold:
            return ProcessResult(
                status=ProcessStatus.BELOW_THRESHOLD,
                decision_id=decision_id,
                adjusted_confidence=adjusted,
                reason=f"Adjusted confidence too low ({adjusted:.1f}% < {threshold:g}%)",
            )

        signal = TradeSignal(
            decision=TradeDecision(
                signal=classification.signal,
                confidence=adjusted,
                reasoning=classification.reasoning,
                magnitude=classification.magnitude,
                decision_id=decision_id,
            ),
            context=TradeContext(source_id=tweet.tweet_id, account_id=account.id),
            overrides=TradeOverrides(
                symbols=account.symbols,
                position_size_percent=account.position_size_percent,
                leverage=account.leverage,
            ),
        )

        if not self.dispatcher.submit(signal):
            return ProcessResult(
                status=ProcessStatus.REJECTED,
                decision_id=decision_id,
                adjusted_confidence=adjusted,
                reason="Trade already in flight",
            )

        return ProcessResult(
            status=ProcessStatus.SUBMITTED,
            decision_id=decision_id,
            adjusted_confidence=adjusted,
        )
