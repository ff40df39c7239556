"""
Aster 信号交易系统 — 信号接入接口

分类器与存储是外部协作方，这里只定义交易系统依赖的接口。
"""

from datetime import datetime
from typing import Protocol

from pydantic import BaseModel, Field

from astertrader.common.enums import SignalMagnitude, SignalType
from astertrader.common.models import Position
from astertrader.common.utils import utc_now


class Tweet(BaseModel):
    """监控账号发出的推文"""
    model_config = {"frozen": True}

    tweet_id: str
    text: str
    author_username: str
    author_name: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    received_at: datetime = Field(default_factory=utc_now)


class Classification(BaseModel):
    """分类器输出"""
    model_config = {"frozen": True}

    signal: SignalType
    confidence: float = Field(ge=0, le=100)
    reasoning: str = ""
    magnitude: SignalMagnitude | None = None


class AccountConfig(BaseModel):
    """
    监控账号配置（只读）

    为空的覆盖项使用引擎全局配置。
    """
    model_config = {"frozen": True}

    id: str
    username: str
    display_name: str | None = None
    enabled: bool = True
    custom_prompt: str | None = None
    confidence_multiplier: float = Field(default=1.0, ge=0)
    symbols: list[str] = Field(default_factory=lambda: ["BTCUSDT"])
    position_size_percent: float | None = Field(default=None, gt=0, le=100)
    min_confidence_threshold: float | None = Field(default=None, ge=0, le=100)
    leverage: int | None = Field(default=None, ge=1, le=125)


class SignalClassifier(Protocol):
    """信号分类器（外部 LLM 服务）"""

    async def classify(
        self,
        text: str,
        custom_prompt: str | None = None,
        author: str | None = None,
    ) -> Classification:
        ...


class TradeStore(Protocol):
    """决策与交易存储"""

    async def save_decision(
        self,
        tweet: Tweet,
        account: AccountConfig,
        classification: Classification,
        adjusted_confidence: float,
    ) -> str:
        """保存决策，返回决策 ID"""
        ...

    async def mark_decision_executed(self, decision_id: str) -> None:
        ...

    async def save_trade(self, position: Position, decision_id: str | None) -> None:
        ...
