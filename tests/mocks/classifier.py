"""固定输出的分类器"""

from astertrader.common.enums import SignalType
from astertrader.core.signals.base import Classification


class StubClassifier:
    """返回预设分类结果，并记录调用参数"""

    def __init__(self, signal: SignalType = SignalType.LONG, confidence: float = 80.0):
        self.result = Classification(signal=signal, confidence=confidence, reasoning="stub")
        self.calls: list[dict] = []

    async def classify(
        self,
        text: str,
        custom_prompt: str | None = None,
        author: str | None = None,
    ) -> Classification:
        self.calls.append({"text": text, "custom_prompt": custom_prompt, "author": author})
        return self.result
