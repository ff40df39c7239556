"""执行日志器测试"""

from astertrader.common.enums import SignalType
from astertrader.common.models import GateResult, TradeDecision, TradeSignal
from astertrader.core.execution.logger import ExecutionEvent, ExecutionLogger


def _signal() -> TradeSignal:
    return TradeSignal(decision=TradeDecision(signal=SignalType.LONG, confidence=80))


class TestExecutionLogger:
    """执行日志测试"""

    def test_trade_history(self):
        log = ExecutionLogger()
        log.log_trade_started("t1", _signal())
        log.log_gate_denied("t1", GateResult(allowed=False, reason="Trading is disabled", check="enabled"))
        log.log_trade_started("t2", _signal())

        history = log.get_trade_history("t1")
        assert [e.event_type for e in history] == [
            ExecutionEvent.TRADE_STARTED,
            ExecutionEvent.GATE_DENIED,
        ]
        assert history[1].details["reason"] == "Trading is disabled"
        assert len(log.get_recent_logs()) == 3

    def test_unknown_trade(self):
        assert ExecutionLogger().get_trade_history("missing") == []

    def test_recent_limit(self):
        log = ExecutionLogger()
        for i in range(5):
            log.log_trade_failed(f"t{i}", "boom", "SIZING")
        recent = log.get_recent_logs(limit=2)
        assert [e.trade_id for e in recent] == ["t3", "t4"]

    def test_trims_oldest(self):
        log = ExecutionLogger(max_entries=3)
        for i in range(5):
            log.log_trade_failed(f"t{i}", "boom", "SIZING")
        assert [e.trade_id for e in log.get_recent_logs()] == ["t2", "t3", "t4"]
        assert log.get_trade_history("t0") == []

    def test_to_dict(self):
        log = ExecutionLogger()
        log.log_emergency_close("t1", "BTCUSDT_1", False, "timeout")
        data = log.get_recent_logs()[0].to_dict()
        assert data["event_type"] == "EMERGENCY_CLOSE"
        assert data["details"] == {"position_id": "BTCUSDT_1", "success": False, "error": "timeout"}
        assert isinstance(data["timestamp"], str)
