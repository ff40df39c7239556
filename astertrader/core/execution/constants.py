"""
Aster 信号交易系统 — 执行层常量
"""


class ExecutionConstants:
    """执行层常量"""

    # 最近事件保留条数
    MAX_EVENT_LOG: int = 1000
