"""
Aster 信号交易系统 — 结构化日志

JSON 格式输出，extra 字段随日志一起落盘，便于按订单 / 仓位检索。
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# LogRecord 自带属性，不属于 extra
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime", "extra_data"}

# 这些键无论出现在哪一层都不允许写入日志
_REDACTED_KEYS = frozenset({"signing_key", "private_key", "signature"})


class JSONFormatter(logging.Formatter):
    """JSON 格式日志格式化器"""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.pathname:
            log_data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = _collect_extra(record)
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, ensure_ascii=False, default=str)


def _collect_extra(record: logging.LogRecord) -> dict[str, Any]:
    """收集 extra={...} 传入的字段"""
    extra: dict[str, Any] = {}

    adapter_data = getattr(record, "extra_data", None)
    if isinstance(adapter_data, dict):
        extra.update(adapter_data)

    for key, value in vars(record).items():
        if key in _RESERVED_ATTRS or key.startswith("_"):
            continue
        extra[key] = value

    return {
        k: ("***" if k in _REDACTED_KEYS else v)
        for k, v in extra.items()
    }


def get_logger(
    name: str,
    level: int = logging.INFO,
    use_json: bool = True,
) -> logging.Logger:
    """
    获取结构化日志记录器

    Args:
        name: 日志记录器名称
        level: 日志级别
        use_json: 是否使用 JSON 格式

    Returns:
        配置好的 Logger 实例
    """
    logger = logging.getLogger(name)

    # 避免重复添加 handler
    if logger.handlers:
        return logger

    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)

    if use_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def set_log_level(level: int | str, prefix: str = "astertrader") -> None:
    """调整本系统所有已创建 logger 的级别"""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    for name, logger in logging.Logger.manager.loggerDict.items():
        if name.startswith(prefix) and isinstance(logger, logging.Logger):
            logger.setLevel(level)


class LoggerAdapter(logging.LoggerAdapter):
    """附带固定上下文（如 trade_id / symbol）的日志适配器"""

    def process(
        self, msg: str, kwargs: dict[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        merged = dict(self.extra or {})
        merged.update(extra)
        kwargs["extra"] = {"extra_data": merged}
        return msg, kwargs
