"""
Aster 信号交易系统 — 工具函数

UTC 时间与毫秒 / 微秒时间戳换算。
"""

from datetime import datetime, timezone
from decimal import Decimal


def utc_now() -> datetime:
    """
    获取当前 UTC 时间

    Returns:
        带时区信息的 UTC datetime
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """将 datetime 转换为 UTC（无时区的视为 UTC）"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def from_utc_ms(ts_ms: int) -> datetime:
    """
    将 UTC 毫秒时间戳转换为 datetime

    Args:
        ts_ms: UTC 毫秒时间戳

    Returns:
        带时区信息的 UTC datetime
    """
    return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc)


def to_utc_ms(dt: datetime) -> int:
    """将 datetime 转换为 UTC 毫秒时间戳"""
    return int(to_utc(dt).timestamp() * 1000)


def generate_position_id(symbol: str, opened_at: datetime) -> str:
    """
    生成仓位 ID

    格式: {symbol}_{毫秒时间戳}
    """
    return f"{symbol}_{to_utc_ms(opened_at)}"


def format_decimal(value: Decimal | float | int | str) -> str:
    """
    以定点格式输出数值（不使用科学计数法，去掉多余的 0）

    下单数量和触发价都以字符串上送，必须与签名内容完全一致。
    """
    dec = value if isinstance(value, Decimal) else Decimal(str(value))
    text = format(dec, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"
