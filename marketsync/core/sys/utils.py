# File: marketsync/core/sys/utils.py
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from dateutil import parser as dateutil_parser


def now_utc() -> datetime:
    """当前 UTC 时间 (naive)，数据库统一存 UTC"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    解析平台返回的 ISO-8601 时间，失败返回 None。
    'Z' 结尾、任意位数的小数秒均可；结果统一转为 naive UTC。
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    try:
        return to_naive_utc(dateutil_parser.isoparse(str(value).strip()))
    except (ValueError, OverflowError):
        return None


def to_decimal(value: Any, default: str = "0") -> Decimal:
    """平台金额可能是字符串 / 浮点 / None，统一转 Decimal"""
    if value is None or value == "":
        return Decimal(default)
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(default)


def format_iso(value: datetime) -> str:
    """naive UTC -> 'YYYY-MM-DDTHH:MM:SS.000Z' (平台接口要求的格式)"""
    value = to_naive_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.000Z")
