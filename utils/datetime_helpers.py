# -*- coding: utf-8 -*-
"""Datetime helpers.

数据库中存储的 ``datetime`` 一律视为 UTC（无时区信息），令牌中的时间
使用 Unix 秒级时间戳。这里提供两者之间的转换工具。
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """当前 UTC 时间（naive，与数据库存储格式一致）。"""

    return datetime.now(timezone.utc).replace(tzinfo=None)


def _ensure_utc(dt: datetime) -> datetime:
    """将给定 ``datetime`` 统一转换为带 UTC 时区的对象。"""

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def timestamp_to_iso(ts: Optional[int | float]) -> Optional[str]:
    """Unix 时间戳 -> ISO 8601（带 ``+00:00``）。"""

    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def datetime_to_iso(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return _ensure_utc(dt).isoformat()
