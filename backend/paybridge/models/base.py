"""
基础模型模块

定义所有模型共用的基础类和工具函数。
"""
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel


def utc_now() -> datetime:
    """
    获取当前 UTC 时间

    Returns:
        当前 UTC 时区的日期时间对象
    """
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    把数据库读出的时间统一成 UTC aware

    SQLite 不保存时区信息，读出来的是 naive datetime，按 UTC 处理。
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def new_id() -> str:
    """生成 UUID 字符串主键（结账链接里会带上订单 ID，因此使用 UUID 而不是自增 ID）"""
    return str(uuid.uuid4())


# 导出 SQLModel 供其他模块使用
__all__ = ["SQLModel", "utc_now", "as_utc", "new_id"]
