"""
数据库模型定义模块

本模块使用 SQLModel 定义所有数据库表结构。

模型按功能拆分：
- order.py: 订单模型
- webhook_log.py: 支付平台 Webhook 日志（Cakto / Hotmart）
- job.py: 生成任务模型
- notifications.py: 歌词审批、邮件日志（只读的幂等检查表）
- quiz.py: 问卷模型
"""
from sqlmodel import SQLModel

from .base import as_utc, new_id, utc_now
from .job import Job
from .notifications import EmailLog, LyricsApproval
from .order import Order
from .quiz import Quiz
from .webhook_log import CaktoWebhookLog, HotmartWebhookLog, WebhookLogBase

__all__ = [
    "SQLModel",
    "utc_now",
    "as_utc",
    "new_id",
    "Order",
    "Quiz",
    "Job",
    "LyricsApproval",
    "EmailLog",
    "WebhookLogBase",
    "CaktoWebhookLog",
    "HotmartWebhookLog",
]
