"""
Webhook 日志模型模块

每收到一次支付平台 Webhook，在匹配结束后（无论成功与否）追加一条日志，
日志写入后不再修改。两个支付平台各用一张表，字段完全相同。
"""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime
from sqlmodel import Field, SQLModel

from .base import new_id, utc_now


class WebhookLogBase(SQLModel):
    """
    Webhook 日志公共字段

    字段说明：
    - webhook_body: 原始请求体
    - transaction_id / order_id_from_webhook / customer_email / amount_cents: 提取出的标识
    - order_id: 匹配到的订单 ID（未匹配为空）
    - status_received: 归一化后的事件状态
    - order_found: 是否匹配到订单
    - processing_success: 是否处理成功
    - strategy_used: 命中的匹配策略（未命中为 "none"）
    - error_message: 失败原因
    - processing_time_ms: 处理耗时（毫秒）
    """
    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    webhook_body: dict[str, Any] | None = Field(default=None, sa_type=JSON)
    transaction_id: str | None = Field(default=None, max_length=128)
    order_id_from_webhook: str | None = Field(default=None, max_length=128)
    order_id: str | None = Field(default=None, max_length=36, index=True)
    status_received: str | None = Field(default=None, max_length=32)
    customer_email: str | None = Field(default=None, max_length=255)
    amount_cents: int | None = None
    order_found: bool = False
    processing_success: bool = False
    strategy_used: str = Field(default="none", max_length=32)
    error_message: str | None = None
    processing_time_ms: int | None = None
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class CaktoWebhookLog(WebhookLogBase, table=True):
    __tablename__ = "cakto_webhook_logs"


class HotmartWebhookLog(WebhookLogBase, table=True):
    __tablename__ = "hotmart_webhook_logs"
