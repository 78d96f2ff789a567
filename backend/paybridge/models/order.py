"""
订单模型模块

定义订单相关的数据库模型。
"""
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String
from sqlmodel import Field, SQLModel

from paybridge.enums import OrderStatus, PaymentProvider

from .base import new_id, utc_now


class Order(SQLModel, table=True):
    """
    订单模型

    结账时创建（status=pending），由支付平台 Webhook 标记为已支付。
    一个订单最多只会从 pending 变为 paid 一次；之后重复处理只刷新支付平台信息。

    字段说明：
    - id: 主键（UUID，结账链接中携带）
    - provider: 支付平台（cakto/hotmart）
    - status: 订单状态
    - customer_email / customer_whatsapp: 下单时填写的联系方式（用于匹配）
    - cakto_transaction_id / hotmart_transaction_id: 支付平台交易 ID
    - cakto_payment_status / hotmart_payment_status: 支付平台回传的支付状态
    - quiz_id: 关联的问卷（生成歌词需要）
    - plan: 套餐（standard/express）
    - amount_cents: 订单金额（分）
    - paid_at: 支付时间
    """
    __tablename__ = "orders"

    id: str = Field(default_factory=new_id, sa_column=Column(String(36), primary_key=True))
    provider: PaymentProvider = Field(sa_column=Column(String(16), index=True, nullable=False))
    status: OrderStatus = Field(
        default=OrderStatus.pending, sa_column=Column(String(16), index=True, nullable=False)
    )

    customer_email: str = Field(sa_column=Column(String(255), index=True, nullable=False))
    customer_whatsapp: str | None = Field(default=None, max_length=32)

    cakto_transaction_id: str | None = Field(
        default=None, sa_column=Column(String(128), index=True, nullable=True)
    )
    cakto_payment_status: str | None = Field(default=None, max_length=32)
    hotmart_transaction_id: str | None = Field(
        default=None, sa_column=Column(String(128), index=True, nullable=True)
    )
    hotmart_payment_status: str | None = Field(default=None, max_length=32)

    quiz_id: str | None = Field(default=None, max_length=36)
    plan: str | None = Field(default=None, max_length=16)
    amount_cents: int = Field(default=0, sa_column=Column(Integer, nullable=False))

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), index=True, nullable=False),
    )
    paid_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
