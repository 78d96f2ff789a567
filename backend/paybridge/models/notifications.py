"""
歌词审批 / 邮件日志模型模块

这两张表由生成服务和通知服务写入，本服务只读取，用作幂等检查：
- LyricsApproval 存在：该订单的歌词生成已经启动过
- EmailLog(email_type=order_paid) 处于 sent/delivered/pending：确认邮件已经在发送
"""
from datetime import datetime

from sqlalchemy import Column, DateTime, String
from sqlmodel import Field, SQLModel

from paybridge.enums import EmailStatus

from .base import new_id, utc_now


class LyricsApproval(SQLModel, table=True):
    __tablename__ = "lyrics_approvals"

    id: str = Field(default_factory=new_id, sa_column=Column(String(36), primary_key=True))
    order_id: str = Field(sa_column=Column(String(36), index=True, nullable=False))
    job_id: str | None = Field(default=None, max_length=36)
    status: str = Field(default="pending", max_length=32)
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class EmailLog(SQLModel, table=True):
    __tablename__ = "email_logs"

    id: str = Field(default_factory=new_id, sa_column=Column(String(36), primary_key=True))
    order_id: str = Field(sa_column=Column(String(36), index=True, nullable=False))
    email_type: str = Field(max_length=32)
    status: EmailStatus = Field(sa_column=Column(String(16), nullable=False))
    recipient_email: str | None = Field(default=None, max_length=255)
    sent_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), index=True, nullable=False),
    )
