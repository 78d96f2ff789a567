"""
生成任务模型模块

Job 把订单和生成流水线关联起来。订单被标记为已支付且带有 quiz_id 时，
如果还没有 Job，Webhook 会补建一个 pending 状态的 Job。
"""
from datetime import datetime

from sqlalchemy import Column, DateTime, String
from sqlmodel import Field, SQLModel

from paybridge.enums import JobStatus

from .base import new_id, utc_now


class Job(SQLModel, table=True):
    __tablename__ = "jobs"

    id: str = Field(default_factory=new_id, sa_column=Column(String(36), primary_key=True))
    order_id: str = Field(sa_column=Column(String(36), unique=True, index=True, nullable=False))
    quiz_id: str = Field(max_length=36)
    status: JobStatus = Field(
        default=JobStatus.pending, sa_column=Column(String(16), nullable=False)
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
