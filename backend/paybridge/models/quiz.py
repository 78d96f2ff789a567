"""问卷模型：结账时随订单一起创建，歌词生成以此为输入"""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column, DateTime, String
from sqlmodel import Field, SQLModel

from .base import new_id, utc_now


class Quiz(SQLModel, table=True):
    __tablename__ = "quizzes"

    id: str = Field(default_factory=new_id, sa_column=Column(String(36), primary_key=True))
    session_id: str = Field(max_length=36, index=True)
    about_who: str = Field(max_length=255)
    style: str = Field(max_length=64)
    answers: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
