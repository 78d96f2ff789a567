"""
API 请求/响应数据模型（Schema）

定义所有 API 接口的请求和响应数据结构。
使用 Pydantic 进行数据验证和序列化。

- 这些模型不是数据库表，只用于 API 数据交换
- Webhook 响应字段都是可选的，序列化时去掉 None（response_model_exclude_none）
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, EmailStr, Field

from paybridge.enums import CheckoutPlan, PaymentProvider

# ============================================================
# Webhook
# ============================================================


class WebhookResponse(BaseModel):
    """
    支付平台 Webhook 响应

    三种形态：
    - 已标记为已支付：{success, order_id, strategy_used, lyrics_generated, message}
    - 已处理过（Cakto）：{received, message}
    - 非批准事件：{received, event, status, processed, message}
    """
    success: bool | None = None
    received: bool | None = None
    message: str | None = None
    order_id: str | None = None
    strategy_used: str | None = None
    lyrics_generated: bool | None = None
    event: str | None = None
    status: str | None = None
    processed: bool | None = None


# ============================================================
# 结账
# ============================================================


class CheckoutQuiz(BaseModel):
    """
    结账时提交的问卷

    about_who 和 style 必填，其余回答原样保存。
    """
    model_config = {"extra": "allow"}

    about_who: str = Field(min_length=1, max_length=255)  # 歌曲写给谁
    style: str = Field(min_length=1, max_length=64)  # 音乐风格


class CheckoutCreateRequest(BaseModel):
    """创建订单请求"""
    session_id: str = Field(
        pattern=r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
    )
    quiz: CheckoutQuiz
    customer_email: EmailStr
    customer_whatsapp: str = Field(min_length=8, max_length=32)
    plan: CheckoutPlan
    amount_cents: int = Field(gt=0)
    provider: PaymentProvider
    transaction_id: str | None = Field(default=None, max_length=128)


class CheckoutCreateData(BaseModel):
    success: bool = True
    quiz_id: str
    order_id: str


# ============================================================
# 生成服务代理
# ============================================================


class ProxyErrorData(BaseModel):
    success: bool = False
    error: str
    error_details: dict[str, Any] | None = None
