"""Webhook 日志 CRUD 操作（只追加，不修改）"""
from typing import Any

from sqlmodel import Session

from paybridge.enums import PaymentProvider
from paybridge.models import CaktoWebhookLog, HotmartWebhookLog, WebhookLogBase

_LOG_MODELS: dict[PaymentProvider, type[WebhookLogBase]] = {
    PaymentProvider.cakto: CaktoWebhookLog,
    PaymentProvider.hotmart: HotmartWebhookLog,
}


def log_model_for(provider: PaymentProvider) -> type[WebhookLogBase]:
    return _LOG_MODELS[provider]


def record(*, session: Session, provider: PaymentProvider, **fields: Any) -> WebhookLogBase:
    """写入一条 Webhook 日志"""
    entry = _LOG_MODELS[provider](**fields)
    session.add(entry)
    session.commit()
    session.refresh(entry)
    return entry
