"""
支付平台 Webhook 路由

- POST /cakto/webhook
- POST /hotmart/webhook

处理逻辑见 services/webhook_service.py。业务错误（AppError）交给全局异常处理器，
其他未预期的异常记录日志后统一返回 500。
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Request

from paybridge.api.deps import FunctionsDep, SessionDep
from paybridge.api.errors import AppError
from paybridge.api.schemas import WebhookResponse
from paybridge.enums import PaymentProvider
from paybridge.services.webhook_service import WebhookProcessor

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


def _process(
    provider: PaymentProvider,
    request: Request,
    session: SessionDep,
    functions: FunctionsDep,
    payload: dict[str, Any] | None,
) -> WebhookResponse:
    processor = WebhookProcessor(provider=provider, session=session, functions=functions)
    try:
        return processor.process(request.headers, payload)
    except AppError:
        raise
    except Exception as e:
        logger.exception(f"[{provider.value} webhook] fatal error")
        session.rollback()
        raise AppError(
            code=500000, message=str(e), status_code=500, error="Internal server error"
        ) from e


@router.post("/cakto/webhook", response_model=WebhookResponse, response_model_exclude_none=True)
def cakto_webhook(
    request: Request,
    session: SessionDep,
    functions: FunctionsDep,
    payload: dict[str, Any] | None = Body(default=None),
) -> WebhookResponse:
    return _process(PaymentProvider.cakto, request, session, functions, payload)


@router.post("/hotmart/webhook", response_model=WebhookResponse, response_model_exclude_none=True)
def hotmart_webhook(
    request: Request,
    session: SessionDep,
    functions: FunctionsDep,
    payload: dict[str, Any] | None = Body(default=None),
) -> WebhookResponse:
    return _process(PaymentProvider.hotmart, request, session, functions, payload)
