"""
支付平台 Webhook 处理流程

凭证校验 → 请求体归一化 → 订单匹配 → 交叉校验 → 标记已支付 → 触发副作用

每个终态（未找到标识、未找到订单、校验失败、忽略、已处理、成功、持久化失败）
都会写一条 Webhook 日志；请求体为空、凭证无效时不写日志。
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

from sqlmodel import Session

from paybridge import crud
from paybridge.api.errors import (
    AuthFailure,
    ConfigMissing,
    EmptyPayload,
    NoIdentifier,
    OrderNotFound,
    PersistenceFailure,
    ValidationMismatch,
)
from paybridge.api.schemas import WebhookResponse
from paybridge.core.config import settings
from paybridge.enums import MatchStrategy, OrderStatus, PaidReplayPolicy, PaymentProvider
from paybridge.integrations.functions import FunctionsClient
from paybridge.models import Order
from paybridge.services.order_matching import OrderMatch, match_order, validate_match
from paybridge.services.side_effects import SideEffectDispatcher
from paybridge.services.webhook_payload import WebhookEvent, normalize_payload
from paybridge.services.webhook_security import AuthResult, verify_webhook_auth

logger = logging.getLogger(__name__)

# 订单已支付时再次收到批准事件：
# Cakto 直接返回；Hotmart 重新写入支付信息并重新评估副作用，
# 保证之前只完成一半的 Webhook（例如歌词生成失败）能够补上。
PAID_REPLAY_POLICIES: dict[PaymentProvider, PaidReplayPolicy] = {
    PaymentProvider.cakto: PaidReplayPolicy.short_circuit,
    PaymentProvider.hotmart: PaidReplayPolicy.reapply,
}


def webhook_secret_for(provider: PaymentProvider) -> str | None:
    if provider == PaymentProvider.cakto:
        return settings.CAKTO_WEBHOOK_SECRET
    return settings.HOTMART_WEBHOOK_SECRET


def mark_order_paid(*, session: Session, order: Order, event: WebhookEvent) -> Order:
    """
    把订单标记为已支付

    Raises:
        PersistenceFailure: 更新影响 0 行，或回读的状态不是 paid
    """
    rowcount, updated = crud.orders.mark_paid(
        session=session,
        order_id=order.id,
        provider=event.provider,
        transaction_id=event.transaction_id,
        paid_at=event.paid_at,
    )
    if not rowcount or updated is None:
        raise PersistenceFailure(f"No rows updated for order {order.id}")
    if updated.status != OrderStatus.paid:
        raise PersistenceFailure(f"Order {order.id} was not marked as paid. Current status: {updated.status}")
    return updated


class WebhookProcessor:
    """处理单个支付平台的 Webhook 请求"""

    def __init__(
        self,
        *,
        provider: PaymentProvider,
        session: Session,
        functions: FunctionsClient,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.provider = provider
        self.session = session
        self.functions = functions
        self._sleep = sleep
        self._tag = f"[{provider.value} webhook]"

    def _record(
        self,
        body: dict[str, Any],
        event: WebhookEvent,
        started: float,
        *,
        match: OrderMatch | None = None,
        success: bool = False,
        error_message: str | None = None,
    ) -> None:
        crud.webhook_logs.record(
            session=self.session,
            provider=self.provider,
            webhook_body=body,
            transaction_id=event.transaction_id,
            order_id_from_webhook=event.order_id_hint,
            order_id=match.order.id if match else None,
            status_received=event.status.value,
            customer_email=event.customer_email or None,
            amount_cents=event.amount_cents or None,
            order_found=match is not None,
            processing_success=success,
            strategy_used=(match.strategy if match else MatchStrategy.none).value,
            error_message=error_message,
            processing_time_ms=int((time.monotonic() - started) * 1000),
        )

    def authenticate(self, headers: Mapping[str, str], body: dict[str, Any] | None) -> AuthResult:
        """
        Raises:
            ConfigMissing: 平台密钥未配置
            EmptyPayload: 请求体为空
            AuthFailure: 凭证无效
        """
        secret = webhook_secret_for(self.provider)
        if not secret:
            logger.error(f"{self._tag} webhook secret not configured")
            raise ConfigMissing()
        if not body:
            logger.error(f"{self._tag} empty or missing body")
            raise EmptyPayload()

        result = verify_webhook_auth(
            provider=self.provider,
            secret=secret,
            headers=headers,
            body=body,
            service_key=settings.SERVICE_ROLE_KEY,
        )
        if result == AuthResult.invalid:
            raise AuthFailure()
        return result

    def process(self, headers: Mapping[str, str], body: dict[str, Any] | None) -> WebhookResponse:
        started = time.monotonic()
        logger.info(f"{self._tag} webhook received")

        self.authenticate(headers, body)
        logger.debug(f"{self._tag} payload: {body}")

        event = normalize_payload(
            self.provider, body, unrecognized_policy=settings.UNRECOGNIZED_STATUS_POLICY
        )

        if not event.has_identifier:
            logger.error(f"{self._tag} no identifier found")
            self._record(body, event, started, error_message="No identifier found")
            raise NoIdentifier()

        match = match_order(self.session, event)
        if match is None:
            logger.error(
                f"{self._tag} order not found (transaction_id={event.transaction_id}, "
                f"order_id_hint={event.order_id_hint}, email={event.customer_email})"
            )
            self._record(body, event, started, error_message="Order not found")
            raise OrderNotFound()

        try:
            validate_match(event, match)
        except ValidationMismatch as e:
            logger.error(f"{self._tag} cross-field validation failed for order {match.order.id}: {e.message}")
            self._record(body, event, started, match=match, error_message=e.message)
            raise

        if not event.is_approved:
            logger.info(f"{self._tag} event {event.event!r} ({event.status.value}) acknowledged, not processed")
            self._record(
                body, event, started, match=match, success=True,
                error_message=f"Event ignored: {event.status.value}",
            )
            return WebhookResponse(
                received=True,
                event=event.event or "unknown",
                status=event.status.value,
                processed=False,
                message="Webhook received but not processed",
            )

        was_paid = match.order.status == OrderStatus.paid
        if was_paid and PAID_REPLAY_POLICIES[self.provider] == PaidReplayPolicy.short_circuit:
            logger.info(f"{self._tag} order {match.order.id} already paid, nothing to do")
            self._record(body, event, started, match=match, success=True)
            return WebhookResponse(received=True, message="Already processed")
        if was_paid:
            logger.info(f"{self._tag} order {match.order.id} already paid, re-applying payment data")

        try:
            order = mark_order_paid(session=self.session, order=match.order, event=event)
        except PersistenceFailure as e:
            logger.error(f"{self._tag} {e.message}")
            self._record(body, event, started, match=match, error_message=e.message)
            raise

        logger.info(f"{self._tag} order {order.id} marked as paid (was_already_paid={was_paid})")
        self._record(body, event, started, match=match, success=True)

        outcome = SideEffectDispatcher(
            session=self.session, functions=self.functions, sleep=self._sleep
        ).dispatch(order)

        return WebhookResponse(
            success=True,
            order_id=order.id,
            strategy_used=match.strategy.value,
            lyrics_generated=outcome.lyrics_generated,
            message="Order marked as paid. Email and lyrics will be sent automatically.",
        )
