"""
订单匹配

按固定顺序依次尝试多种匹配策略，第一个命中的策略胜出，
策略名会被保留下来，用于决定是否需要交叉校验、写入日志和响应。

Cakto:   订单 ID（结账链接）→ Cakto 交易 ID → 邮箱（最新待支付）→ 手机号（最新待支付）
Hotmart: Hotmart 交易 ID → 邮箱（最新待支付）→ 手机号（最新待支付）

手机号匹配比较宽松：只比较数字，相等或任一方是另一方的后缀都算匹配，
用来容忍有无国家码（+55）的差异。
"""
from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from sqlmodel import Session

from paybridge import crud
from paybridge.api.errors import ValidationMismatch
from paybridge.enums import MatchStrategy, PaymentProvider
from paybridge.models import Order
from paybridge.services.webhook_payload import WebhookEvent, is_valid_uuid

logger = logging.getLogger(__name__)

# 命中这些策略的订单视为可靠匹配，不再做邮箱/手机号交叉校验
RELIABLE_STRATEGIES = frozenset(
    {
        MatchStrategy.order_id_from_webhook,
        MatchStrategy.cakto_transaction_id,
        MatchStrategy.hotmart_transaction_id,
        MatchStrategy.phone_most_recent,
    }
)

_NON_DIGITS = re.compile(r"\D")


def digits_only(value: str | None) -> str:
    return _NON_DIGITS.sub("", value or "")


def phones_match(a: str | None, b: str | None) -> bool:
    """只比较数字：相等，或者任一方是另一方的后缀"""
    da, db = digits_only(a), digits_only(b)
    if not da or not db:
        return False
    return da == db or da.endswith(db) or db.endswith(da)


@dataclass(frozen=True)
class OrderMatch:
    order: Order
    strategy: MatchStrategy

    @property
    def reliable(self) -> bool:
        return self.strategy in RELIABLE_STRATEGIES


Strategy = Callable[[Session, WebhookEvent], Order | None]


def _by_order_hint(session: Session, event: WebhookEvent) -> Order | None:
    if not is_valid_uuid(event.order_id_hint):
        return None
    return crud.orders.get_by_id_for_provider(
        session=session, order_id=event.order_id_hint or "", provider=event.provider
    )


def _by_transaction_id(session: Session, event: WebhookEvent) -> Order | None:
    if not event.transaction_id:
        return None
    return crud.orders.get_by_transaction_id(
        session=session, provider=event.provider, transaction_id=event.transaction_id
    )


def _by_email(session: Session, event: WebhookEvent) -> Order | None:
    if not event.customer_email:
        return None
    return crud.orders.get_latest_pending_by_email(
        session=session, provider=event.provider, email=event.customer_email
    )


def _by_phone(session: Session, event: WebhookEvent) -> Order | None:
    if not digits_only(event.customer_phone):
        return None
    for order in crud.orders.list_pending(session=session, provider=event.provider):
        if phones_match(order.customer_whatsapp, event.customer_phone):
            return order
    return None


CASCADES: dict[PaymentProvider, tuple[tuple[MatchStrategy, Strategy], ...]] = {
    PaymentProvider.cakto: (
        (MatchStrategy.order_id_from_webhook, _by_order_hint),
        (MatchStrategy.cakto_transaction_id, _by_transaction_id),
        (MatchStrategy.email_most_recent, _by_email),
        (MatchStrategy.phone_most_recent, _by_phone),
    ),
    PaymentProvider.hotmart: (
        (MatchStrategy.hotmart_transaction_id, _by_transaction_id),
        (MatchStrategy.email_most_recent, _by_email),
        (MatchStrategy.phone_most_recent, _by_phone),
    ),
}


def match_order(session: Session, event: WebhookEvent) -> OrderMatch | None:
    """按顺序尝试匹配策略，返回第一个命中的结果"""
    for strategy, find in CASCADES[event.provider]:
        order = find(session, event)
        if order is not None:
            logger.info(f"[{event.provider.value} webhook] order {order.id} matched by {strategy.value}")
            return OrderMatch(order=order, strategy=strategy)
    return None


def validate_match(event: WebhookEvent, match: OrderMatch) -> None:
    """
    弱匹配（仅邮箱）的交叉校验

    邮箱不一致时改用手机号校验，手机号缺失或也不一致则拒绝。

    Raises:
        ValidationMismatch: 邮箱和手机号都对不上
    """
    if match.reliable or not event.customer_email:
        return
    stored_email = (match.order.customer_email or "").strip().lower()
    if stored_email == event.customer_email:
        return

    if event.customer_phone and match.order.customer_whatsapp:
        if not phones_match(match.order.customer_whatsapp, event.customer_phone):
            raise ValidationMismatch("Email and phone do not match")
        return
    raise ValidationMismatch("Email does not match")
