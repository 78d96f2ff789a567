"""
Webhook 请求体归一化

不同支付平台的字段位置不同（有的在顶层，有的嵌套在 data / purchase / buyer / price 下），
这里用声明式的字段路径表把原始请求体转换为统一的 WebhookEvent。

每个字段按顺序尝试多个路径，取第一个非空值。路径的第一段是作用域：
- body: 原始请求体
- data: body["data"]（不存在时就是 body 本身）
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from paybridge.api.errors import EmptyPayload
from paybridge.enums import EventStatus, PaymentProvider

logger = logging.getLogger(__name__)

Path = tuple[str, ...]

_UUID_RE = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE)
_UUID_FULL_RE = re.compile(rf"^{_UUID_RE.pattern}$", re.IGNORECASE)


@dataclass(frozen=True)
class PayloadFields:
    """一个支付平台的字段路径表"""
    transaction_id: tuple[Path, ...]
    email: tuple[Path, ...]
    phone: tuple[Path, ...]
    amount: tuple[Path, ...]
    paid_at: tuple[Path, ...]
    event: tuple[Path, ...]
    checkout_url: tuple[Path, ...] = ()
    order_id: tuple[Path, ...] = ()


PAYLOAD_FIELDS: dict[PaymentProvider, PayloadFields] = {
    PaymentProvider.cakto: PayloadFields(
        transaction_id=(("data", "id"), ("data", "transaction_id")),
        checkout_url=(("data", "checkoutUrl"), ("data", "checkout_url"), ("body", "checkoutUrl")),
        order_id=(("data", "metadata", "order_id"), ("data", "external_id"), ("data", "order_id")),
        email=(("data", "customer", "email"), ("data", "customer_email"), ("data", "email")),
        phone=(("data", "customer", "phone"), ("data", "customer_phone"), ("data", "phone")),
        amount=(("data", "amount"), ("data", "amount_paid"), ("data", "total")),
        paid_at=(("data", "paidAt"), ("data", "paid_at"), ("data", "payment_date")),
        event=(("body", "event"), ("data", "status"), ("body", "status")),
    ),
    PaymentProvider.hotmart: PayloadFields(
        transaction_id=(("data", "purchase", "transaction"),),
        email=(
            ("data", "purchase", "buyer", "email"),
            ("data", "buyer", "email"),
            ("data", "email"),
        ),
        phone=(
            ("data", "purchase", "buyer", "phone"),
            ("data", "purchase", "buyer", "phone_number"),
            ("data", "buyer", "phone"),
            ("data", "buyer", "checkout_phone"),
        ),
        amount=(("data", "purchase", "price", "value"), ("data", "purchase", "amount")),
        paid_at=(("data", "purchase", "approved_date"), ("data", "purchase", "date_approved")),
        event=(("body", "event"),),
    ),
}

# 关键字规则：在小写的事件名上做子串匹配，按顺序取第一个命中的规则
_STATUS_KEYWORDS: tuple[tuple[str, EventStatus], ...] = (
    ("approved", EventStatus.approved),
    ("aprovad", EventStatus.approved),
    ("refused", EventStatus.refused),
    ("recusad", EventStatus.refused),
    ("refund", EventStatus.refunded),
    ("reembols", EventStatus.refunded),
    ("chargeback", EventStatus.chargeback),
    ("cancel", EventStatus.cancelled),
)
_APPROVED_EXACT = frozenset({"paid", "pago"})


@dataclass(frozen=True)
class WebhookEvent:
    """
    归一化后的 Webhook 事件

    customer_email 缺失时为空字符串；customer_phone 保留原始格式，比较时只看数字。
    status_inferred 为 True 表示事件名无法识别，状态来自 UNRECOGNIZED_STATUS_POLICY。
    """
    provider: PaymentProvider
    event: str
    status: EventStatus
    transaction_id: str | None
    order_id_hint: str | None
    customer_email: str
    customer_phone: str | None
    amount_cents: int
    paid_at: datetime | None
    status_inferred: bool = False

    @property
    def has_identifier(self) -> bool:
        return bool(self.order_id_hint or self.transaction_id or self.customer_email)

    @property
    def is_approved(self) -> bool:
        return self.status == EventStatus.approved


def _lookup(scopes: dict[str, Any], path: Path) -> Any:
    node: Any = scopes.get(path[0])
    for key in path[1:]:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def _first(scopes: dict[str, Any], paths: tuple[Path, ...]) -> Any:
    for path in paths:
        value = _lookup(scopes, path)
        if value not in (None, "", 0, False):
            return value
    return None


def _clean_str(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def is_valid_uuid(value: str | None) -> bool:
    return bool(value) and bool(_UUID_FULL_RE.match(value or ""))


def parse_amount_cents(value: Any) -> int:
    """
    金额（元）转换为分：decimal(金额) * 100 四舍五入取整

    字符串和数字都支持，无法解析时返回 0。
    """
    if value is None or isinstance(value, bool):
        return 0
    try:
        amount = Decimal(str(value).strip())
        return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError):
        return 0


def parse_paid_at(value: Any) -> datetime | None:
    """支付时间：ISO 8601 字符串，或 Unix 时间戳（秒或毫秒）"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip().isdigit():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Failed to parse paid_at {value!r}")
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    try:
        ts = float(value)
    except (TypeError, ValueError):
        return None
    if ts > 1e11:  # 毫秒
        ts /= 1000
    try:
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        logger.warning(f"paid_at timestamp {value!r} is out of range, ignoring")
        return None


def normalize_status(event: str, unrecognized_policy: str = "approve") -> tuple[EventStatus, bool]:
    """
    把支付平台事件名映射为统一状态

    Returns:
        (状态, 是否由策略推断)
    """
    lowered = event.strip().lower()
    if lowered in _APPROVED_EXACT:
        return EventStatus.approved, False
    for keyword, status in _STATUS_KEYWORDS:
        if keyword in lowered:
            return status, False

    if unrecognized_policy == "approve":
        logger.warning(f"Unrecognized webhook event {event!r}, treating as approved")
        return EventStatus.approved, True
    logger.warning(f"Unrecognized webhook event {event!r}, ignoring")
    return EventStatus.unrecognized, True


def _extract_order_hint(scopes: dict[str, Any], fields: PayloadFields) -> str | None:
    checkout_url = _clean_str(_first(scopes, fields.checkout_url))
    if checkout_url:
        match = _UUID_RE.search(checkout_url)
        if match:
            return match.group(0)
    return _clean_str(_first(scopes, fields.order_id))


def normalize_payload(
    provider: PaymentProvider,
    body: Any,
    *,
    unrecognized_policy: str = "approve",
) -> WebhookEvent:
    """
    把原始请求体转换为 WebhookEvent

    Raises:
        EmptyPayload: 请求体为空或不是 JSON 对象
    """
    if not body or not isinstance(body, dict):
        raise EmptyPayload()

    fields = PAYLOAD_FIELDS[provider]
    data = body.get("data")
    scopes = {"body": body, "data": data if isinstance(data, dict) and data else body}

    raw_email = _clean_str(_first(scopes, fields.email))
    event = _clean_str(_first(scopes, fields.event)) or ""
    status, inferred = normalize_status(event, unrecognized_policy)

    return WebhookEvent(
        provider=provider,
        event=event,
        status=status,
        transaction_id=_clean_str(_first(scopes, fields.transaction_id)),
        order_id_hint=_extract_order_hint(scopes, fields),
        customer_email=raw_email.lower() if raw_email else "",
        customer_phone=_clean_str(_first(scopes, fields.phone)),
        amount_cents=parse_amount_cents(_first(scopes, fields.amount)),
        paid_at=parse_paid_at(_first(scopes, fields.paid_at)),
        status_inferred=inferred,
    )
