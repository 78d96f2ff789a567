"""
Webhook 签名 / 令牌校验

两个支付平台都使用共享密钥：Cakto 通过签名头或请求体中的 secret 传递，
Hotmart 通过 Authorization / hottok 头或请求体中的 token 传递。
服务端之间的重放调用携带服务端密钥（Authorization: Bearer <SERVICE_ROLE_KEY>），
这类调用直接视为可信，不再比较支付平台密钥。
"""
from __future__ import annotations

import hmac
import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any

from paybridge.api.errors import ConfigMissing
from paybridge.enums import PaymentProvider

logger = logging.getLogger(__name__)


class AuthResult(str, Enum):
    valid = "valid"
    invalid = "invalid"
    internal = "internal"


# 每个平台可能携带密钥的请求头（按优先级）和请求体字段
_CREDENTIAL_HEADERS: dict[PaymentProvider, tuple[str, ...]] = {
    PaymentProvider.cakto: ("x-cakto-signature", "x-cakto-token", "authorization"),
    PaymentProvider.hotmart: ("authorization", "x-hotmart-token", "x-hotmart-hottok"),
}
_CREDENTIAL_BODY_FIELDS: dict[PaymentProvider, tuple[str, ...]] = {
    PaymentProvider.cakto: ("secret",),
    PaymentProvider.hotmart: ("token", "hottok"),
}


def strip_bearer(value: str | None) -> str:
    if not value:
        return ""
    value = value.strip()
    if value[:7].lower() == "bearer ":
        value = value[7:]
    return value.strip()


def _matches(candidate: Any, expected: str) -> bool:
    if not isinstance(candidate, str) or not candidate:
        return False
    return hmac.compare_digest(candidate.encode(), expected.encode())


def is_internal_call(headers: Mapping[str, str], service_key: str | None) -> bool:
    """Authorization 头携带的是服务端密钥（未配置服务端密钥时永远不是内部调用）"""
    if not service_key:
        return False
    return _matches(strip_bearer(headers.get("authorization")), service_key)


def verify_webhook_auth(
    *,
    provider: PaymentProvider,
    secret: str | None,
    headers: Mapping[str, str],
    body: Mapping[str, Any],
    service_key: str | None,
) -> AuthResult:
    """
    校验 Webhook 请求的凭证

    Args:
        provider: 支付平台
        secret: 该平台配置的共享密钥
        headers: 请求头（键为小写，或大小写不敏感的 Mapping）
        body: 请求体
        service_key: 服务端密钥

    Returns:
        valid / invalid / internal

    Raises:
        ConfigMissing: 平台密钥未配置
    """
    if not secret:
        logger.error(f"[{provider.value} webhook] webhook secret not configured")
        raise ConfigMissing()

    if is_internal_call(headers, service_key):
        logger.info(f"[{provider.value} webhook] internal call authenticated")
        return AuthResult.internal

    for header in _CREDENTIAL_HEADERS[provider]:
        raw = headers.get(header)
        candidate = strip_bearer(raw) if header == "authorization" else (raw or "").strip()
        if _matches(candidate, secret):
            return AuthResult.valid

    for field in _CREDENTIAL_BODY_FIELDS[provider]:
        if _matches(body.get(field), secret):
            return AuthResult.valid

    logger.warning(f"[{provider.value} webhook] invalid or missing signature")
    return AuthResult.invalid
