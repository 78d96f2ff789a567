"""
下游函数服务集成模块

歌词生成、邮件通知、音频生成都部署为独立的 HTTP 函数，
统一通过 POST {FUNCTIONS_BASE_URL}/{name} 调用，使用服务端密钥做 Bearer 认证。

调用约定：invoke(name, body) -> InvokeResult(data, error)
- 成功：data 为响应 JSON，error 为 None
- 失败：data 为 None（或错误响应的 JSON），error 为 DownstreamError

错误分类（决定是否可以重试）：
- DownstreamTransient: 5xx、HTML/非 JSON 响应体、超时、网络错误
- DownstreamPermanent: 4xx
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from paybridge.core.config import settings

logger = logging.getLogger(__name__)


class DownstreamError(Exception):
    """下游函数调用失败"""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        is_html: bool = False,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.is_html = is_html
        self.body = body

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status}, message={self.message!r})"


class DownstreamTransient(DownstreamError):
    retryable = True


class DownstreamPermanent(DownstreamError):
    retryable = False


@dataclass(frozen=True)
class InvokeResult:
    """
    函数调用结果

    data: 响应 JSON（失败时可能为 None）
    error: 调用失败时的错误
    """
    data: Any = None
    error: DownstreamError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _looks_like_html(text: str) -> bool:
    head = text.lstrip()[:64].lower()
    return head.startswith("<!doctype html") or head.startswith("<html")


def classify_response(response: httpx.Response) -> InvokeResult:
    """
    把 HTTP 响应转换为 InvokeResult

    网关出错时经常返回 HTML 错误页（例如 502 Bad Gateway），
    这类响应体无法解析，按可重试错误处理。
    """
    text = response.text
    is_html = _looks_like_html(text) or "text/html" in response.headers.get("content-type", "")

    data: Any = None
    malformed = False
    if text and not is_html:
        try:
            data = response.json()
        except ValueError:
            malformed = True

    if response.is_success:
        if is_html or malformed:
            return InvokeResult(
                data=None,
                error=DownstreamTransient(
                    f"Malformed response body (status {response.status_code})",
                    status=response.status_code,
                    is_html=is_html,
                    body=text[:500],
                ),
            )
        return InvokeResult(data=data)

    message = f"Function returned status {response.status_code}"
    if isinstance(data, dict):
        message = str(data.get("error") or data.get("message") or message)

    if response.status_code >= 500 or is_html or malformed:
        error: DownstreamError = DownstreamTransient(
            message, status=response.status_code, is_html=is_html, body=data if data is not None else text[:500]
        )
    else:
        error = DownstreamPermanent(message, status=response.status_code, body=data)
    return InvokeResult(data=data, error=error)


class FunctionsClient:
    """下游函数服务客户端（进程内共享，内部复用 httpx 连接池）"""

    def __init__(
        self,
        *,
        base_url: str,
        service_key: str | None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: 函数网关基础 URL
            service_key: 服务端密钥（Bearer 认证）
            timeout: 单次调用超时（秒）
            transport: 自定义传输层（测试时注入 httpx.MockTransport）
        """
        headers = {"Content-Type": "application/json"}
        if service_key:
            headers["Authorization"] = f"Bearer {service_key}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/") + "/",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        logger.info("Functions client initialized")

    def invoke(self, name: str, body: dict[str, Any] | None = None) -> InvokeResult:
        """
        调用下游函数

        网络错误和超时不会抛出，而是作为 DownstreamTransient 放在结果里返回。
        """
        try:
            response = self._client.post(name, json=body or {})
        except httpx.TimeoutException as e:
            logger.warning(f"Function {name} timed out: {e}")
            return InvokeResult(error=DownstreamTransient(f"Timeout calling {name}: {e}"))
        except httpx.TransportError as e:
            logger.warning(f"Function {name} transport error: {e}")
            return InvokeResult(error=DownstreamTransient(f"Network error calling {name}: {e}"))

        result = classify_response(response)
        if result.error is not None:
            logger.error(f"Function {name} failed: {result.error!r}")
        return result

    def close(self) -> None:
        self._client.close()


# 全局客户端实例
_functions_client: FunctionsClient | None = None


def init_functions_client(
    *,
    base_url: str | None = None,
    service_key: str | None = None,
    timeout: float | None = None,
) -> FunctionsClient:
    """初始化全局函数客户端（未传入的参数从配置读取）"""
    global _functions_client
    if _functions_client is not None:
        _functions_client.close()
    _functions_client = FunctionsClient(
        base_url=base_url or settings.FUNCTIONS_BASE_URL,
        service_key=service_key or settings.SERVICE_ROLE_KEY,
        timeout=timeout or settings.FUNCTIONS_TIMEOUT_SECONDS,
    )
    return _functions_client


def get_functions_client() -> FunctionsClient:
    """获取全局函数客户端，首次调用时根据配置创建"""
    if _functions_client is None:
        return init_functions_client()
    return _functions_client


def close_functions_client() -> None:
    """关闭全局函数客户端（应用退出时调用）"""
    global _functions_client
    if _functions_client is not None:
        _functions_client.close()
        _functions_client = None
