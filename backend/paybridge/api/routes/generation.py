"""
生成服务代理路由

前端不直接持有服务端密钥，歌词/音频生成和 Suno 回调都经由后端转发到下游函数：

- POST /lyrics/generate -> generate-lyrics-internal
- POST /audio/generate  -> generate-audio-internal（失败时按指数退避重试）
- POST /suno/callback   -> suno-callback

下游成功时原样返回其响应体（为空时返回 {"success": true}），
失败时返回 500 和 {"success": false, "error": ...}。
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse

from paybridge.api.deps import FunctionsDep
from paybridge.api.schemas import ProxyErrorData
from paybridge.core.config import settings
from paybridge.integrations.functions import DownstreamError, FunctionsClient, InvokeResult
from paybridge.services.retry import invoke_with_retry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["generation"])

GENERATE_LYRICS_INTERNAL_FUNCTION = "generate-lyrics-internal"
GENERATE_AUDIO_INTERNAL_FUNCTION = "generate-audio-internal"
SUNO_CALLBACK_FUNCTION = "suno-callback"

AUDIO_UNAVAILABLE_MESSAGE = "Music service temporarily unavailable. Please try again in a few moments."
AUDIO_UNREACHABLE_MESSAGE = (
    "Could not reach the music service after several attempts. Please try again later."
)
_MAX_ERROR_LENGTH = 300


def sanitize_error(error: DownstreamError) -> str:
    """去掉 HTML 错误页等不适合直接返回给前端的内容"""
    if error.is_html:
        status = f" (status {error.status})" if error.status else ""
        return f"Upstream service returned an error page{status}"
    message = " ".join(str(error.message).split())
    if len(message) > _MAX_ERROR_LENGTH:
        message = message[:_MAX_ERROR_LENGTH] + "..."
    return message or "Unknown error"


def _error_response(payload: ProxyErrorData) -> JSONResponse:
    return JSONResponse(status_code=500, content=payload.model_dump(exclude_none=True))


def _success_response(result: InvokeResult) -> Any:
    return result.data if result.data else {"success": True}


def _proxy(functions: FunctionsClient, name: str, body: dict[str, Any] | None) -> Any:
    try:
        result = functions.invoke(name, body)
    except Exception as e:
        logger.exception(f"[{name}] unexpected error")
        return _error_response(ProxyErrorData(error=str(e) or "Unknown error"))

    if result.error is not None:
        logger.error(f"[{name}] function error: {result.error!r}")
        return _error_response(ProxyErrorData(error=sanitize_error(result.error)))
    return _success_response(result)


@router.post("/lyrics/generate")
def generate_lyrics(
    functions: FunctionsDep,
    payload: dict[str, Any] | None = Body(default=None),
) -> Any:
    """转发歌词生成请求"""
    return _proxy(functions, GENERATE_LYRICS_INTERNAL_FUNCTION, payload)


@router.post("/audio/generate")
def generate_audio(
    functions: FunctionsDep,
    payload: dict[str, Any] | None = Body(default=None),
) -> Any:
    """
    转发音频生成请求

    网关 502、超时等可重试错误会自动重试，4xx 直接返回。
    最终失败时返回友好的错误信息，本地环境额外附带错误详情。
    """
    result = invoke_with_retry(
        functions,
        GENERATE_AUDIO_INTERNAL_FUNCTION,
        payload,
        max_attempts=settings.AUDIO_MAX_ATTEMPTS,
    )
    if result.error is None:
        return _success_response(result)

    error = result.error
    sanitized = sanitize_error(error)
    logger.error(
        f"[generate-audio] final error after retries: status={error.status}, "
        f"is_html={error.is_html}, retryable={error.retryable}, message={sanitized}"
    )

    if error.is_html and error.status == 502:
        message = AUDIO_UNAVAILABLE_MESSAGE
    elif error.retryable:
        message = AUDIO_UNREACHABLE_MESSAGE
    else:
        message = sanitized

    details = None
    if settings.ENVIRONMENT == "local":
        details = {"original": sanitized, "status": error.status, "is_retryable": error.retryable}
    return _error_response(ProxyErrorData(error=message, error_details=details))


@router.post("/suno/callback")
def suno_callback(
    functions: FunctionsDep,
    payload: dict[str, Any] | None = Body(default=None),
) -> Any:
    """转发 Suno 音频生成回调"""
    return _proxy(functions, SUNO_CALLBACK_FUNCTION, payload)
