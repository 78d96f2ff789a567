"""
带指数退避的下游函数调用

使用 tenacity 实现有上限的重试：
- 最多尝试 max_attempts 次（包含第一次）
- 第 n 次失败后等待 RETRY_BACKOFF_MULTIPLIER * 2^(n-1) 秒（默认 1s, 2s, 4s ...）
- 调用本身抛出的异常总是重试；返回的结果是否重试由 retry_on 决定
- 次数用尽后不抛出异常，而是返回最后一次的结果（异常会被转换成 DownstreamTransient）
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from tenacity import (
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from paybridge.core.config import settings
from paybridge.integrations.functions import (
    DownstreamTransient,
    FunctionsClient,
    InvokeResult,
)

logger = logging.getLogger(__name__)


def is_retryable_failure(result: InvokeResult) -> bool:
    """只有可重试的错误（5xx、HTML、超时、网络错误）才重试"""
    return result.error is not None and result.error.retryable


def is_failed_generation(result: InvokeResult) -> bool:
    """
    生成类调用的失败判定：有错误、响应体为空，或者响应里 success 明确为 False

    success 字段缺失或为其他值都算成功。
    """
    if result.error is not None or result.data is None:
        return True
    return isinstance(result.data, dict) and result.data.get("success") is False


def _give_up(retry_state: RetryCallState) -> InvokeResult:
    outcome = retry_state.outcome
    name = retry_state.args[0] if retry_state.args else "?"
    if outcome is None:
        return InvokeResult(error=DownstreamTransient(f"{name}: no attempt was made"))
    if outcome.failed:
        exc = outcome.exception()
        logger.error(f"{name}: all {retry_state.attempt_number} attempts failed, last exception: {exc!r}")
        return InvokeResult(error=DownstreamTransient(f"{type(exc).__name__}: {exc}"))
    result = outcome.result()
    logger.error(f"{name}: all {retry_state.attempt_number} attempts failed, last result: {result!r}")
    return result


def invoke_with_retry(
    functions: FunctionsClient,
    name: str,
    body: dict[str, Any] | None = None,
    *,
    max_attempts: int | None = None,
    retry_on: Callable[[InvokeResult], bool] = is_retryable_failure,
    sleep: Callable[[float], None] | None = None,
) -> InvokeResult:
    """
    调用下游函数，失败时按指数退避重试

    Args:
        functions: 函数客户端
        name: 函数名
        body: 请求体
        max_attempts: 最多尝试次数（默认读取 LYRICS_MAX_ATTEMPTS）
        retry_on: 判断返回结果是否需要重试
        sleep: 等待函数（测试时注入以避免真实等待）

    Returns:
        最后一次调用的结果
    """
    attempts = max_attempts or settings.LYRICS_MAX_ATTEMPTS
    retryer = Retrying(
        sleep=sleep or time.sleep,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=settings.RETRY_BACKOFF_MULTIPLIER, exp_base=2),
        retry=retry_if_exception_type(Exception) | retry_if_result(retry_on),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        retry_error_callback=_give_up,
    )
    result = retryer(functions.invoke, name, body)
    attempt_number = retryer.statistics.get("attempt_number", 1)
    if attempt_number > 1 and not retry_on(result):
        logger.info(f"{name}: succeeded on attempt {attempt_number} after {attempt_number - 1} failure(s)")
    return result
