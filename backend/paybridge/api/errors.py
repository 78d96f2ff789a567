"""
自定义异常模块

定义应用特定的异常类，用于统一的错误处理。
所有业务异常都继承自 AppError，在 main.py 中有统一的异常处理器。

Webhook 处理流程中的错误分类：
- ConfigMissing: 服务端缺少配置（500，无法重试）
- AuthFailure: 签名/令牌无效（401）
- EmptyPayload / NoIdentifier / ValidationMismatch: 请求内容有问题（400）
- OrderNotFound: 所有匹配策略都未找到订单（404）
- PersistenceFailure: 标记已支付的更新没有生效（500）
"""
from __future__ import annotations


class AppError(Exception):
    """
    应用自定义异常类

    用于业务逻辑中的错误处理，包含：
    - code: 业务错误码（用于调用方区分不同错误）
    - message: 错误消息
    - status_code: HTTP 状态码（400, 404, 500 等）
    - error: 简短的错误标题（响应体中的 error 字段）

    使用示例：
        raise AppError(code=404101, message="Order not found", status_code=404)
    """

    def __init__(
        self,
        *,
        code: int,
        message: str,
        status_code: int = 400,
        error: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.error = error or message


class ConfigMissing(AppError):
    def __init__(self, message: str = "Webhook secret not configured") -> None:
        super().__init__(code=500101, message=message, status_code=500, error="Configuration missing")


class AuthFailure(AppError):
    def __init__(self, message: str = "Webhook must include a valid signature") -> None:
        super().__init__(
            code=401101, message=message, status_code=401, error="Invalid or missing signature"
        )


class EmptyPayload(AppError):
    def __init__(self) -> None:
        super().__init__(
            code=400101,
            message="Webhook body is empty or missing",
            status_code=400,
            error="Empty body",
        )


class NoIdentifier(AppError):
    def __init__(self, message: str = "Webhook has no order_id, transaction_id or customer_email") -> None:
        super().__init__(code=400102, message=message, status_code=400, error="No identifier found")


class ValidationMismatch(AppError):
    def __init__(self, message: str = "Email does not match") -> None:
        super().__init__(code=400103, message=message, status_code=400, error="Validation failed")


class OrderNotFound(AppError):
    def __init__(self) -> None:
        super().__init__(
            code=404101,
            message="No order matches the provided data",
            status_code=404,
            error="Order not found",
        )


class PersistenceFailure(AppError):
    """标记已支付的更新影响了 0 行，或者回读的状态不是 paid（并发修改或约束拒绝）"""

    def __init__(self, message: str) -> None:
        super().__init__(code=500102, message=message, status_code=500, error="Internal server error")
