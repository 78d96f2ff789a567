"""
paybridge 应用入口

    uvicorn paybridge.main:app --reload

所有错误响应使用同一个结构：
    {"code": 业务错误码, "error": 错误标题, "message": 详细信息, "data": null 或附加信息}
"""
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException  # 路由不存在等框架内部错误也走这里

from paybridge.api.errors import AppError
from paybridge.api.main import api_router
from paybridge.core.config import settings
from paybridge.integrations.functions import close_functions_client

logging.basicConfig(
    level=logging.DEBUG if settings.ENVIRONMENT == "local" else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def custom_generate_unique_id(route: APIRoute) -> str:
    # OpenAPI operationId：{tag}-{函数名}，例如 webhooks-cakto_webhook
    return f"{route.tags[0]}-{route.name}"


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    close_functions_client()


if settings.SENTRY_DSN and settings.ENVIRONMENT != "local":  # pragma: no cover
    sentry_sdk.init(dsn=str(settings.SENTRY_DSN), enable_tracing=True)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    generate_unique_id_function=custom_generate_unique_id,
    lifespan=lifespan,
)


def _error_body(code: Any, error: str, message: str, data: Any = None) -> dict[str, Any]:
    return {"code": code, "error": error, "message": message, "data": data}


@app.exception_handler(AppError)
async def app_error_handler(_: Request, exc: AppError) -> JSONResponse:
    """业务异常：状态码和错误码都由异常本身决定"""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code, exc.error, exc.message),
    )


@app.exception_handler(HTTPException)
async def http_error_handler(_: Request, exc: HTTPException) -> JSONResponse:
    """
    HTTPException 转成统一结构

    detail 是 {"code", "message"} 字典时直接使用，
    否则错误码取 状态码 * 1000（404 -> 404000）。
    """
    if isinstance(exc.detail, dict) and {"code", "message"} <= set(exc.detail.keys()):
        code, message = exc.detail["code"], str(exc.detail["message"])
    else:
        code, message = exc.status_code * 1000, str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content=_error_body(code, message, message))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    # ctx 里可能带有异常对象，无法序列化
    errors = [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]
    return JSONResponse(
        status_code=422,
        content=_error_body(422000, "Validation error", "Validation error", {"errors": errors}),
    )


if settings.all_cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.all_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_router, prefix=settings.API_V1_STR)
