"""
FastAPI 依赖注入模块

提供可复用的依赖项，用于路由处理函数中。

- SessionDep: 每个请求一个数据库会话，请求结束后自动关闭
- FunctionsDep: 进程内共享的下游函数客户端（复用连接池）
"""
from collections.abc import Generator  # 生成器类型，用于资源管理
from typing import Annotated  # 类型注解，用于依赖注入

from fastapi import Depends
from sqlmodel import Session  # 数据库会话

from paybridge.core.db import engine
from paybridge.integrations.functions import FunctionsClient, get_functions_client


def get_db() -> Generator[Session, None, None]:
    """
    获取数据库会话（依赖注入）

    使用 yield 确保会话在请求处理完成后自动关闭。

    Yields:
        Session: 数据库会话对象
    """
    with Session(engine) as session:
        yield session


def get_functions() -> FunctionsClient:
    """获取下游函数客户端（测试中通过 dependency_overrides 替换）"""
    return get_functions_client()


# 类型别名，简化依赖注入的写法
SessionDep = Annotated[Session, Depends(get_db)]  # 数据库会话依赖
FunctionsDep = Annotated[FunctionsClient, Depends(get_functions)]  # 下游函数客户端依赖
