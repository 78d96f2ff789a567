"""
数据库连接模块

管理数据库引擎和会话的创建。
使用 SQLModel 的 create_engine 创建数据库连接池，进程内只创建一次，
通过依赖注入（api/deps.py）传递给每个请求。

重要提示：
- 确保在使用前导入所有模型（paybridge.models），否则表结构可能无法正确注册
"""
from sqlmodel import Session, SQLModel, create_engine

from paybridge.core.config import settings

# 创建数据库引擎（连接池）
engine = create_engine(str(settings.SQLALCHEMY_DATABASE_URI), pool_pre_ping=True)


def init_db(session: Session) -> None:
    """
    初始化数据库表结构

    本地环境直接根据模型创建缺失的表；其他环境的表结构由 DBA 维护，
    这里不做任何修改。

    Args:
        session: 数据库会话
    """
    import paybridge.models  # noqa: F401  注册所有表

    if settings.ENVIRONMENT == "local":
        SQLModel.metadata.create_all(session.get_bind())
