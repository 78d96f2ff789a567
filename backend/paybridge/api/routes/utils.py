"""健康检查路由（负载均衡 / 容器平台探针）"""
import logging

from fastapi import APIRouter
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from paybridge.api.deps import SessionDep
from paybridge.api.errors import AppError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/utils", tags=["utils"])


@router.get("/health-check/")
def health_check(session: SessionDep) -> bool:
    """
    GET /api/utils/health-check/

    数据库可连接时返回 true，否则返回 503，
    避免把 Webhook 流量转发到无法落库的实例上。
    """
    try:
        session.exec(select(1))
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        raise AppError(
            code=503001, message="Database unavailable", status_code=503, error="Service unavailable"
        ) from e
    return True
