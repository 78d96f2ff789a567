"""
初始化表结构

在 backend_pre_start.py 之后执行。本地环境根据模型创建缺失的表，
其他环境的表结构由外部迁移维护，这里什么都不做。
"""
import logging

from sqlmodel import Session

from paybridge.core.db import engine, init_db

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main() -> None:
    logger.info("Creating tables")
    with Session(engine) as session:
        init_db(session)
    logger.info("Tables ready")


if __name__ == "__main__":  # pragma: no cover
    main()
