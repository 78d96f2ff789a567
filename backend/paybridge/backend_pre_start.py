"""
应用启动前检查脚本

数据库容器可能还在初始化，启动应用前先等待数据库可连接。

执行流程：
1. 每秒尝试一次 select(1)，最多等待 5 分钟
2. 成功后再执行 initial_data.py 创建表结构
"""
import logging

from sqlalchemy import Engine
from sqlmodel import Session, select
from tenacity import after_log, before_log, retry, stop_after_attempt, wait_fixed

from paybridge.core.db import engine

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

max_tries = 60 * 5  # 5 分钟
wait_seconds = 1


@retry(
    stop=stop_after_attempt(max_tries),
    wait=wait_fixed(wait_seconds),
    before=before_log(logger, logging.INFO),
    after=after_log(logger, logging.WARN),
)
def wait_for_db(db_engine: Engine) -> None:
    """数据库未就绪时抛出异常，由 tenacity 重试"""
    try:
        with Session(db_engine) as session:
            session.exec(select(1))
    except Exception as e:
        logger.error(f"Database not ready: {e}")
        raise


def main() -> None:
    logger.info("Waiting for database")
    wait_for_db(engine)
    logger.info("Database is ready")


if __name__ == "__main__":  # pragma: no cover
    main()
