"""生成任务 CRUD 操作"""
import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from paybridge.enums import JobStatus
from paybridge.models import Job

logger = logging.getLogger(__name__)


def get_by_order_id(*, session: Session, order_id: str) -> Job | None:
    statement = select(Job).where(Job.order_id == order_id)
    return session.exec(statement).first()


def ensure_for_order(*, session: Session, order_id: str, quiz_id: str) -> tuple[Job, bool]:
    """
    确保订单有对应的 Job，返回 (job, 是否新建)

    先查再插：两个并发请求都可能走到插入，order_id 唯一约束冲突时
    回滚并读取对方已经插入的那一条。
    """
    existing = get_by_order_id(session=session, order_id=order_id)
    if existing:
        return existing, False

    job = Job(order_id=order_id, quiz_id=quiz_id, status=JobStatus.pending)
    session.add(job)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        logger.info(f"Job for order {order_id} was created concurrently")
        existing = get_by_order_id(session=session, order_id=order_id)
        if existing is None:
            raise
        return existing, False
    session.refresh(job)
    return job, True
