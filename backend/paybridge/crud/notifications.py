"""歌词审批 / 邮件日志查询（幂等检查）"""
from sqlmodel import Session, col, select

from paybridge.enums import EmailStatus
from paybridge.models import EmailLog, LyricsApproval

ORDER_PAID_EMAIL = "order_paid"
IN_FLIGHT_EMAIL_STATUSES = (EmailStatus.sent, EmailStatus.delivered, EmailStatus.pending)


def get_lyrics_approval(*, session: Session, order_id: str) -> LyricsApproval | None:
    statement = select(LyricsApproval).where(LyricsApproval.order_id == order_id).limit(1)
    return session.exec(statement).first()


def get_latest_order_paid_email(*, session: Session, order_id: str) -> EmailLog | None:
    """最新一条已发送 / 已送达 / 发送中的订单支付确认邮件"""
    statement = (
        select(EmailLog)
        .where(
            EmailLog.order_id == order_id,
            EmailLog.email_type == ORDER_PAID_EMAIL,
            col(EmailLog.status).in_(IN_FLIGHT_EMAIL_STATUSES),
        )
        .order_by(col(EmailLog.created_at).desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return session.exec(statement).first()
