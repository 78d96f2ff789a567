"""
订单支付后的副作用

两个相互独立、尽力而为的副作用，失败只记录日志，不影响 Webhook 的响应：

1. 确认邮件：检查 email_logs 中是否已有 order_paid 邮件（sent/delivered/pending），
   没有才调用 notify-payment-webhook
2. 歌词生成：没有 lyrics_approvals 记录且订单有 quiz_id 时，确保有 Job，
   然后带重试地调用 generate-lyrics-for-approval

并发的两个 Webhook 可能都走到这里，真正的去重依赖下游的幂等检查（邮件日志 / 审批记录），
而不是进程内的锁。
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from paybridge import crud
from paybridge.core.config import settings
from paybridge.enums import EmailStatus
from paybridge.integrations.functions import FunctionsClient
from paybridge.models import EmailLog, Order, as_utc, utc_now
from paybridge.services.retry import invoke_with_retry, is_failed_generation

logger = logging.getLogger(__name__)

NOTIFY_PAYMENT_FUNCTION = "notify-payment-webhook"
GENERATE_LYRICS_FUNCTION = "generate-lyrics-for-approval"

_TERMINAL_EMAIL_STATUSES = (EmailStatus.sent, EmailStatus.delivered)


@dataclass(frozen=True)
class SideEffectOutcome:
    notification_triggered: bool
    lyrics_generated: bool


class SideEffectDispatcher:
    """订单标记为已支付后触发邮件通知和歌词生成"""

    def __init__(
        self,
        *,
        session: Session,
        functions: FunctionsClient,
        sleep: Callable[[float], None] | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self.session = session
        self.functions = functions
        self._sleep = sleep or time.sleep
        self._max_attempts = max_attempts or settings.LYRICS_MAX_ATTEMPTS

    def dispatch(self, order: Order) -> SideEffectOutcome:
        return SideEffectOutcome(
            notification_triggered=self.notify_payment(order),
            lyrics_generated=self.generate_lyrics(order),
        )

    # ------------------------------------------------------------------
    # 确认邮件
    # ------------------------------------------------------------------

    def _email_already_handled(self, email_log: EmailLog) -> bool:
        if email_log.status in _TERMINAL_EMAIL_STATUSES:
            return True
        age = (utc_now() - as_utc(email_log.created_at)).total_seconds()
        return age > settings.EMAIL_PENDING_FRESH_SECONDS

    def notify_payment(self, order: Order) -> bool:
        """
        触发支付确认邮件

        - 已发送 / 已送达，或 pending 超过 10 秒：视为重复，跳过
        - pending 且在 10 秒内：等待 2 秒后再查一次，已发送则跳过，否则照常触发
        - 没有记录：触发一次

        Returns:
            是否调用了通知函数
        """
        email_log = crud.notifications.get_latest_order_paid_email(
            session=self.session, order_id=order.id
        )
        if email_log is not None:
            if self._email_already_handled(email_log):
                logger.info(
                    f"Order {order.id}: confirmation email already exists "
                    f"(email_log={email_log.id}, status={email_log.status}), skipping"
                )
                return False

            logger.info(f"Order {order.id}: confirmation email is pending, re-checking shortly")
            self._sleep(settings.EMAIL_RECHECK_DELAY_SECONDS)
            recheck = crud.notifications.get_latest_order_paid_email(
                session=self.session, order_id=order.id
            )
            if recheck is not None and recheck.status in _TERMINAL_EMAIL_STATUSES:
                logger.info(f"Order {order.id}: confirmation email confirmed as sent after waiting")
                return False

        return self._invoke_notification(order)

    def _invoke_notification(self, order: Order) -> bool:
        logger.info(f"Order {order.id}: calling {NOTIFY_PAYMENT_FUNCTION}")
        try:
            result = self.functions.invoke(NOTIFY_PAYMENT_FUNCTION, {"order_id": order.id})
        except Exception:
            logger.exception(f"Order {order.id}: {NOTIFY_PAYMENT_FUNCTION} raised")
            return False
        if result.error is not None:
            logger.error(f"Order {order.id}: {NOTIFY_PAYMENT_FUNCTION} failed: {result.error!r}")
            return False
        logger.info(f"Order {order.id}: {NOTIFY_PAYMENT_FUNCTION} called successfully")
        return True

    # ------------------------------------------------------------------
    # 歌词生成
    # ------------------------------------------------------------------

    def _should_generate_lyrics(self, order: Order) -> bool:
        try:
            approval = crud.notifications.get_lyrics_approval(session=self.session, order_id=order.id)
        except SQLAlchemyError as e:
            # 查询失败时继续生成，审批记录由生成服务自己去重
            self.session.rollback()
            logger.warning(f"Order {order.id}: failed to check lyrics approval, continuing: {e}")
            approval = None

        if approval is not None:
            logger.info(
                f"Order {order.id}: lyrics approval {approval.id} already exists "
                f"(status={approval.status}), skipping generation"
            )
            return False

        if not order.quiz_id:
            logger.warning(f"Order {order.id}: no quiz_id, cannot generate lyrics")
            return False

        try:
            job, created = crud.jobs.ensure_for_order(
                session=self.session, order_id=order.id, quiz_id=order.quiz_id
            )
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception(f"Order {order.id}: failed to ensure job, skipping lyrics generation")
            return False

        logger.info(f"Order {order.id}: job {job.id} ready (created={created})")
        return True

    def generate_lyrics(self, order: Order) -> bool:
        """
        触发歌词生成（带重试）

        Returns:
            生成函数是否调用成功
        """
        if not self._should_generate_lyrics(order):
            return False

        logger.info(f"Order {order.id}: calling {GENERATE_LYRICS_FUNCTION} (quiz_id={order.quiz_id})")
        result = invoke_with_retry(
            self.functions,
            GENERATE_LYRICS_FUNCTION,
            {"order_id": order.id},
            max_attempts=self._max_attempts,
            retry_on=is_failed_generation,
            sleep=self._sleep,
        )
        if is_failed_generation(result):
            logger.error(
                f"Order {order.id}: lyrics generation failed after {self._max_attempts} attempts: "
                f"{result.error!r}"
            )
            return False

        logger.info(f"Order {order.id}: lyrics generation started")
        return True
