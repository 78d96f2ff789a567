"""
结账路由模块

- POST /checkout/create: 创建问卷和待支付订单

订单 ID 会被放进支付平台的结账链接，Webhook 回调时据此匹配订单。
"""
from __future__ import annotations

import logging

from fastapi import APIRouter
from sqlalchemy.exc import SQLAlchemyError

from paybridge import crud
from paybridge.api.deps import SessionDep
from paybridge.api.errors import AppError
from paybridge.api.schemas import CheckoutCreateData, CheckoutCreateRequest
from paybridge.models import Quiz

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.post("/create", response_model=CheckoutCreateData)
def create_checkout(session: SessionDep, body: CheckoutCreateRequest) -> CheckoutCreateData:
    """
    创建订单

    请求路径: POST /api/checkout/create

    Raises:
        AppError: 写入数据库失败时抛出 400201 错误
    """
    answers = body.quiz.model_dump(exclude={"about_who", "style"})
    quiz = Quiz(
        session_id=body.session_id,
        about_who=body.quiz.about_who,
        style=body.quiz.style,
        answers=answers or None,
    )
    try:
        order = crud.orders.create_with_quiz(
            session=session,
            quiz=quiz,
            customer_email=str(body.customer_email),
            customer_whatsapp=body.customer_whatsapp,
            plan=body.plan.value,
            amount_cents=body.amount_cents,
            provider=body.provider,
            transaction_id=body.transaction_id,
        )
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("[checkout] failed to create order")
        raise AppError(
            code=400201, message=f"Failed to create order: {e}", status_code=400
        ) from e

    logger.info(f"[checkout] order {order.id} created (provider={order.provider}, quiz_id={quiz.id})")
    return CheckoutCreateData(quiz_id=quiz.id, order_id=order.id)
