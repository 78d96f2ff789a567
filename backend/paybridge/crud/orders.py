"""订单 CRUD 操作"""
from datetime import datetime

from sqlalchemy import update
from sqlmodel import Session, select

from paybridge.enums import OrderStatus, PaymentProvider
from paybridge.models import Order, Quiz, utc_now


def get_by_id_for_provider(
    *, session: Session, order_id: str, provider: PaymentProvider
) -> Order | None:
    """根据订单 ID 查询订单（必须属于该支付平台）"""
    statement = select(Order).where(Order.id == order_id, Order.provider == provider)
    return session.exec(statement).first()


def get_by_transaction_id(
    *, session: Session, provider: PaymentProvider, transaction_id: str
) -> Order | None:
    """根据支付平台交易 ID 查询订单"""
    column = (
        Order.cakto_transaction_id
        if provider == PaymentProvider.cakto
        else Order.hotmart_transaction_id
    )
    statement = (
        select(Order).where(column == transaction_id).order_by(Order.created_at.desc())
    )
    return session.exec(statement).first()


def get_latest_pending_by_email(
    *, session: Session, provider: PaymentProvider, email: str
) -> Order | None:
    """该邮箱在该支付平台下最新创建的待支付订单"""
    statement = (
        select(Order)
        .where(
            Order.customer_email == email,
            Order.provider == provider,
            Order.status == OrderStatus.pending,
        )
        .order_by(Order.created_at.desc())
    )
    return session.exec(statement).first()


def list_pending(*, session: Session, provider: PaymentProvider) -> list[Order]:
    """该支付平台下所有待支付订单，按创建时间倒序"""
    statement = (
        select(Order)
        .where(Order.provider == provider, Order.status == OrderStatus.pending)
        .order_by(Order.created_at.desc())
    )
    return list(session.exec(statement).all())


def mark_paid(
    *,
    session: Session,
    order_id: str,
    provider: PaymentProvider,
    transaction_id: str | None,
    paid_at: datetime | None,
) -> tuple[int, Order | None]:
    """
    把订单标记为已支付并回读

    只按订单 ID 过滤更新，返回 (影响行数, 回读的订单)。
    由调用方判断影响行数为 0 或回读状态不是 paid 的情况。
    """
    now = utc_now()
    values: dict[str, object] = {
        "status": OrderStatus.paid,
        "provider": provider,
        "paid_at": paid_at or now,
        "updated_at": now,
    }
    if provider == PaymentProvider.cakto:
        values["cakto_payment_status"] = "approved"
        if transaction_id:
            values["cakto_transaction_id"] = transaction_id
    else:
        values["hotmart_payment_status"] = "approved"
        if transaction_id:
            values["hotmart_transaction_id"] = transaction_id

    result = session.exec(update(Order).where(Order.id == order_id).values(**values))  # type: ignore[call-overload]
    rowcount = result.rowcount
    if not rowcount:
        session.rollback()
        return 0, None
    session.commit()

    statement = select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    return rowcount, session.exec(statement).first()


def create_with_quiz(
    *,
    session: Session,
    quiz: Quiz,
    customer_email: str,
    customer_whatsapp: str,
    plan: str,
    amount_cents: int,
    provider: PaymentProvider,
    transaction_id: str | None = None,
) -> Order:
    """在同一个事务里创建问卷和待支付订单"""
    session.add(quiz)
    session.flush()
    order = Order(
        provider=provider,
        status=OrderStatus.pending,
        customer_email=customer_email.strip().lower(),
        customer_whatsapp=customer_whatsapp,
        quiz_id=quiz.id,
        plan=plan,
        amount_cents=amount_cents,
        cakto_transaction_id=transaction_id if provider == PaymentProvider.cakto else None,
        hotmart_transaction_id=transaction_id if provider == PaymentProvider.hotmart else None,
    )
    session.add(order)
    session.commit()
    session.refresh(order)
    return order
