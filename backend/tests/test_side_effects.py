from __future__ import annotations

from datetime import timedelta

from sqlmodel import select

from paybridge import crud
from paybridge.enums import EmailStatus, JobStatus
from paybridge.integrations.functions import DownstreamTransient, InvokeResult
from paybridge.models import EmailLog, Job, LyricsApproval, utc_now
from paybridge.services.side_effects import (
    GENERATE_LYRICS_FUNCTION,
    NOTIFY_PAYMENT_FUNCTION,
    SideEffectDispatcher,
)


class _Sleeps:
    def __init__(self, action=None) -> None:
        self.calls: list[float] = []
        self._action = action

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self._action is not None:
            self._action()


def _dispatcher(db, functions, sleep=None) -> SideEffectDispatcher:
    return SideEffectDispatcher(session=db, functions=functions, sleep=sleep or _Sleeps())


def _email(db, order_id: str, status: EmailStatus, age_seconds: int = 0) -> EmailLog:
    log = EmailLog(
        order_id=order_id,
        email_type="order_paid",
        status=status,
        created_at=utc_now() - timedelta(seconds=age_seconds),
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return log


def test_both_side_effects_fire(db, functions, make_order):
    order = make_order()
    outcome = _dispatcher(db, functions).dispatch(order)

    assert outcome.notification_triggered
    assert outcome.lyrics_generated
    assert functions.calls == [
        (NOTIFY_PAYMENT_FUNCTION, {"order_id": order.id}),
        (GENERATE_LYRICS_FUNCTION, {"order_id": order.id}),
    ]
    job = crud.jobs.get_by_order_id(session=db, order_id=order.id)
    assert job is not None
    assert job.quiz_id == order.quiz_id
    assert job.status == JobStatus.pending


def test_sent_email_is_not_resent(db, functions, make_order):
    order = make_order()
    _email(db, order.id, EmailStatus.sent)
    assert not _dispatcher(db, functions).notify_payment(order)
    assert functions.calls == []


def test_stale_pending_email_is_not_resent(db, functions, make_order):
    order = make_order()
    _email(db, order.id, EmailStatus.pending, age_seconds=30)
    sleeps = _Sleeps()
    assert not _dispatcher(db, functions, sleeps).notify_payment(order)
    assert sleeps.calls == []
    assert functions.calls == []


def test_failed_email_does_not_block(db, functions, make_order):
    order = make_order()
    _email(db, order.id, EmailStatus.failed)
    assert _dispatcher(db, functions).notify_payment(order)
    assert functions.names() == [NOTIFY_PAYMENT_FUNCTION]


def test_fresh_pending_email_is_rechecked_then_triggered(db, functions, make_order):
    order = make_order()
    _email(db, order.id, EmailStatus.pending)
    sleeps = _Sleeps()

    assert _dispatcher(db, functions, sleeps).notify_payment(order)
    assert sleeps.calls == [2]
    assert functions.names() == [NOTIFY_PAYMENT_FUNCTION]


def test_fresh_pending_email_sent_while_waiting(db, functions, make_order):
    order = make_order()
    log = _email(db, order.id, EmailStatus.pending)

    def _mark_sent() -> None:
        # The notification service finishes sending while we wait.
        log.status = EmailStatus.sent
        db.add(log)
        db.commit()

    sleeps = _Sleeps(_mark_sent)
    assert not _dispatcher(db, functions, sleeps).notify_payment(order)
    assert sleeps.calls == [2]
    assert functions.calls == []


def test_notification_error_is_swallowed(db, functions, make_order):
    order = make_order()
    functions.script(NOTIFY_PAYMENT_FUNCTION, InvokeResult(error=DownstreamTransient("down", status=503)))
    assert not _dispatcher(db, functions).notify_payment(order)


def test_notification_exception_is_swallowed(db, functions, make_order):
    order = make_order()
    functions.script(NOTIFY_PAYMENT_FUNCTION, RuntimeError("unexpected"))
    assert not _dispatcher(db, functions).notify_payment(order)
    assert functions.names() == [NOTIFY_PAYMENT_FUNCTION]


def test_existing_lyrics_approval_skips_generation(db, functions, make_order):
    order = make_order()
    db.add(LyricsApproval(order_id=order.id, status="approved"))
    db.commit()

    assert not _dispatcher(db, functions).generate_lyrics(order)
    assert functions.calls == []
    assert crud.jobs.get_by_order_id(session=db, order_id=order.id) is None


def test_order_without_quiz_skips_generation(db, functions, make_order):
    order = make_order(with_quiz=False)
    assert not _dispatcher(db, functions).generate_lyrics(order)
    assert functions.calls == []


def test_existing_job_is_reused(db, functions, make_order):
    order = make_order()
    existing = Job(order_id=order.id, quiz_id=order.quiz_id, status=JobStatus.processing)
    db.add(existing)
    db.commit()

    assert _dispatcher(db, functions).generate_lyrics(order)
    jobs = db.exec(select(Job).where(Job.order_id == order.id)).all()
    assert [job.id for job in jobs] == [existing.id]


def test_ensure_for_order_is_idempotent(db, make_order):
    order = make_order()
    first, created = crud.jobs.ensure_for_order(session=db, order_id=order.id, quiz_id=order.quiz_id)
    second, created_again = crud.jobs.ensure_for_order(session=db, order_id=order.id, quiz_id=order.quiz_id)
    assert created
    assert not created_again
    assert first.id == second.id


def test_lyrics_generation_retries_with_backoff(db, functions, make_order):
    order = make_order()
    bad_gateway = InvokeResult(error=DownstreamTransient("Bad Gateway", status=502, is_html=True))
    functions.script(GENERATE_LYRICS_FUNCTION, bad_gateway, bad_gateway, InvokeResult(data={"success": True}))
    sleeps = _Sleeps()

    assert _dispatcher(db, functions, sleeps).generate_lyrics(order)
    assert sleeps.calls == [1, 2]
    assert functions.names() == [GENERATE_LYRICS_FUNCTION] * 3


def test_lyrics_generation_gives_up(db, functions, make_order):
    order = make_order()
    functions.script(GENERATE_LYRICS_FUNCTION, InvokeResult(data={"success": False, "error": "quota"}))

    assert not _dispatcher(db, functions).generate_lyrics(order)
    assert functions.names() == [GENERATE_LYRICS_FUNCTION] * 3
