from __future__ import annotations

from collections.abc import Generator
from datetime import timedelta
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, delete

from paybridge.api.deps import get_db, get_functions
from paybridge.core.config import settings
from paybridge.enums import OrderStatus, PaymentProvider
from paybridge.integrations.functions import InvokeResult
from paybridge.main import app
from paybridge.models import (
    CaktoWebhookLog,
    EmailLog,
    HotmartWebhookLog,
    Job,
    LyricsApproval,
    Order,
    Quiz,
    utc_now,
)

CAKTO_SECRET = "cakto-test-secret"
HOTMART_SECRET = "hotmart-test-hottok"
SERVICE_KEY = "service-role-test-key"


class FakeFunctions:
    """Records invocations and replays scripted results per function name."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any] | None]] = []
        self._scripts: dict[str, list[Any]] = {}

    def script(self, name: str, *results: Any) -> None:
        # The last scripted result repeats once the queue is drained.
        self._scripts.setdefault(name, []).extend(results)

    def invoke(self, name: str, body: dict[str, Any] | None = None) -> InvokeResult:
        self.calls.append((name, body))
        queue = self._scripts.get(name)
        if not queue:
            return InvokeResult(data={"success": True})
        result = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(result, Exception):
            raise result
        return result

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def close(self) -> None:
        pass


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture(autouse=True)
def _webhook_settings(monkeypatch):
    monkeypatch.setattr(settings, "CAKTO_WEBHOOK_SECRET", CAKTO_SECRET)
    monkeypatch.setattr(settings, "HOTMART_WEBHOOK_SECRET", HOTMART_SECRET)
    monkeypatch.setattr(settings, "SERVICE_ROLE_KEY", SERVICE_KEY)
    monkeypatch.setattr(settings, "UNRECOGNIZED_STATUS_POLICY", "approve")


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session
        session.rollback()
        # Clean tables after each test.
        session.exec(delete(CaktoWebhookLog))
        session.exec(delete(HotmartWebhookLog))
        session.exec(delete(EmailLog))
        session.exec(delete(LyricsApproval))
        session.exec(delete(Job))
        session.exec(delete(Order))
        session.exec(delete(Quiz))
        session.commit()


@pytest.fixture(scope="function")
def functions() -> FakeFunctions:
    return FakeFunctions()


@pytest.fixture(scope="function")
def client(engine, db, functions, monkeypatch) -> Generator[TestClient, None, None]:
    # No real waiting inside request handlers.
    monkeypatch.setattr(settings, "RETRY_BACKOFF_MULTIPLIER", 0)
    monkeypatch.setattr(settings, "EMAIL_RECHECK_DELAY_SECONDS", 0)

    def _override_get_db() -> Generator[Session, None, None]:
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_functions] = lambda: functions
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def make_order(db):
    """Inserts an order; created_at can be shifted into the past with age_seconds."""

    def _make(
        *,
        provider: PaymentProvider = PaymentProvider.cakto,
        email: str = "ana@example.com",
        whatsapp: str | None = "11987654321",
        status: OrderStatus = OrderStatus.pending,
        with_quiz: bool = True,
        age_seconds: int = 0,
        **fields: Any,
    ) -> Order:
        quiz_id = None
        if with_quiz:
            quiz = Quiz(session_id="6f1c2d3e-4b5a-4c6d-8e7f-0a1b2c3d4e5f", about_who="Ana", style="pop")
            db.add(quiz)
            db.commit()
            quiz_id = quiz.id
        order = Order(
            provider=provider,
            status=status,
            customer_email=email,
            customer_whatsapp=whatsapp,
            quiz_id=quiz_id,
            plan="standard",
            amount_cents=10000,
            created_at=utc_now() - timedelta(seconds=age_seconds),
            **fields,
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    return _make
