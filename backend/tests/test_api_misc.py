from __future__ import annotations

import asyncio

from fastapi import HTTPException
from sqlmodel import select

from paybridge.enums import OrderStatus, PaymentProvider
from paybridge.integrations.functions import DownstreamPermanent, DownstreamTransient, InvokeResult
from paybridge.models import Order, Quiz

SESSION_ID = "6f1c2d3e-4b5a-4c6d-8e7f-0a1b2c3d4e5f"


def _checkout(**overrides) -> dict:
    body = {
        "session_id": SESSION_ID,
        "quiz": {"about_who": "Minha mãe", "style": "sertanejo", "occasion": "aniversário"},
        "customer_email": "Ana@Example.com",
        "customer_whatsapp": "+55 11 98765-4321",
        "plan": "express",
        "amount_cents": 4990,
        "provider": "cakto",
    }
    body.update(overrides)
    return body


def test_health_check(client):
    r = client.get("/api/utils/health-check/")
    assert r.status_code == 200
    assert r.json() is True


def test_checkout_create(client, db):
    r = client.post("/api/checkout/create", json=_checkout())
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True

    db.expire_all()
    order = db.get(Order, body["order_id"])
    quiz = db.get(Quiz, body["quiz_id"])
    assert order is not None and quiz is not None
    assert order.status == OrderStatus.pending
    assert order.provider == PaymentProvider.cakto
    assert order.customer_email == "ana@example.com"
    assert order.quiz_id == quiz.id
    assert order.plan == "express"
    assert quiz.session_id == SESSION_ID
    assert quiz.answers == {"occasion": "aniversário"}


def test_checkout_then_webhook(client, db, functions):
    r = client.post("/api/checkout/create", json=_checkout(provider="hotmart", transaction_id="HP0001112223"))
    order_id = r.json()["order_id"]

    from .conftest import HOTMART_SECRET

    r = client.post(
        "/api/hotmart/webhook",
        json={"event": "PURCHASE_APPROVED", "data": {"purchase": {"transaction": "HP0001112223"}}},
        headers={"X-Hotmart-Hottok": HOTMART_SECRET},
    )
    assert r.status_code == 200
    assert r.json()["order_id"] == order_id
    db.expire_all()
    assert db.exec(select(Order).where(Order.id == order_id)).one().status == OrderStatus.paid


def test_checkout_validation_error(client):
    r = client.post("/api/checkout/create", json=_checkout(customer_email="not-an-email"))
    assert r.status_code == 422
    body = r.json()
    assert body["code"] == 422000
    assert body["data"]["errors"]

    r = client.post("/api/checkout/create", json=_checkout(session_id="abc"))
    assert r.status_code == 422

    r = client.post("/api/checkout/create", json=_checkout(quiz={"about_who": "x"}))
    assert r.status_code == 422


def test_lyrics_proxy(client, functions):
    functions.script("generate-lyrics-internal", InvokeResult(data={"success": True, "lyrics": "la la"}))
    r = client.post("/api/lyrics/generate", json={"quiz_id": "q-1"})
    assert r.status_code == 200
    assert r.json() == {"success": True, "lyrics": "la la"}
    assert functions.calls == [("generate-lyrics-internal", {"quiz_id": "q-1"})]


def test_lyrics_proxy_error(client, functions):
    functions.script("generate-lyrics-internal", InvokeResult(error=DownstreamPermanent("quiz not found", status=404)))
    r = client.post("/api/lyrics/generate", json={"quiz_id": "q-1"})
    assert r.status_code == 500
    assert r.json() == {"success": False, "error": "quiz not found"}


def test_audio_proxy_retries_then_succeeds(client, functions):
    bad_gateway = InvokeResult(error=DownstreamTransient("Bad Gateway", status=502, is_html=True))
    functions.script("generate-audio-internal", bad_gateway, InvokeResult(data=None))
    r = client.post("/api/audio/generate", json={"approval_id": "a-1"})
    assert r.status_code == 200
    assert r.json() == {"success": True}
    assert functions.names() == ["generate-audio-internal"] * 2


def test_audio_proxy_bad_gateway_message(client, functions):
    functions.script(
        "generate-audio-internal",
        InvokeResult(error=DownstreamTransient("<html>502</html>", status=502, is_html=True)),
    )
    r = client.post("/api/audio/generate", json={"approval_id": "a-1"})
    assert r.status_code == 500
    body = r.json()
    assert body["success"] is False
    assert body["error"] == "Music service temporarily unavailable. Please try again in a few moments."
    assert "<html>" not in body["error_details"]["original"]
    assert len(functions.calls) == 4


def test_audio_proxy_unreachable_message(client, functions):
    functions.script("generate-audio-internal", InvokeResult(error=DownstreamTransient("timeout")))
    r = client.post("/api/audio/generate", json={})
    assert r.status_code == 500
    assert r.json()["error"].startswith("Could not reach the music service")


def test_audio_proxy_permanent_error_is_not_retried(client, functions):
    functions.script("generate-audio-internal", InvokeResult(error=DownstreamPermanent("invalid approval", status=400)))
    r = client.post("/api/audio/generate", json={})
    assert r.status_code == 500
    assert r.json()["error"] == "invalid approval"
    assert len(functions.calls) == 1


def test_suno_callback_proxy(client, functions):
    r = client.post("/api/suno/callback", json={"taskId": "t-1", "status": "complete"})
    assert r.status_code == 200
    assert r.json() == {"success": True}
    assert functions.calls == [("suno-callback", {"taskId": "t-1", "status": "complete"})]


def test_unknown_route_uses_error_envelope(client):
    r = client.get("/api/nope")
    assert r.status_code == 404
    assert r.json() == {"code": 404000, "error": "Not Found", "message": "Not Found", "data": None}


def test_http_exception_handler_dict_branch():
    from paybridge import main as app_main

    exc = HTTPException(status_code=418, detail={"code": 418001, "message": "teapot"})
    resp = asyncio.run(app_main.http_error_handler(None, exc))  # type: ignore[arg-type]
    assert resp.status_code == 418
    assert b"418001" in resp.body


def test_health_check_reports_database_failure(client):
    from sqlalchemy.exc import OperationalError

    from paybridge.api.deps import get_db
    from paybridge.main import app

    class _BrokenSession:
        def exec(self, *args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    app.dependency_overrides[get_db] = lambda: _BrokenSession()
    r = client.get("/api/utils/health-check/")
    assert r.status_code == 503
    assert r.json()["code"] == 503001
