# backend/tests/test_external.py
#
# Payments, meeting tokens and the chat passthrough. The providers are
# patched where the routers look them up.

from types import SimpleNamespace

import stripe
from fastapi.testclient import TestClient

from backend.medifyme.errors import ProviderError
from backend.medifyme.main import app
from backend.medifyme.routers import gpt, meet, payments

client = TestClient(app)


def test_create_payment_intent(mocker):
    create = mocker.patch.object(
        payments.stripe.PaymentIntent, "create", return_value=SimpleNamespace(client_secret="pi_123_secret_456")
    )

    r = client.post("/payments/create_payment_intent")

    assert r.status_code == 200
    assert r.json() == {"clientSecret": "pi_123_secret_456"}
    kwargs = create.call_args.kwargs
    assert kwargs["amount"] == 1000
    assert kwargs["currency"] == "inr"
    assert kwargs["automatic_payment_methods"] == {"enabled": True}


def test_create_payment_intent_provider_error(mocker):
    mocker.patch.object(payments.stripe.PaymentIntent, "create", side_effect=stripe.StripeError("card declined"))

    r = client.post("/payments/create_payment_intent")

    assert r.status_code == 500
    assert "card declined" not in r.text


def test_get_meet_token(mocker):
    mocker.patch.object(meet, "create_meet_token", return_value="signed.jwt.token")

    r = client.get("/meet/get_token")

    assert r.status_code == 200
    assert r.json() == {"token": "signed.jwt.token"}


def test_get_meet_token_signing_failure(mocker):
    mocker.patch.object(meet, "create_meet_token", side_effect=ProviderError("Failed to generate token"))

    r = client.get("/meet/get_token")

    assert r.status_code == 500
    assert r.json() == {"error": "Failed to generate token"}


def test_gpt_passthrough(mocker):
    completion = {"id": "chatcmpl-1", "object": "chat.completion",
                  "choices": [{"message": {"role": "assistant", "content": "Hello"}, "finish_reason": "stop"}]}
    fake = mocker.AsyncMock(return_value=completion)
    mocker.patch.object(gpt, "chat_completion", fake)

    r = client.post("/gpt", json={"messages": [{"role": "user", "content": "Hi"}]})

    assert r.status_code == 200
    assert r.json() == completion
    assert fake.call_args.args[0] == [{"role": "user", "content": "Hi"}]


def test_gpt_provider_failure(mocker):
    mocker.patch.object(gpt, "chat_completion", mocker.AsyncMock(side_effect=ProviderError("Failed to fetch chat completions")))

    r = client.post("/gpt", json={"messages": [{"role": "user", "content": "Hi"}]})

    assert r.status_code == 500
    assert r.json() == {"error": "Failed to fetch chat completions"}


def test_gpt_forwards_messages_unchanged(mocker):
    fake = mocker.AsyncMock(return_value={"choices": []})
    mocker.patch.object(gpt, "chat_completion", fake)
    messages = [
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "hi", "name": "bob"},
        {"role": "user", "content": [{"type": "text", "text": "and this"}]},
        {"role": "assistant", "content": None, "tool_calls": [{"id": "call_1", "type": "function"}]},
        {"role": "tool", "content": "42", "tool_call_id": "call_1"},
    ]

    r = client.post("/gpt", json={"messages": messages})

    assert r.status_code == 200
    assert fake.call_args.args[0] == messages
