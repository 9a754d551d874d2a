import json

import pytest

from conftest import echo_create_transaction, sign, transaction_body

pytestmark = pytest.mark.anyio


def callback_body(**overrides) -> bytes:
    payload = {
        "reference": "DEV-T1234500000001",
        "merchant_ref": "PREMIUM-1700000000000-abc1234",
        "payment_method": "QRIS",
        "total_amount": 7000,
        "amount": 7000,
        "status": "PAID",
        "paid_at": 1700000000,
    }
    payload.update(overrides)
    return json.dumps(payload).encode()


async def post_callback(client, body: bytes, signature=None):
    headers = {"Content-Type": "application/json", "X-Callback-Event": "payment_status"}
    if signature is not None:
        headers["X-Callback-Signature"] = signature
    return await client.post("/callback", content=body, headers=headers)


async def create_transaction(client, tripay, **overrides):
    tripay.on("POST", "/transaction/create", echo_create_transaction(overrides.pop("reference", "DEV-T1234500000001")))
    response = await client.post("/api/create-transaction", json=transaction_body(**overrides))
    assert response.status_code == 200
    return response.json()["data"]


async def lookup(client, identifier="628123456789", **extra):
    response = await client.post("/api/payment-history", json={"identifier": identifier, **extra})
    assert response.status_code == 200
    return response.json()["data"]


async def test_valid_signature_is_acknowledged(client):
    body = callback_body()
    response = await post_callback(client, body, sign(body))
    assert response.status_code == 200
    assert response.json() == {"success": True}


async def test_signature_is_checked_over_raw_bytes(client):
    # Same JSON document, different whitespace
    signed = callback_body()
    sent = json.dumps(json.loads(signed), indent=2).encode()
    response = await post_callback(client, sent, sign(signed))
    assert response.status_code == 401


async def test_invalid_signature_is_rejected(client):
    body = callback_body()
    response = await post_callback(client, body, sign(body, key="someone-else"))
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Invalid signature"}


async def test_missing_signature_is_rejected(client):
    response = await post_callback(client, callback_body())
    assert response.status_code == 401


async def test_signed_garbage_is_bad_request(client):
    body = b"{not json"
    response = await post_callback(client, body, sign(body))
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid JSON payload"}


async def test_unknown_transaction_is_still_acknowledged(client):
    body = callback_body(reference="DEV-UNKNOWN", merchant_ref="PREMIUM-0-unknown")
    response = await post_callback(client, body, sign(body))
    assert response.status_code == 200


@pytest.mark.parametrize("state", ["EXPIRED", "FAILED"])
async def test_terminal_failures_are_acknowledged(client, state):
    body = callback_body(status=state)
    response = await post_callback(client, body, sign(body))
    assert response.status_code == 200
    assert response.json()["success"] is True


async def test_paid_callback_updates_ledger(client, tripay):
    created = await create_transaction(client, tripay)
    body = callback_body(reference=created["reference"], merchant_ref=created["merchant_ref"])

    response = await post_callback(client, body, sign(body))
    assert response.status_code == 200

    history = (await lookup(client))["history"]
    assert len(history) == 1
    assert history[0]["status"] == "PAID"
    assert history[0]["merchantRef"] == created["merchant_ref"]
    assert history[0]["paidAt"]
    assert history[0]["updatedAt"]


async def test_callback_matches_on_merchant_ref(client, tripay):
    created = await create_transaction(client, tripay)
    body = callback_body(reference=None, merchant_ref=created["merchant_ref"], status="EXPIRED")

    await post_callback(client, body, sign(body))

    history = (await lookup(client))["history"]
    assert history[0]["status"] == "EXPIRED"
    assert "paidAt" not in history[0]


async def test_repeated_callback_is_idempotent(client, tripay):
    created = await create_transaction(client, tripay)
    body = callback_body(reference=created["reference"], merchant_ref=created["merchant_ref"])

    first = await post_callback(client, body, sign(body))
    second = await post_callback(client, body, sign(body))

    assert first.status_code == second.status_code == 200
    assert (await lookup(client))["history"][0]["status"] == "PAID"
