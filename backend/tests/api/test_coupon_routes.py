"""Coupon issuance, holder view and redemption over HTTP."""

import asyncio

import pytest

from coupon_server.core.coupon_tokens import hash_token


async def _issue(client, /, **body):
    body.setdefault("offer_id", "10-off")
    response = await client.post("/api/v1/coupons", json=body)
    assert response.status_code == 201
    return response.json()


async def test_issue_returns_token_and_coupon_url(client):
    issued = await _issue(client)

    assert len(issued["token"]) == 32
    assert issued["token_hash"] == hash_token(issued["token"])
    assert issued["offer_id"] == "10-off"
    assert issued["client_slug"] == "general"
    assert issued["client_name"] == "General Client"
    assert issued["coupon_url"] == (
        f"https://coupons.example.com/api/v1/coupons/{issued['token']}"
    )


@pytest.mark.parametrize(
    ("body", "slug"),
    [
        ({"client": "POPEYES-MCKINNEY"}, "popeyes-mckinney"),
        ({"restaurant": "Popeyes McKinney #12"}, "popeyes-mckinney"),
        ({"offer_id": "sonic-shake"}, "sonic-frisco"),
        ({"client": "unknown-client"}, "general"),
    ],
)
async def test_issue_attributes_client(client, body, slug):
    issued = await _issue(client, **body)
    assert issued["client_slug"] == slug


@pytest.mark.parametrize("offer_id", ["", "   "])
async def test_issue_rejects_empty_offer(client, data_file, offer_id):
    response = await client.post("/api/v1/coupons", json={"offer_id": offer_id})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
    assert not data_file.exists()


async def test_issue_rejects_missing_offer(client):
    response = await client.post("/api/v1/coupons", json={})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"][0]["field"] == "body.offer_id"


async def test_view_shows_status_without_raw_token(client, admin_headers):
    issued = await _issue(client, restaurant="Popeyes McKinney")

    before = await client.get(f"/api/v1/coupons/{issued['token']}")
    await client.post(
        "/api/v1/redeem", json={"token": issued["token"]}, headers=admin_headers,
    )
    after = await client.get(f"/api/v1/coupons/{issued['token']}")

    assert before.status_code == 200
    assert before.json()["status"] == "issued"
    assert before.json()["redeemed_at"] is None
    assert "token" not in before.json()
    assert after.json()["status"] == "redeemed"
    assert after.json()["redeemed_at"] is not None


async def test_view_unknown_token_is_404(client):
    response = await client.get("/api/v1/coupons/does-not-exist")

    assert response.status_code == 404
    error = response.json()["error"]
    assert error["code"] == "TOKEN_NOT_FOUND"
    assert error["message"] == "Invalid coupon"


async def test_redeem_ok_then_already_redeemed(client, admin_headers):
    issued = await _issue(client)

    first = await client.post(
        "/api/v1/redeem",
        json={"token": issued["token"], "store_id": "S1"},
        headers=admin_headers,
    )
    second = await client.post(
        "/api/v1/redeem",
        json={"token": issued["token"], "store_id": "S2"},
        headers=admin_headers,
    )

    assert first.status_code == 200
    assert first.json()["status"] == "ok"
    assert second.status_code == 200
    assert second.json()["status"] == "already_redeemed"
    assert second.json()["redeemed_at"] == first.json()["redeemed_at"]
    assert second.json()["store_id"] == "S1"


async def test_redeem_unknown_token_is_not_found(client, admin_headers):
    response = await client.post(
        "/api/v1/redeem", json={"token": "unknown"}, headers=admin_headers,
    )

    assert response.status_code == 404
    body = response.json()
    assert body["status"] == "not_found"
    assert body["token_hash"] == hash_token("unknown")
    assert body["error"]["code"] == "TOKEN_NOT_FOUND"


async def test_redeem_empty_token_is_400(client, admin_headers):
    response = await client.post(
        "/api/v1/redeem", json={"token": " "}, headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_concurrent_http_redeems_accept_once(client, admin_headers):
    issued = await _issue(client)

    responses = await asyncio.gather(*(
        client.post(
            "/api/v1/redeem", json={"token": issued["token"]}, headers=admin_headers,
        )
        for _ in range(10)
    ))

    statuses = [r.json()["status"] for r in responses]
    assert statuses.count("ok") == 1
    assert statuses.count("already_redeemed") == 9


@pytest.mark.parametrize("form", ["header", "bearer", "query"])
async def test_redeem_accepts_every_key_form(client, admin_headers, form):
    key = admin_headers["x-api-key"]
    headers, params = {
        "header": ({"x-api-key": key}, {}),
        "bearer": ({"authorization": f"Bearer {key}"}, {}),
        "query": ({}, {"key": key}),
    }[form]
    issued = await _issue(client)

    response = await client.post(
        "/api/v1/redeem", json={"token": issued["token"]},
        headers=headers, params=params,
    )

    assert response.json()["status"] == "ok"


@pytest.mark.parametrize("headers", [{}, {"x-api-key": "wrong"}])
async def test_redeem_requires_api_key(client, headers):
    issued = await _issue(client)

    response = await client.post(
        "/api/v1/redeem", json={"token": issued["token"]}, headers=headers,
    )
    view = await client.get(f"/api/v1/coupons/{issued['token']}")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"
    assert view.json()["status"] == "issued"
