import pytest
from sqlalchemy import select

from tradesfinder.db.models.user import User


def _quote_body(profile, **overrides):
    body = {
        "profile_id": str(profile.id),
        "title": "Boiler service",
        "description": "Annual service for a combi boiler, ideally before winter.",
        "postcode": "sw1a 2aa",
        "timeframe": "FLEXIBLE",
    }
    body.update(overrides)
    return body


async def _request_quote(client, headers, profile):
    response = await client.post("/api/v1/quotes", headers=headers, json=_quote_body(profile))
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_customer_requests_quote(client, auth_headers, trades_profile, customer_user):
    data = await _request_quote(client, auth_headers, trades_profile)
    assert data["status"] == "PENDING"
    assert data["postcode"] == "SW1A 2AA"
    assert data["customer_id"] == str(customer_user.id)


@pytest.mark.asyncio
async def test_guest_quote_creates_customer(client, db_session, trades_profile):
    response = await client.post(
        "/api/v1/quotes",
        json=_quote_body(trades_profile, name="Guest Person", email="Guest@Example.com", phone="07700900000"),
    )
    assert response.status_code == 201
    customer_id = response.json()["customer_id"]

    user = (await db_session.execute(select(User).where(User.email == "guest@example.com"))).scalar_one()
    assert str(user.id) == customer_id
    assert user.role == "CUSTOMER"
    assert user.hashed_password is None

    # A second request from the same email reuses the account
    response = await client.post(
        "/api/v1/quotes",
        json=_quote_body(trades_profile, name="Guest Person", email="guest@example.com", phone="07700900000"),
    )
    assert response.json()["customer_id"] == customer_id


@pytest.mark.asyncio
async def test_guest_quote_requires_contact_details(client, trades_profile):
    response = await client.post("/api/v1/quotes", json=_quote_body(trades_profile))
    assert response.status_code == 400
    assert response.json()["error"] == "Please provide your contact details"


@pytest.mark.asyncio
async def test_cannot_request_quote_from_inactive_profile(client, db_session, auth_headers, trades_profile):
    trades_profile.is_active = False
    await db_session.flush()
    response = await client.post("/api/v1/quotes", headers=auth_headers, json=_quote_body(trades_profile))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_recipient_quote_limit(client, auth_headers, trades_profile):
    for _ in range(10):
        await _request_quote(client, auth_headers, trades_profile)

    response = await client.post("/api/v1/quotes", headers=auth_headers, json=_quote_body(trades_profile))
    assert response.status_code == 402
    data = response.json()
    assert data["error"] == "This tradesperson is not accepting new quote requests this month"
    assert "upgradeUrl" not in data


@pytest.mark.asyncio
async def test_inbox_and_first_read(client, auth_headers, trades_headers, trades_profile):
    quote = await _request_quote(client, auth_headers, trades_profile)

    inbox = await client.get("/api/v1/quotes", headers=trades_headers)
    assert [q["id"] for q in inbox.json()] == [quote["id"]]

    sent = await client.get("/api/v1/quotes", headers=auth_headers)
    assert [q["id"] for q in sent.json()] == [quote["id"]]

    # The customer reading it does not mark it viewed
    response = await client.get(f"/api/v1/quotes/{quote['id']}", headers=auth_headers)
    assert response.json()["status"] == "PENDING"

    response = await client.get(f"/api/v1/quotes/{quote['id']}", headers=trades_headers)
    assert response.json()["status"] == "VIEWED"
    assert response.json()["viewed_at"] is not None


@pytest.mark.asyncio
async def test_stranger_cannot_read_quote(client, auth_headers, other_headers, trades_profile):
    quote = await _request_quote(client, auth_headers, trades_profile)
    response = await client.get(f"/api/v1/quotes/{quote['id']}", headers=other_headers)
    assert response.status_code == 404

    response = await client.get(f"/api/v1/quotes/{quote['id']}")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_respond_opens_conversation_and_emails(
    client, db_session, auth_headers, trades_headers, trades_profile, mock_integrations
):
    quote = await _request_quote(client, auth_headers, trades_profile)

    response = await client.post(
        f"/api/v1/quotes/{quote['id']}/respond",
        headers=trades_headers,
        json={"message": "Happy to help, I can come next Tuesday.", "estimated_cost": "120"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["quote"]["status"] == "RESPONDED"
    assert data["conversation_id"] is not None

    messages = await client.get(f"/api/v1/conversations/{data['conversation_id']}/messages", headers=auth_headers)
    assert messages.status_code == 200
    assert "Estimated cost: £120" in messages.json()[0]["content"]

    mock_integrations.assert_called_once()

    await db_session.refresh(trades_profile)
    assert trades_profile.response_rate == 100.0


@pytest.mark.asyncio
async def test_customer_cannot_respond(client, auth_headers, trades_profile):
    quote = await _request_quote(client, auth_headers, trades_profile)
    response = await client.post(
        f"/api/v1/quotes/{quote['id']}/respond",
        headers=auth_headers,
        json={"message": "Responding to myself"},
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_customer_accepts_response(client, auth_headers, trades_headers, trades_profile):
    quote = await _request_quote(client, auth_headers, trades_profile)

    # Nothing to accept before the tradesperson responds
    response = await client.patch(f"/api/v1/quotes/{quote['id']}", headers=auth_headers, json={"action": "accept"})
    assert response.status_code == 409

    await client.post(
        f"/api/v1/quotes/{quote['id']}/respond",
        headers=trades_headers,
        json={"message": "I can do this for a fixed price."},
    )

    response = await client.patch(f"/api/v1/quotes/{quote['id']}", headers=trades_headers, json={"action": "accept"})
    assert response.status_code == 409

    response = await client.patch(f"/api/v1/quotes/{quote['id']}", headers=auth_headers, json={"action": "accept"})
    assert response.status_code == 200
    assert response.json()["status"] == "ACCEPTED"


@pytest.mark.asyncio
async def test_tradesperson_closes_quote(client, auth_headers, trades_headers, trades_profile):
    quote = await _request_quote(client, auth_headers, trades_profile)
    response = await client.post(f"/api/v1/quotes/{quote['id']}/close", headers=trades_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "CLOSED"

    response = await client.post(
        f"/api/v1/quotes/{quote['id']}/respond",
        headers=trades_headers,
        json={"message": "Changed my mind"},
    )
    assert response.status_code == 409
