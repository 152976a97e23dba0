import pytest

from tradesfinder.db.models.profile import Trade

PHOTOS = [f"https://cdn.example.com/work/{i}.jpg" for i in range(5)]


@pytest.mark.asyncio
async def test_public_profile(client, trades_profile, trade):
    response = await client.get(f"/api/v1/profiles/{trades_profile.slug}")
    assert response.status_code == 200
    data = response.json()
    assert data["business_name"] == "Test Plumbing Ltd"
    assert data["trades"] == [{"id": str(trade.id), "name": trade.name, "slug": trade.slug}]
    assert data["average_rating"] == 0.0
    # Private contact details stay off the public view
    assert "email" not in data
    assert "usage" not in data


@pytest.mark.asyncio
async def test_unknown_profile(client):
    response = await client.get("/api/v1/profiles/no-such-business")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_deactivated_profile_hidden_except_from_owner(
    client, db_session, trades_profile, trades_headers, auth_headers
):
    trades_profile.is_active = False
    await db_session.flush()

    assert (await client.get(f"/api/v1/profiles/{trades_profile.slug}")).status_code == 404
    assert (await client.get(f"/api/v1/profiles/{trades_profile.slug}", headers=auth_headers)).status_code == 404

    response = await client.get(f"/api/v1/profiles/{trades_profile.slug}", headers=trades_headers)
    assert response.status_code == 200
    assert response.json()["is_active"] is False


@pytest.mark.asyncio
async def test_own_profile_includes_usage(client, trades_headers, trades_profile):
    response = await client.get("/api/v1/profile", headers=trades_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["email"] == trades_profile.email
    assert data["usage"] == {
        "applications_used": 0,
        "applications_remaining": 5,
        "quotes_received": 0,
        "quotes_remaining": 10,
    }


@pytest.mark.asyncio
async def test_customer_has_no_own_profile(client, auth_headers):
    response = await client.get("/api/v1/profile", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_profile_and_trades(client, db_session, trades_headers, trade):
    electrical = Trade(name="Electrical", slug="electrical-test")
    db_session.add(electrical)
    await db_session.flush()

    response = await client.patch(
        "/api/v1/profile",
        headers=trades_headers,
        json={"bio": "Family run since 1990", "postcode": "sw1a 2aa", "selected_trades": [str(electrical.id)]},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["bio"] == "Family run since 1990"
    assert data["postcode"] == "SW1A 2AA"
    assert [t["slug"] for t in data["trades"]] == ["electrical-test"]


@pytest.mark.asyncio
async def test_update_profile_rejects_blank_name(client, trades_headers):
    response = await client.patch("/api/v1/profile", headers=trades_headers, json={"business_name": "  "})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_portfolio_photo_cap(client, trades_headers):
    response = await client.post(
        "/api/v1/portfolio", headers=trades_headers, json={"title": "Kitchen refit", "images": PHOTOS}
    )
    assert response.status_code == 201

    response = await client.post(
        "/api/v1/portfolio",
        headers=trades_headers,
        json={"title": "One more", "images": ["https://cdn.example.com/work/extra.jpg"]},
    )
    assert response.status_code == 402
    assert response.json()["upgradeUrl"] == "/dashboard/subscription"

    # Items without photos do not count against the cap
    response = await client.post("/api/v1/portfolio", headers=trades_headers, json={"title": "Testimonial"})
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_premium_portfolio_is_unlimited(client, db_session, trades_headers, trades_profile):
    trades_profile.subscription_tier = "PREMIUM"
    await db_session.flush()

    for title in ("Bathroom", "Kitchen", "Loft"):
        response = await client.post(
            "/api/v1/portfolio", headers=trades_headers, json={"title": title, "images": PHOTOS}
        )
        assert response.status_code == 201


@pytest.mark.asyncio
async def test_delete_portfolio_item(client, trades_headers, other_trades_headers, trades_profile):
    item = (
        await client.post("/api/v1/portfolio", headers=trades_headers, json={"title": "Boiler install"})
    ).json()

    response = await client.delete(f"/api/v1/portfolio/{item['id']}", headers=other_trades_headers)
    assert response.status_code == 404

    response = await client.delete(f"/api/v1/portfolio/{item['id']}", headers=trades_headers)
    assert response.status_code == 204

    profile = await client.get(f"/api/v1/profiles/{trades_profile.slug}")
    assert profile.json()["portfolio"] == []


@pytest.mark.asyncio
async def test_trade_tree(client, db_session, trade):
    child = Trade(name="Boiler Repair", slug="boiler-repair-test", parent_id=trade.id)
    db_session.add(child)
    await db_session.flush()

    response = await client.get("/api/v1/trades")
    assert response.status_code == 200
    tree = response.json()
    assert [t["name"] for t in tree] == ["Plumbing"]
    assert [c["slug"] for c in tree[0]["children"]] == ["boiler-repair-test"]
