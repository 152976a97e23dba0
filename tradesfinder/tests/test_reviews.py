import pytest

from tradesfinder.core.reviews.service import recompute_profile_rating
from tradesfinder.db.models.review import Review

CONTENT = "Turned up on time, kept the site tidy and the finish is excellent."


async def _submit(client, headers, profile, rating=4, **overrides):
    body = {
        "profile_id": str(profile.id),
        "overall_rating": rating,
        "title": "Great work",
        "content": CONTENT,
    }
    body.update(overrides)
    return await client.post("/api/v1/reviews", headers=headers, json=body)


@pytest.mark.asyncio
async def test_submitted_review_waits_for_moderation(client, db_session, auth_headers, trades_profile):
    response = await _submit(client, auth_headers, trades_profile)
    assert response.status_code == 201
    assert response.json()["status"] == "PENDING"

    # Creation never touches the aggregates
    await db_session.refresh(trades_profile)
    assert trades_profile.review_count == 0
    assert trades_profile.average_rating == 0.0

    listed = await client.get("/api/v1/reviews", params={"profile_id": str(trades_profile.id)})
    assert listed.json() == []


@pytest.mark.asyncio
async def test_approval_updates_profile_rating(client, auth_headers, admin_headers, trades_profile):
    review = (await _submit(client, auth_headers, trades_profile, rating=4)).json()

    response = await client.patch(
        f"/api/v1/admin/reviews/{review['id']}", headers=admin_headers, json={"action": "approve"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "APPROVED"

    profile = await client.get(f"/api/v1/profiles/{trades_profile.slug}")
    data = profile.json()
    assert data["review_count"] == 1
    assert data["average_rating"] == 4.0
    assert [r["id"] for r in data["reviews"]] == [review["id"]]


@pytest.mark.asyncio
async def test_rejecting_approved_review_recomputes(
    client, auth_headers, other_headers, admin_headers, trades_profile
):
    first = (await _submit(client, auth_headers, trades_profile, rating=5)).json()
    second = (await _submit(client, other_headers, trades_profile, rating=2)).json()
    for review in (first, second):
        await client.patch(f"/api/v1/admin/reviews/{review['id']}", headers=admin_headers, json={"action": "approve"})

    profile = (await client.get(f"/api/v1/profiles/{trades_profile.slug}")).json()
    assert profile["review_count"] == 2
    assert profile["average_rating"] == 3.5

    response = await client.patch(
        f"/api/v1/admin/reviews/{second['id']}", headers=admin_headers, json={"action": "reject"}
    )
    assert response.status_code == 400

    response = await client.patch(
        f"/api/v1/admin/reviews/{second['id']}",
        headers=admin_headers,
        json={"action": "reject", "reason": "Not a genuine customer"},
    )
    assert response.status_code == 200
    assert response.json()["moderation_reason"] == "Not a genuine customer"

    profile = (await client.get(f"/api/v1/profiles/{trades_profile.slug}")).json()
    assert profile["review_count"] == 1
    assert profile["average_rating"] == 5.0


@pytest.mark.asyncio
async def test_one_review_per_author(client, auth_headers, trades_profile):
    await _submit(client, auth_headers, trades_profile)
    response = await _submit(client, auth_headers, trades_profile)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_review_validation(client, auth_headers, trades_headers, trades_profile):
    response = await _submit(client, auth_headers, trades_profile, rating=6)
    assert response.status_code == 400
    assert response.json()["error"] == "Rating must be between 1 and 5"

    response = await _submit(client, auth_headers, trades_profile, content="Too short")
    assert response.status_code == 400

    response = await _submit(client, trades_headers, trades_profile)
    assert response.status_code == 400
    assert response.json()["error"] == "You cannot review your own profile"


@pytest.mark.asyncio
async def test_anonymous_cannot_review(client, trades_profile):
    response = await _submit(client, {}, trades_profile)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_tradesperson_responds_once(client, auth_headers, trades_headers, other_trades_headers, trades_profile):
    review = (await _submit(client, auth_headers, trades_profile)).json()
    url = f"/api/v1/reviews/{review['id']}/respond"

    response = await client.post(url, headers=other_trades_headers, json={"response": "Thanks very much!"})
    assert response.status_code == 403

    response = await client.post(url, headers=trades_headers, json={"response": "Thanks very much!"})
    assert response.status_code == 200
    assert response.json()["response"] == "Thanks very much!"

    response = await client.post(url, headers=trades_headers, json={"response": "Thanks again, really!"})
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_non_admin_cannot_moderate(client, auth_headers, trades_profile):
    review = (await _submit(client, auth_headers, trades_profile)).json()
    response = await client.patch(
        f"/api/v1/admin/reviews/{review['id']}", headers=auth_headers, json={"action": "approve"}
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_recompute_is_idempotent(db_session, trades_profile, customer_user):
    db_session.add(
        Review(
            profile_id=trades_profile.id,
            author_id=customer_user.id,
            status="APPROVED",
            overall_rating=3,
            title="Fine",
            content=CONTENT,
        )
    )
    await db_session.flush()

    first = await recompute_profile_rating(db_session, trades_profile.id)
    assert (first.average_rating, first.review_count) == (3.0, 1)
    second = await recompute_profile_rating(db_session, trades_profile.id)
    assert (second.average_rating, second.review_count) == (3.0, 1)


@pytest.mark.asyncio
async def test_duplicate_insert_race_returns_conflict(client, db_session, auth_headers, trades_profile, customer_user):
    # A row the pre-check cannot see still trips the unique constraint
    db_session.add(
        Review(
            profile_id=trades_profile.id,
            author_id=customer_user.id,
            status="PENDING",
            overall_rating=4,
            title="Earlier",
            content=CONTENT,
            is_deleted=True,
        )
    )
    await db_session.flush()

    response = await _submit(client, auth_headers, trades_profile)
    assert response.status_code == 409
    assert response.json()["error"] == "You have already reviewed this tradesperson"
