import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from tradesfinder.db.base import utcnow
from tradesfinder.db.models.job import Job, JobApplication

COVER_LETTER = "I have fifteen years of experience with exactly this kind of work and can start next week."


async def _apply(client, headers, job_id, cover_letter=COVER_LETTER):
    return await client.post(
        f"/api/v1/jobs/{job_id}/apply",
        headers=headers,
        json={"cover_letter": cover_letter, "proposed_budget": 250},
    )


# ---------- Jobs ----------


@pytest.mark.asyncio
async def test_create_job(post_job):
    data = await post_job()
    assert data["status"] == "OPEN"
    assert data["postcode"] == "SW1A 2AA"
    assert data["expires_at"] is not None
    assert data["allowed_actions"] == ["close"]


@pytest.mark.asyncio
async def test_tradesperson_cannot_post_job(client, trades_headers, trade):
    response = await client.post(
        "/api/v1/jobs",
        headers=trades_headers,
        json={"trade_id": str(trade.id), "title": "T", "description": "D", "postcode": "SW1"},
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_job_budget_must_be_ordered(client, auth_headers, trade):
    response = await client.post(
        "/api/v1/jobs",
        headers=auth_headers,
        json={
            "trade_id": str(trade.id),
            "title": "Tiling",
            "description": "Bathroom wall tiling",
            "postcode": "SW1",
            "budget_min": 500,
            "budget_max": 100,
        },
    )
    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


@pytest.mark.asyncio
async def test_list_open_jobs_with_filters(client, post_job, trade):
    job = await post_job()

    response = await client.get("/api/v1/jobs", params={"trade": trade.slug, "postcode": "sw1a"})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["id"] == job["id"]

    response = await client.get("/api/v1/jobs", params={"postcode": "M1"})
    assert response.json()["total"] == 0


@pytest.mark.asyncio
async def test_get_job_counts_views(client, post_job):
    job = await post_job()
    await client.get(f"/api/v1/jobs/{job['id']}")
    response = await client.get(f"/api/v1/jobs/{job['id']}")
    assert response.status_code == 200
    assert response.json()["view_count"] == 2


@pytest.mark.asyncio
async def test_closed_job_is_hidden_from_others(client, post_job, auth_headers, other_headers):
    job = await post_job()
    response = await client.delete(f"/api/v1/jobs/{job['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "CLOSED"

    response = await client.get(f"/api/v1/jobs/{job['id']}", headers=other_headers)
    assert response.status_code == 404

    response = await client.get(f"/api/v1/jobs/{job['id']}", headers=auth_headers)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_closed_job_cannot_be_closed_again(client, post_job, auth_headers):
    job = await post_job()
    await client.delete(f"/api/v1/jobs/{job['id']}", headers=auth_headers)

    response = await client.patch(f"/api/v1/jobs/{job['id']}", headers=auth_headers, json={"action": "close"})
    assert response.status_code == 409
    assert response.json() == {"error": "Cannot perform this action", "code": "invalid_transition"}


@pytest.mark.asyncio
async def test_only_owner_can_edit_job(client, post_job, auth_headers, other_headers):
    job = await post_job()

    response = await client.patch(f"/api/v1/jobs/{job['id']}", headers=other_headers, json={"title": "Mine now"})
    assert response.status_code == 404

    response = await client.patch(f"/api/v1/jobs/{job['id']}", headers=auth_headers, json={"title": "New title"})
    assert response.status_code == 200
    assert response.json()["title"] == "New title"


@pytest.mark.asyncio
async def test_expired_job_is_transitioned_on_load(client, db_session, post_job, auth_headers, trades_headers):
    job = await post_job()
    row = await db_session.get(Job, uuid.UUID(job["id"]))
    row.expires_at = utcnow() - timedelta(days=1)
    await db_session.flush()

    response = await _apply(client, trades_headers, job["id"])
    assert response.status_code == 400
    assert response.json()["error"] == "This job is no longer accepting applications"

    response = await client.get(f"/api/v1/jobs/{job['id']}", headers=auth_headers)
    assert response.json()["status"] == "EXPIRED"

    response = await client.get("/api/v1/jobs")
    assert response.json()["total"] == 0


@pytest.mark.asyncio
async def test_expired_job_cannot_accept_application(client, db_session, post_job, auth_headers, trades_headers):
    job = await post_job()
    application = (await _apply(client, trades_headers, job["id"])).json()

    row = await db_session.get(Job, uuid.UUID(job["id"]))
    row.expires_at = utcnow() - timedelta(days=1)
    await db_session.flush()

    response = await client.patch(
        f"/api/v1/jobs/{job['id']}/applications/{application['id']}",
        headers=auth_headers,
        json={"action": "accept"},
    )
    assert response.status_code == 409
    assert response.json()["code"] == "invalid_transition"

    response = await client.get(f"/api/v1/jobs/{job['id']}", headers=auth_headers)
    assert response.json()["status"] == "EXPIRED"
    application_row = await db_session.get(JobApplication, uuid.UUID(application["id"]))
    assert application_row.status == "PENDING"


@pytest.mark.asyncio
async def test_closed_job_cannot_reopen_over_http(client, post_job, auth_headers):
    job = await post_job()
    await client.delete(f"/api/v1/jobs/{job['id']}", headers=auth_headers)

    response = await client.patch(f"/api/v1/jobs/{job['id']}", headers=auth_headers, json={"action": "reopen"})
    assert response.status_code == 409
    assert response.json() == {"error": "Cannot perform this action", "code": "invalid_transition"}

    response = await client.get(f"/api/v1/jobs/{job['id']}", headers=auth_headers)
    assert response.json()["status"] == "CLOSED"


# ---------- Applications ----------


@pytest.mark.asyncio
async def test_apply_to_job(client, post_job, trades_headers, trades_profile):
    job = await post_job()
    response = await _apply(client, trades_headers, job["id"])
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "PENDING"
    assert data["profile_id"] == str(trades_profile.id)


@pytest.mark.asyncio
async def test_cover_letter_minimum_length(client, post_job, trades_headers):
    job = await post_job()
    response = await _apply(client, trades_headers, job["id"], cover_letter="Too short")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_duplicate_application_conflicts(client, post_job, trades_headers):
    job = await post_job()
    await _apply(client, trades_headers, job["id"])
    response = await _apply(client, trades_headers, job["id"])
    assert response.status_code == 409
    assert response.json()["error"] == "You have already applied to this job"


@pytest.mark.asyncio
async def test_customer_cannot_apply(client, post_job, other_headers):
    job = await post_job()
    response = await _apply(client, other_headers, job["id"])
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_free_tier_sixth_application_is_refused(client, db_session, post_job, trades_headers, trades_profile):
    jobs = [await post_job(title=f"Job {i}") for i in range(6)]
    for job in jobs[:5]:
        response = await _apply(client, trades_headers, job["id"])
        assert response.status_code == 201

    response = await _apply(client, trades_headers, jobs[5]["id"])
    assert response.status_code == 402
    data = response.json()
    assert data["code"] == "quota_exceeded"
    assert data["upgradeUrl"] == "/dashboard/subscription"

    count = (
        await db_session.execute(
            select(func.count()).select_from(JobApplication).where(JobApplication.profile_id == trades_profile.id)
        )
    ).scalar()
    assert count == 5


@pytest.mark.asyncio
async def test_owner_listing_marks_applications_viewed(client, post_job, auth_headers, trades_headers):
    job = await post_job()
    await _apply(client, trades_headers, job["id"])

    response = await client.get(f"/api/v1/jobs/{job['id']}/applications", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["status"] == "VIEWED"
    assert data[0]["viewed_at"] is not None
    assert "accept" in data[0]["allowed_actions"]


@pytest.mark.asyncio
async def test_applicant_cannot_list_applications(client, post_job, trades_headers):
    job = await post_job()
    await _apply(client, trades_headers, job["id"])
    response = await client.get(f"/api/v1/jobs/{job['id']}/applications", headers=trades_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_accept_starts_job_and_leaves_siblings(
    client, post_job, auth_headers, trades_headers, other_trades_headers
):
    job = await post_job()
    first = (await _apply(client, trades_headers, job["id"])).json()
    second = (await _apply(client, other_trades_headers, job["id"])).json()

    response = await client.patch(
        f"/api/v1/jobs/{job['id']}/applications/{first['id']}",
        headers=auth_headers,
        json={"action": "accept"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "ACCEPTED"

    job_resp = await client.get(f"/api/v1/jobs/{job['id']}", headers=auth_headers)
    assert job_resp.json()["status"] == "IN_PROGRESS"
    assert job_resp.json()["allowed_actions"] == ["close", "complete"]

    apps = await client.get(f"/api/v1/jobs/{job['id']}/applications", headers=auth_headers)
    statuses = {a["id"]: a["status"] for a in apps.json()}
    assert statuses[first["id"]] == "ACCEPTED"
    assert statuses[second["id"]] == "VIEWED"

    # Acceptance opens a conversation between customer and tradesperson
    conversations = await client.get("/api/v1/conversations", headers=trades_headers)
    assert conversations.status_code == 200
    assert len(conversations.json()) == 1
    assert conversations.json()[0]["job_application_id"] == first["id"]
    assert conversations.json()[0]["unread_count"] == 1


@pytest.mark.asyncio
async def test_applicant_withdraws(client, post_job, auth_headers, trades_headers):
    job = await post_job()
    application = (await _apply(client, trades_headers, job["id"])).json()
    url = f"/api/v1/jobs/{job['id']}/applications/{application['id']}"

    response = await client.patch(url, headers=auth_headers, json={"action": "withdraw"})
    assert response.status_code == 409

    response = await client.patch(url, headers=trades_headers, json={"action": "withdraw"})
    assert response.status_code == 200
    assert response.json()["status"] == "WITHDRAWN"

    response = await client.patch(url, headers=auth_headers, json={"action": "accept"})
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_stranger_cannot_touch_application(client, post_job, trades_headers, other_headers):
    job = await post_job()
    application = (await _apply(client, trades_headers, job["id"])).json()
    response = await client.patch(
        f"/api/v1/jobs/{job['id']}/applications/{application['id']}",
        headers=other_headers,
        json={"action": "decline"},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_matching_jobs_and_my_applications(client, post_job, trades_headers):
    job = await post_job()

    response = await client.get("/api/v1/jobs/matching", headers=trades_headers)
    assert response.status_code == 200
    assert [(j["id"], j["has_applied"]) for j in response.json()] == [(job["id"], False)]

    await _apply(client, trades_headers, job["id"])
    response = await client.get("/api/v1/jobs/matching", headers=trades_headers)
    assert response.json()[0]["has_applied"] is True

    response = await client.get("/api/v1/applications", headers=trades_headers)
    assert response.status_code == 200
    assert response.json()[0]["job_title"] == job["title"]
