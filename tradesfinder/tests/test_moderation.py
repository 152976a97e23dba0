import uuid

import pytest

from tradesfinder.common.enums import ContentAction, ReportTargetType
from tradesfinder.core.access.gate import AuthContext
from tradesfinder.core.moderation.dispatcher import DEFAULT_DISMISSAL, ModerationDispatcher, ModerationPayload
from tradesfinder.db.models.report import Report
from tradesfinder.db.models.review import Review

CONTENT = "Turned up on time, kept the site tidy and the finish is excellent."


async def _approved_review(client, headers, admin_headers, profile):
    review = (
        await client.post(
            "/api/v1/reviews",
            headers=headers,
            json={"profile_id": str(profile.id), "overall_rating": 1, "title": "Awful", "content": CONTENT},
        )
    ).json()
    await client.patch(f"/api/v1/admin/reviews/{review['id']}", headers=admin_headers, json={"action": "approve"})
    return review


async def _report(client, headers, target_type, target_id, reason="FAKE_REVIEW"):
    return await client.post(
        "/api/v1/reports",
        headers=headers,
        json={"target_type": target_type, "target_id": str(target_id), "reason": reason},
    )


# ---------- Filing reports ----------


@pytest.mark.asyncio
async def test_reporting_approved_review_flags_it(
    client, auth_headers, other_headers, admin_headers, trades_profile
):
    review = await _approved_review(client, auth_headers, admin_headers, trades_profile)

    response = await _report(client, other_headers, "REVIEW", review["id"])
    assert response.status_code == 201
    assert response.json()["status"] == "PENDING"

    detail = await client.get(f"/api/v1/admin/reviews/{review['id']}", headers=admin_headers)
    assert detail.json()["status"] == "FLAGGED"

    # Flagged reviews drop out of the aggregates
    profile = (await client.get(f"/api/v1/profiles/{trades_profile.slug}")).json()
    assert profile["review_count"] == 0


@pytest.mark.asyncio
async def test_one_open_report_per_target(client, auth_headers, trades_profile):
    await _report(client, auth_headers, "PROFILE", trades_profile.id, reason="SCAM")
    response = await _report(client, auth_headers, "PROFILE", trades_profile.id, reason="SCAM")
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_report_validation(client, auth_headers, trades_profile):
    assert (await _report(client, auth_headers, "JOB", trades_profile.id)).status_code == 400
    assert (await _report(client, auth_headers, "PROFILE", trades_profile.id, reason="BORING")).status_code == 400
    assert (await _report(client, auth_headers, "REVIEW", uuid.uuid4())).status_code == 404
    assert (await _report(client, {}, "PROFILE", trades_profile.id)).status_code == 401


# ---------- Admin moderation ----------


@pytest.mark.asyncio
async def test_dismiss_without_resolution_uses_default(client, auth_headers, admin_headers, trades_profile):
    report = (await _report(client, auth_headers, "PROFILE", trades_profile.id, reason="SPAM")).json()

    response = await client.patch(
        f"/api/v1/admin/reports/{report['id']}", headers=admin_headers, json={"action": "dismiss"}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "DISMISSED"
    assert data["resolution"] == DEFAULT_DISMISSAL
    assert data["handled_at"] is not None
    assert data["allowed_actions"] == []


@pytest.mark.asyncio
async def test_resolve_requires_resolution_text(client, auth_headers, admin_headers, trades_profile):
    report = (await _report(client, auth_headers, "PROFILE", trades_profile.id, reason="SPAM")).json()
    url = f"/api/v1/admin/reports/{report['id']}"

    response = await client.patch(url, headers=admin_headers, json={"action": "resolve", "content_action": "none"})
    assert response.status_code == 400

    response = await client.patch(url, headers=admin_headers, json={"action": "resolve", "resolution": "Looked"})
    assert response.status_code == 400

    detail = await client.get(url, headers=admin_headers)
    assert detail.json()["status"] == "PENDING"


@pytest.mark.asyncio
async def test_content_action_must_fit_target(client, auth_headers, admin_headers, trades_profile):
    report = (await _report(client, auth_headers, "PROFILE", trades_profile.id, reason="SPAM")).json()
    response = await client.patch(
        f"/api/v1/admin/reports/{report['id']}",
        headers=admin_headers,
        json={"action": "resolve", "resolution": "Spam profile", "content_action": "delete"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_resolve_deactivates_profile(client, auth_headers, admin_headers, trades_profile):
    report = (await _report(client, auth_headers, "PROFILE", trades_profile.id, reason="SCAM")).json()
    url = f"/api/v1/admin/reports/{report['id']}"

    response = await client.patch(url, headers=admin_headers, json={"action": "investigate"})
    assert response.json()["status"] == "INVESTIGATING"

    response = await client.patch(
        url,
        headers=admin_headers,
        json={"action": "resolve", "resolution": "Confirmed scam", "content_action": "deactivate"},
    )
    assert response.status_code == 200
    assert response.json()["content_action"] == "deactivate"

    profile = await client.get(f"/api/v1/profiles/{trades_profile.slug}")
    assert profile.status_code == 404


@pytest.mark.asyncio
async def test_resolve_rejects_reported_review(
    client, auth_headers, other_headers, admin_headers, trades_profile
):
    review = await _approved_review(client, auth_headers, admin_headers, trades_profile)
    report = (await _report(client, other_headers, "REVIEW", review["id"])).json()

    response = await client.patch(
        f"/api/v1/admin/reports/{report['id']}",
        headers=admin_headers,
        json={"action": "resolve", "resolution": "Fake review", "content_action": "reject"},
    )
    assert response.status_code == 200

    detail = await client.get(f"/api/v1/admin/reviews/{review['id']}", headers=admin_headers)
    assert detail.json()["status"] == "REJECTED"
    assert detail.json()["moderation_reason"] == "Fake review"


@pytest.mark.asyncio
async def test_admin_report_queue(client, auth_headers, admin_headers, trades_profile):
    await _report(client, auth_headers, "PROFILE", trades_profile.id, reason="SPAM")
    response = await client.get("/api/v1/admin/reports", headers=admin_headers, params={"status": "PENDING"})
    assert response.json()["total"] == 1

    stats = await client.get("/api/v1/admin/stats", headers=admin_headers)
    assert stats.status_code == 200
    assert stats.json()["open_reports"] == 1


@pytest.mark.asyncio
async def test_failed_content_action_rolls_back_everything(
    db_session, trades_profile, customer_user, admin_user, other_customer
):
    review = Review(
        profile_id=trades_profile.id,
        author_id=customer_user.id,
        status="APPROVED",
        overall_rating=2,
        title="Meh",
        content=CONTENT,
    )
    db_session.add(review)
    await db_session.flush()
    report = Report(
        reporter_id=other_customer.id,
        target_type=ReportTargetType.REVIEW.value,
        target_id=review.id,
        reason="FAKE_REVIEW",
        status="PENDING",
    )
    db_session.add(report)
    await db_session.flush()

    dispatcher = ModerationDispatcher()
    ctx = AuthContext(user_id=admin_user.id, role="ADMIN")

    async def reject_then_fail(db, report, ctx, resolution):
        await dispatcher._reject_review(db, report, ctx, resolution)
        raise RuntimeError("downstream failure")

    dispatcher.handlers[(ReportTargetType.REVIEW.value, ContentAction.REJECT)] = reject_then_fail

    payload = ModerationPayload(resolution="Fake", content_action=ContentAction.REJECT)
    with pytest.raises(RuntimeError):
        await dispatcher.apply(db_session, report, "resolve", payload, ctx)

    await db_session.refresh(report)
    await db_session.refresh(review)
    assert report.status == "PENDING"
    assert report.handled_at is None
    assert review.status == "APPROVED"
