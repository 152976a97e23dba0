import pytest


async def _submit(client, headers, verification_type="INSURANCE"):
    return await client.post(
        "/api/v1/verifications",
        headers=headers,
        json={"type": verification_type, "document_url": "https://files.example.com/policy.pdf"},
    )


@pytest.mark.asyncio
async def test_submit_verification(client, trades_headers):
    response = await _submit(client, trades_headers)
    assert response.status_code == 201
    assert response.json()["status"] == "PENDING"

    listed = await client.get("/api/v1/verifications", headers=trades_headers)
    assert len(listed.json()) == 1


@pytest.mark.asyncio
async def test_invalid_type_rejected(client, trades_headers):
    response = await _submit(client, trades_headers, verification_type="PASSPORT")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_duplicate_pending_type_conflicts(client, db_session, trades_headers, trades_profile):
    trades_profile.subscription_tier = "PRO"
    await db_session.flush()

    await _submit(client, trades_headers)
    response = await _submit(client, trades_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_free_tier_badge_cap_counts_pending(client, trades_headers):
    await _submit(client, trades_headers, "INSURANCE")
    response = await _submit(client, trades_headers, "GAS_SAFE")
    assert response.status_code == 402
    assert response.json()["upgradeUrl"] == "/dashboard/subscription"


@pytest.mark.asyncio
async def test_customer_has_no_profile(client, auth_headers):
    response = await _submit(client, auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_first_approval_verifies_profile(client, db_session, trades_headers, admin_headers, trades_profile):
    verification = (await _submit(client, trades_headers)).json()

    response = await client.patch(
        f"/api/v1/admin/verifications/{verification['id']}",
        headers=admin_headers,
        json={"action": "approve", "expires_at": "2027-01-01T00:00:00Z"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "APPROVED"
    assert data["verified_at"] is not None
    assert data["allowed_actions"] == []

    await db_session.refresh(trades_profile)
    assert trades_profile.is_verified is True

    # Approved is final
    response = await client.patch(
        f"/api/v1/admin/verifications/{verification['id']}",
        headers=admin_headers,
        json={"action": "reject", "reason": "Document has expired"},
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_rejection_needs_reason(client, trades_headers, admin_headers):
    verification = (await _submit(client, trades_headers)).json()
    url = f"/api/v1/admin/verifications/{verification['id']}"

    response = await client.patch(url, headers=admin_headers, json={"action": "reject", "reason": "blurry"})
    assert response.status_code == 400

    response = await client.patch(
        url, headers=admin_headers, json={"action": "reject", "reason": "The document is unreadable"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "REJECTED"
    assert response.json()["notes"] == "The document is unreadable"


@pytest.mark.asyncio
async def test_admin_verification_queue(client, trades_headers, admin_headers):
    await _submit(client, trades_headers)
    response = await client.get("/api/v1/admin/verifications", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["total"] == 1
