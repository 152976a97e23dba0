import pytest

from tradesfinder.config import settings


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["service"] == "tradesfinder"


@pytest.mark.asyncio
async def test_anonymous_job_page_redirects_to_login(client, post_job):
    job = await post_job()
    response = await client.get(f"/account/jobs/{job['id']}")
    assert response.status_code == 303
    assert response.headers["location"] == f"/login?callbackUrl=/account/jobs/{job['id']}"


@pytest.mark.asyncio
async def test_other_customer_gets_not_found_page(client, post_job, other_headers):
    job = await post_job()
    response = await client.get(f"/account/jobs/{job['id']}", headers=other_headers)
    assert response.status_code == 404
    assert response.headers["content-type"].startswith("text/html")
    assert "Job not found" in response.text


@pytest.mark.asyncio
async def test_owner_sees_job_with_applications(client, post_job, auth_headers, trades_headers):
    job = await post_job()
    await client.post(
        f"/api/v1/jobs/{job['id']}/apply",
        headers=trades_headers,
        json={"cover_letter": "I have fifteen years of experience with exactly this kind of work."},
    )

    response = await client.get(f"/account/jobs/{job['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert "Fix leaking kitchen tap" in response.text
    assert "Test Plumbing Ltd" in response.text
    assert 'data-status="VIEWED"' in response.text


@pytest.mark.asyncio
async def test_owner_page_via_cookie(client, post_job, customer_user):
    job = await post_job()
    login = await client.post("/api/v1/auth/login", json={"email": customer_user.email, "password": "testpass123"})
    assert login.status_code == 200
    assert settings.AUTH_COOKIE_NAME in login.headers["set-cookie"]
    client.cookies.set(settings.AUTH_COOKIE_NAME, login.json()["access_token"])

    response = await client.get(f"/account/jobs/{job['id']}")
    assert response.status_code == 200
    assert "No applications yet." in response.text


@pytest.mark.asyncio
async def test_api_paths_stay_json(client, post_job):
    job = await post_job()
    response = await client.get(f"/api/v1/jobs/{job['id']}/applications")
    assert response.status_code == 401
    assert response.json()["code"] == "authentication_required"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "callback,expected",
    [
        ("/account/jobs/abc", "/account/jobs/abc"),
        ("//evil.com", "/"),
        ("https://evil.com", "/"),
    ],
)
async def test_login_page_keeps_local_callbacks(client, callback, expected):
    response = await client.get("/login", params={"callbackUrl": callback})
    assert response.status_code == 200
    assert f'data-callback-url="{expected}"' in response.text
