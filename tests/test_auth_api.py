from sqlalchemy import select

from metrics_backend.models import FinancialMetrics, User

REGISTRATION = {
    "schema": {
        "username": "newhire",
        "email": "newhire@example.com",
        "password": "Passw0rd!",
        "firstName": "New",
        "lastName": "Hire",
        "storeLocation": "Calgary",
    }
}


async def test_login_returns_token_and_user_without_password(create_user, login):
    await create_user("frank", ["Manager"])
    body = await login("frank")

    assert body["kind"] == "success"
    assert body["status"] == 200
    assert body["accessToken"]
    user_document = body["data"][0]["userDocument"]
    assert user_document["username"] == "frank"
    assert user_document["roles"] == ["Manager"]
    assert "password" not in user_document
    assert body["data"][0]["financialMetricsDocument"] is None


async def test_login_includes_all_locations_financials(create_user, login, session_factory):
    await create_user("grace")
    async with session_factory() as db:
        db.add(FinancialMetrics(store_location="Calgary", financial_metrics=[]))
        db.add(FinancialMetrics(store_location="All Locations", financial_metrics=[{"year": "2024"}]))
        await db.commit()

    body = await login("grace")
    financials = body["data"][0]["financialMetricsDocument"]
    assert financials["storeLocation"] == "All Locations"
    assert financials["financialMetrics"] == [{"year": "2024"}]


async def test_login_with_wrong_password(create_user, login):
    await create_user("heidi")
    body = await login("heidi", "Wr0ngPass!")

    assert body["kind"] == "error"
    assert body["status"] == 401
    assert body["triggerLogout"] is True
    assert body["accessToken"] == ""


async def test_register_then_login(client, login, session_factory):
    response = await client.post("/auth/register", json=REGISTRATION)
    body = response.json()
    assert response.status_code == 200
    assert body["kind"] == "success"
    assert body["data"] == [True]

    async with session_factory() as db:
        user = (await db.execute(select(User).where(User.username == "newhire"))).scalar_one()
    assert user.roles == ["Employee"]
    assert user.password != "Passw0rd!"

    assert (await login("newhire"))["kind"] == "success"


async def test_register_ignores_client_supplied_roles(client, session_factory):
    payload = {"schema": {**REGISTRATION["schema"], "roles": ["Admin"]}}
    await client.post("/auth/register", json=payload)

    async with session_factory() as db:
        user = (await db.execute(select(User).where(User.username == "newhire"))).scalar_one()
    assert user.roles == ["Employee"]


async def test_duplicate_register(client):
    await client.post("/auth/register", json=REGISTRATION)
    response = await client.post("/auth/register", json=REGISTRATION)
    body = response.json()

    assert response.status_code == 200
    assert body["kind"] == "error"
    assert body["status"] == 409


async def test_register_validation_error(client):
    payload = {"schema": {**REGISTRATION["schema"], "password": "weak"}}
    response = await client.post("/auth/register", json=payload)
    body = response.json()

    assert response.status_code == 200
    assert body["kind"] == "error"
    assert body["status"] == 400
    assert body["message"].startswith("Validation error")


async def test_missing_authorization_header(client):
    response = await client.get("/api/v1/metrics/financial")
    body = response.json()

    assert response.status_code == 200
    assert body["kind"] == "error"
    assert body["status"] == 401
    assert body["triggerLogout"] is True
    assert body["message"] == "Access token not found"


async def test_unknown_route_keeps_transport_404(client):
    response = await client.get("/api/v1/nothing-here")
    assert response.status_code == 404


async def test_logout_ends_session(signed_in, client):
    holder = await signed_in("ivan")
    body = await holder.request("POST", "/auth/logout")
    assert body["kind"] == "success"

    response = await client.get(
        "/api/v1/metrics/financial", headers={"Authorization": f"Bearer {holder.token}"},
    )
    assert response.json()["status"] == 401


async def test_replayed_token_ends_session(signed_in, client):
    holder = await signed_in("judy")
    stale = holder.token
    await holder.request("GET", "/api/v1/metrics/financial")

    replay = await client.get("/api/v1/metrics/financial", headers={"Authorization": f"Bearer {stale}"})
    assert replay.json()["message"] == "Session invalidated"

    after = await client.get("/api/v1/metrics/financial", headers={"Authorization": f"Bearer {holder.token}"})
    assert after.json()["message"] == "Session expired"


async def test_username_email_check(client, create_user):
    await create_user("kate")

    taken = await client.get("/auth/check", params={"username": "kate"})
    assert taken.json()["data"] == [True]
    free = await client.get("/auth/check", params={"email": "nobody@example.com"})
    assert free.json()["data"] == [False]
    both = await client.get("/auth/check", params={"username": "kate", "email": "kate@example.com"})
    assert both.json()["status"] == 400
