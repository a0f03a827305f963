import pytest

FINANCIAL = {
    "schema": {
        "storeLocation": "Calgary",
        "financialMetrics": [
            {
                "year": "2024",
                "averageOrderValue": 120.5,
                "revenue": {"total": 1000, "repair": 200, "sales": {"total": 800, "inStore": 500, "online": 300}},
                "monthlyMetrics": [
                    {"month": "January", "dailyMetrics": [{"day": "01", "conversionRate": 0.2}]},
                ],
            }
        ],
    }
}


async def _create_financials(holder, locations):
    ids = []
    for location in locations:
        body = await holder.request(
            "POST", "/api/v1/metrics/financial",
            json={"schema": {**FINANCIAL["schema"], "storeLocation": location}},
        )
        assert body["kind"] == "success", body["message"]
        ids.append(body["data"][0]["id"])
    return ids


async def test_financial_metrics_crud(signed_in):
    holder = await signed_in("leo")

    created = await holder.request("POST", "/api/v1/metrics/financial", json=FINANCIAL)
    assert created["kind"] == "success"
    record = created["data"][0]
    resource_id = record["id"]
    assert record["storeLocation"] == "Calgary"
    yearly = record["financialMetrics"][0]
    assert yearly["revenue"]["sales"]["inStore"] == 500
    assert yearly["monthlyMetrics"][0]["dailyMetrics"][0]["day"] == "01"
    # defaults are filled in for omitted nested fields
    assert yearly["expenses"] == {"total": 0, "repair": 0, "sales": {"total": 0, "inStore": 0, "online": 0}}

    fetched = await holder.request("GET", f"/api/v1/metrics/financial/{resource_id}")
    assert fetched["data"][0]["id"] == resource_id

    updated = await holder.request(
        "PATCH", f"/api/v1/metrics/financial/{resource_id}",
        json={"documentUpdate": {
            "updateKind": "field",
            "updateOperator": "$inc",
            "fields": {"financialMetrics.0.revenue.total": 50},
        }},
    )
    assert updated["data"][0]["financialMetrics"][0]["revenue"]["total"] == 1050

    deleted = await holder.request("DELETE", f"/api/v1/metrics/financial/{resource_id}")
    assert deleted["data"] == [True]

    missing = await holder.request("GET", f"/api/v1/metrics/financial/{resource_id}")
    assert missing["kind"] == "success"
    assert missing["data"] == []
    assert missing["message"] == "Resource not found"


async def test_every_request_rotates_the_token(signed_in):
    holder = await signed_in("mia")
    seen = {holder.token}
    for _ in range(3):
        await holder.request("GET", "/api/v1/metrics/financial")
        assert holder.token not in seen
        seen.add(holder.token)


async def test_pagination(signed_in):
    holder = await signed_in("nick")
    await _create_financials(holder, ["Calgary", "Edmonton", "Vancouver", "All Locations", "Calgary"])

    first = await holder.request("GET", "/api/v1/metrics/financial", params={"limit": "2", "page": "1"})
    assert first["totalDocuments"] == 5
    assert first["pages"] == 3
    assert len(first["data"]) == 2

    last = await holder.request("GET", "/api/v1/metrics/financial", params={"limit": "2", "page": "3"})
    assert len(last["data"]) == 1
    seen = {record["id"] for record in first["data"]} | {record["id"] for record in last["data"]}
    assert len(seen) == 3


async def test_filter_sort_and_projection(signed_in):
    holder = await signed_in("olga")
    await _create_financials(holder, ["Calgary", "Edmonton", "Calgary"])

    body = await holder.request(
        "GET", "/api/v1/metrics/financial",
        params={"storeLocation": "Calgary", "projection": "financialMetrics", "sort[createdAt]": "1"},
    )
    assert body["totalDocuments"] == 2
    assert all(record["storeLocation"] == "Calgary" for record in body["data"])
    assert all("financialMetrics" not in record for record in body["data"])
    created = [record["createdAt"] for record in body["data"]]
    assert created == sorted(created)


async def test_cached_total_is_reused(signed_in):
    holder = await signed_in("pete")
    await _create_financials(holder, ["Calgary", "Edmonton"])

    body = await holder.request("GET", "/api/v1/metrics/financial", params={"totalDocuments": "40"})
    assert body["totalDocuments"] == 40
    fresh = await holder.request(
        "GET", "/api/v1/metrics/financial", params={"totalDocuments": "40", "newQueryFlag": "true"},
    )
    assert fresh["totalDocuments"] == 2


async def test_invalid_query_is_a_validation_error(signed_in):
    holder = await signed_in("quinn")
    body = await holder.request("GET", "/api/v1/metrics/financial", params={"limit": "zero"})
    assert body["kind"] == "error"
    assert body["status"] == 400
    # the caller keeps a usable token on errors that do not end the session
    assert body["accessToken"]
    assert (await holder.request("GET", "/api/v1/metrics/financial"))["kind"] == "success"


async def test_unknown_filter_field(signed_in):
    holder = await signed_in("rosa")
    body = await holder.request("GET", "/api/v1/metrics/financial", params={"nope": "1"})
    assert body["status"] == 400


async def test_invalid_create_body(signed_in):
    holder = await signed_in("sam")
    body = await holder.request(
        "POST", "/api/v1/metrics/repair",
        json={"schema": {"storeLocation": "Toronto", "metricCategory": "Peripheral"}},
    )
    assert body["kind"] == "error"
    assert body["status"] == 400


async def test_update_rejects_unknown_fields(signed_in):
    holder = await signed_in("tina")
    created = await holder.request(
        "POST", "/api/v1/metrics/repair", json={"schema": {"metricCategory": "Peripheral"}},
    )
    resource_id = created["data"][0]["id"]

    body = await holder.request(
        "PATCH", f"/api/v1/metrics/repair/{resource_id}",
        json={"documentUpdate": {"updateKind": "field", "updateOperator": "$set", "fields": {"bogus": 1}}},
    )
    assert body["status"] == 400


async def test_product_metrics_owned_by_creator(signed_in):
    owner = await signed_in("uma")
    await owner.request("POST", "/api/v1/metrics/product", json={"schema": {"name": "Mouse"}})
    await owner.request("POST", "/api/v1/metrics/product", json={"schema": {"name": "Keyboard"}})

    other = await signed_in("victor")
    await other.request("POST", "/api/v1/metrics/product", json={"schema": {"name": "Webcam"}})

    mine = await owner.request("GET", "/api/v1/metrics/product/user")
    assert {record["name"] for record in mine["data"]} == {"Mouse", "Keyboard"}
    everyone = await owner.request("GET", "/api/v1/metrics/product")
    assert everyone["totalDocuments"] == 3


async def test_customer_metrics_nested_defaults(signed_in):
    holder = await signed_in("wendy")
    body = await holder.request(
        "POST", "/api/v1/metrics/customer",
        json={"schema": {"customerMetrics": {"totalCustomers": 12, "yearlyMetrics": [{"year": "2023"}]}}},
    )
    record = body["data"][0]
    assert record["storeLocation"] == "All Locations"
    yearly = record["customerMetrics"]["yearlyMetrics"][0]
    assert yearly["customers"]["new"]["sales"]["online"] == 0


@pytest.mark.parametrize("roles,expected_status", [(["Employee"], 403), (["Admin"], 200)])
async def test_delete_many_requires_admin(signed_in, roles, expected_status):
    holder = await signed_in("xavier", roles)
    await _create_financials(holder, ["Calgary", "Edmonton"])

    body = await holder.request(
        "DELETE", "/api/v1/metrics/financial/delete-many", json={"filter": {"storeLocation": "Calgary"}},
    )
    assert body["status"] == expected_status
    assert body["triggerLogout"] is False
    remaining = await holder.request("GET", "/api/v1/metrics/financial")
    assert remaining["totalDocuments"] == (1 if expected_status == 200 else 2)


async def test_delete_many_without_matches(signed_in):
    holder = await signed_in("yara", ["Admin"])
    body = await holder.request(
        "DELETE", "/api/v1/metrics/repair/delete-many", json={"filter": {"storeLocation": "Calgary"}},
    )
    assert body["kind"] == "success"
    assert body["message"] == "Some resources not found"


@pytest.mark.parametrize("update", [
    {"updateKind": "field", "updateOperator": "$max", "fields": {"storeLocation": "Mars"}},
    {"updateKind": "field", "updateOperator": "$min", "fields": {"storeLocation": "Atlantis"}},
    {"updateKind": "field", "updateOperator": "$set", "fields": {"financialMetrics.0.monthlyMetrics.0.month": "Smarch"}},
    {"updateKind": "array", "updateOperator": "$push", "fields": {"financialMetrics": {"year": "2025", "monthlyMetrics": [{"month": "Smarch"}]}}},
])
async def test_every_operator_is_validated(signed_in, update):
    holder = await signed_in("zed")
    [resource_id] = await _create_financials(holder, ["Calgary"])

    body = await holder.request("PATCH", f"/api/v1/metrics/financial/{resource_id}", json={"documentUpdate": update})
    assert body["kind"] == "error"
    assert body["status"] == 400

    stored = (await holder.request("GET", f"/api/v1/metrics/financial/{resource_id}"))["data"][0]
    assert stored["storeLocation"] == "Calgary"
    assert len(stored["financialMetrics"]) == 1
    assert stored["financialMetrics"][0]["monthlyMetrics"][0]["month"] == "January"
