import base64

import pytest
from sqlalchemy import select

from metrics_backend.core.config import settings
from metrics_backend.models import ErrorLog
from metrics_backend.services import resource_service


def _upload(content: bytes = b"\x89PNG fake image", **overrides) -> dict:
    schema = {
        "uploadedFile": base64.b64encode(content).decode("ascii"),
        "fileExtension": "png",
        "fileName": "avatar.png",
        "fileMimeType": "image/png",
    }
    schema.update(overrides)
    return {"schema": schema}


# ── File uploads ─────────────────────────────────────────────────────

async def test_upload_and_fetch_file(signed_in):
    holder = await signed_in("abe")
    body = await holder.request("POST", "/api/v1/file-upload", json=_upload())
    assert body["kind"] == "success"
    record = body["data"][0]
    assert record["username"] == "abe"
    assert record["fileSize"] == len(b"\x89PNG fake image")
    assert base64.b64decode(record["uploadedFile"]) == b"\x89PNG fake image"

    fetched = await holder.request("GET", f"/api/v1/file-upload/{record['id']}")
    assert fetched["data"][0]["fileName"] == "avatar.png"

    renamed = await holder.request(
        "PATCH", f"/api/v1/file-upload/{record['id']}",
        json={"documentUpdate": {"updateKind": "field", "updateOperator": "$set", "fields": {"fileName": "me.png"}}},
    )
    assert renamed["data"][0]["fileName"] == "me.png"


async def test_upload_too_large(signed_in, monkeypatch):
    monkeypatch.setattr(settings, "FILE_UPLOAD_MAX_BYTES", 4)
    holder = await signed_in("bea")
    body = await holder.request("POST", "/api/v1/file-upload", json=_upload(b"12345"))
    assert body["status"] == 413
    assert body["message"] == "Upload failed. File is too large"


async def test_upload_rejects_extension(signed_in):
    holder = await signed_in("cyd")
    body = await holder.request("POST", "/api/v1/file-upload", json=_upload(fileExtension="exe"))
    assert body["status"] == 400


async def test_list_own_uploads(signed_in):
    first = await signed_in("dee")
    await first.request("POST", "/api/v1/file-upload", json=_upload())
    second = await signed_in("eli")
    await second.request("POST", "/api/v1/file-upload", json=_upload(fileName="other.png"))

    mine = await second.request("GET", "/api/v1/file-upload/user")
    assert [record["fileName"] for record in mine["data"]] == ["other.png"]
    everyone = await second.request("GET", "/api/v1/file-upload", params={"projection": "uploadedFile"})
    assert everyone["totalDocuments"] == 2
    assert all("uploadedFile" not in record for record in everyone["data"])


# ── Error log ────────────────────────────────────────────────────────

async def test_failed_operation_is_logged(signed_in):
    admin = await signed_in("fox", ["Admin"])
    await admin.request("GET", "/api/v1/metrics/financial", params={"nope": "1"})

    body = await admin.request("GET", "/api/v1/error-log")
    assert body["totalDocuments"] == 1
    entry = body["data"][0]
    assert entry["name"] == "QueryTranslationError"
    assert entry["username"] == "fox"
    assert "stack" in entry

    deleted = await admin.request("DELETE", f"/api/v1/error-log/{entry['id']}")
    assert deleted["data"] == [True]


async def test_error_log_is_admin_only(signed_in):
    holder = await signed_in("gil", ["Manager"])
    body = await holder.request("GET", "/api/v1/error-log")
    assert body["status"] == 403


async def test_unexpected_errors_become_generic_500(signed_in, session_factory, monkeypatch):
    async def _explode(*args, **kwargs):
        raise RuntimeError("database on fire")

    holder = await signed_in("hip")
    monkeypatch.setattr(resource_service, "get_resource_by_id", _explode)
    response = await holder.client.get(
        "/api/v1/metrics/financial/00000000-0000-0000-0000-000000000000",
        headers={"Authorization": f"Bearer {holder.token}"},
    )
    body = response.json()
    assert response.status_code == 200
    assert body["status"] == 500
    assert body["message"] == "Unexpected error occurred"
    assert "fire" not in body["message"]

    async with session_factory() as db:
        messages = (await db.execute(select(ErrorLog.message))).scalars().all()
    assert messages == ["database on fire"]


# ── Username / email registry ────────────────────────────────────────

async def test_registry_seed_and_check(signed_in):
    holder = await signed_in("ivy")
    # signing in created the registry already
    seeded = await holder.request("POST", "/api/v1/username-email-set", json={"schema": {}})
    assert seeded["status"] == 409

    taken = await holder.request("POST", "/api/v1/username-email-set/check", json={"fields": {"username": "ivy"}})
    assert taken["data"] == [True]
    free = await holder.request("POST", "/api/v1/username-email-set/check", json={"fields": {"username": "nobody"}})
    assert free["data"] == [False]


@pytest.mark.parametrize("fields", [{}, {"username": "a", "email": "b@example.com"}])
async def test_registry_check_needs_exactly_one_field(signed_in, fields):
    holder = await signed_in("jax")
    body = await holder.request("POST", "/api/v1/username-email-set/check", json={"fields": fields})
    assert body["status"] == 400
