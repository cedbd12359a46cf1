"""Tests for the token-authenticated client portal and owner unread counts."""

import base64
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.core.timeutils import week_label, week_start
from app.db.models.calendar import ScheduledPost
from app.db.models.portal import ClientUpload, PortalActivity
from app.services.blob_storage import BlobStorage
from conftest import auth_headers

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def _data_url(raw=PNG_BYTES, mime="image/png"):
    return f"data:{mime};base64,{base64.b64encode(raw).decode()}"


@pytest.fixture
def stored_blobs(monkeypatch):
    """Capture blob uploads instead of calling the storage API."""
    calls = []

    async def _put(self, pathname, data, content_type):
        calls.append({"pathname": pathname, "size": len(data), "content_type": content_type})
        return {"url": f"https://blob.example.com/{pathname}", "pathname": pathname}

    monkeypatch.setattr(BlobStorage, "put", _put)
    return calls


async def _upload(seed, client, created_at):
    return await seed.add(ClientUpload(
        client_id=client.id,
        file_name="photo.png",
        file_type="image/png",
        file_size=10,
        file_url="https://blob.example.com/photo.png",
        created_at=created_at,
    ))


# =============================================================================
# Token validation
# =============================================================================


class TestPortalToken:

    async def test_missing_token_is_400(self, client):
        response = await client.get("/api/portal/validate")
        assert response.status_code == 400

    async def test_invalid_token_is_401(self, client):
        response = await client.get("/api/portal/validate?token=wrong")
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid portal token"

    async def test_disabled_portal_rejects_token(self, client, seed, owner_id):
        own = await seed.client(owner_id, portal_enabled=False)
        response = await client.get(f"/api/portal/validate?token={own.portal_token}")
        assert response.status_code == 401

    async def test_valid_token_logs_portal_access(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        response = await client.get(
            f"/api/portal/validate?token={own.portal_token}",
            headers={"x-forwarded-for": "203.0.113.7, 10.0.0.1", "user-agent": "pytest"},
        )

        assert response.status_code == 200
        assert response.json()["client"]["id"] == str(own.id)
        activity = await seed.all(PortalActivity, PortalActivity.client_id == own.id)
        assert [(a.activity_type, a.ip_address, a.user_agent) for a in activity] == [
            ("portal_access", "203.0.113.7", "pytest")
        ]

    async def test_calendar_lists_client_posts(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        post = await seed.scheduled_post(own)
        await seed.scheduled_post(await seed.client(owner_id, name="Other"))

        response = await client.get(f"/api/portal/calendar?token={own.portal_token}")
        assert [p["id"] for p in response.json()["posts"]] == [str(post.id)]


# =============================================================================
# Portal approvals
# =============================================================================


class TestPortalApprovals:

    async def test_missing_token_is_400(self, client):
        listed = await client.get("/api/portal/approvals")
        submitted = await client.post(
            "/api/portal/approvals", json={"post_id": str(uuid.uuid4()), "approval_status": "approved"}
        )
        assert listed.status_code == 400
        assert submitted.status_code == 400
        assert submitted.json()["error"] == "Portal token is required"

    async def test_invalid_or_disabled_token_is_401(self, client, seed, owner_id):
        disabled = await seed.client(owner_id, portal_enabled=False)
        post = await seed.scheduled_post(disabled)

        listed = await client.get("/api/portal/approvals?token=wrong")
        submitted = await client.post(
            "/api/portal/approvals",
            json={"token": disabled.portal_token, "post_id": str(post.id), "approval_status": "approved"},
        )

        assert listed.status_code == 401
        assert submitted.status_code == 401
        assert (await seed.get(ScheduledPost, post.id)).approval_status == "pending"

    async def test_lists_project_posts_by_week_from_current_week(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        project = await seed.project(own)
        today = datetime.now(timezone.utc).date()
        upcoming = await seed.scheduled_post(own, project_id=project.id, scheduled_date=today + timedelta(days=7))
        await seed.scheduled_post(own, project_id=project.id, scheduled_date=week_start(today) - timedelta(days=1))
        await seed.scheduled_post(own, scheduled_date=today)

        response = await client.get(f"/api/portal/approvals?token={own.portal_token}")

        assert response.status_code == 200
        body = response.json()
        assert body["projects"] == [{"id": str(project.id), "name": project.name}]
        start = week_start(today + timedelta(days=7))
        assert [(w["week_start"], w["week_label"]) for w in body["weeks"]] == [
            (start.isoformat(), week_label(start))
        ]
        assert [p["id"] for p in body["weeks"][0]["posts"]] == [str(upcoming.id)]

    async def test_client_without_projects_gets_no_weeks(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        await seed.scheduled_post(own, scheduled_date=datetime.now(timezone.utc).date())

        body = (await client.get(f"/api/portal/approvals?token={own.portal_token}")).json()

        assert body["projects"] == []
        assert body["weeks"] == []

    async def test_decision_updates_post(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        post = await seed.scheduled_post(own, needs_attention=True)

        response = await client.post("/api/portal/approvals", json={
            "token": own.portal_token,
            "post_id": str(post.id),
            "approval_status": "approved",
            "client_comments": "Looks great",
            "edited_caption": "Fresh roast Friday",
        })

        assert response.status_code == 200
        assert response.json()["message"] == "Approval submitted successfully"
        stored = await seed.get(ScheduledPost, post.id)
        assert stored.approval_status == "approved"
        assert stored.needs_attention is False
        assert stored.client_feedback == "Looks great"
        assert stored.caption == "Fresh roast Friday"

    async def test_needs_attention_sets_flag_and_keeps_caption(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        post = await seed.scheduled_post(own)

        await client.post("/api/portal/approvals", json={
            "token": own.portal_token,
            "post_id": str(post.id),
            "approval_status": "needs_attention",
            "edited_caption": "   ",
        })

        stored = await seed.get(ScheduledPost, post.id)
        assert stored.approval_status == "needs_attention"
        assert stored.needs_attention is True
        assert stored.caption == "Scheduled caption"

    @pytest.mark.parametrize("status", ["maybe", "pending", ""])
    async def test_unknown_status_is_400(self, client, seed, owner_id, status):
        own = await seed.client(owner_id)
        post = await seed.scheduled_post(own)

        response = await client.post(
            "/api/portal/approvals",
            json={"token": own.portal_token, "post_id": str(post.id), "approval_status": status},
        )

        assert response.status_code == 400
        assert response.json()["error"] == f"Invalid approval status: {status}"
        assert (await seed.get(ScheduledPost, post.id)).approval_status == "pending"

    async def test_post_of_another_client_is_403(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        other_post = await seed.scheduled_post(await seed.client(owner_id, name="Other"))

        response = await client.post(
            "/api/portal/approvals",
            json={"token": own.portal_token, "post_id": str(other_post.id), "approval_status": "rejected"},
        )

        assert response.status_code == 403
        assert (await seed.get(ScheduledPost, other_post.id)).approval_status == "pending"


# =============================================================================
# Uploads
# =============================================================================


class TestPortalUpload:

    async def test_upload_is_stored_and_recorded(self, client, seed, owner_id, stored_blobs):
        own = await seed.client(owner_id)
        response = await client.post("/api/portal/upload", json={
            "token": own.portal_token,
            "fileName": "hero.png",
            "fileType": "image/png",
            "fileData": _data_url(),
            "notes": "Use for launch",
        })

        assert response.status_code == 200
        upload = response.json()["upload"]
        assert upload["file_size"] == len(PNG_BYTES)
        assert upload["file_url"].startswith("https://blob.example.com/client-uploads/")
        assert stored_blobs[0]["content_type"] == "image/png"
        logged = await seed.all(PortalActivity, PortalActivity.activity_type == "content_upload")
        assert len(logged) == 1

    @pytest.mark.parametrize(
        "file_name,file_type",
        [("../etc/passwd", "image/png"), ("hero.exe", "application/x-msdownload"), ("hero.jpg", "image/png")],
        ids=["path", "type", "extension"],
    )
    async def test_bad_files_are_rejected(self, client, seed, owner_id, stored_blobs, file_name, file_type):
        own = await seed.client(owner_id)
        response = await client.post("/api/portal/upload", json={
            "token": own.portal_token,
            "fileName": file_name,
            "fileType": file_type,
            "fileData": _data_url(),
        })
        assert response.status_code == 400
        assert stored_blobs == []

    async def test_project_of_other_client_is_rejected(self, client, seed, owner_id, stored_blobs):
        own = await seed.client(owner_id)
        foreign = await seed.project(await seed.client(owner_id, name="Other"))
        response = await client.post("/api/portal/upload", json={
            "token": own.portal_token,
            "fileName": "hero.png",
            "fileType": "image/png",
            "fileData": _data_url(),
            "projectId": str(foreign.id),
        })
        assert response.status_code == 400


# =============================================================================
# Unread counts
# =============================================================================


class TestUnreadCounts:

    async def test_unviewed_client_counts_all_activity(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        yesterday = datetime.now(timezone.utc) - timedelta(days=1)
        await _upload(seed, own, yesterday)
        await _upload(seed, own, yesterday)

        response = await client.get("/api/clients/unread-counts", headers=auth_headers(owner_id))

        assert response.status_code == 200
        assert response.json()["unreadCounts"] == {str(own.id): 2}

    async def test_mark_viewed_resets_count(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        yesterday = datetime.now(timezone.utc) - timedelta(days=1)
        await _upload(seed, own, yesterday)
        await _upload(seed, own, yesterday)
        headers = auth_headers(owner_id)

        marked = await client.post(f"/api/clients/{own.id}/mark-viewed", headers=headers)
        assert marked.status_code == 200
        assert marked.json()["lastViewedAt"]

        response = await client.get("/api/clients/unread-counts", headers=headers)
        assert response.json()["unreadCounts"] == {str(own.id): 0}

    async def test_activity_after_viewing_is_counted(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        headers = auth_headers(owner_id)
        await client.post(f"/api/clients/{own.id}/mark-viewed", headers=headers)

        await _upload(seed, own, datetime.now(timezone.utc) + timedelta(seconds=5))
        await seed.scheduled_post(own, approval_status="rejected")

        response = await client.get("/api/clients/unread-counts", headers=headers)
        assert response.json()["unreadCounts"] == {str(own.id): 1}

    async def test_calendar_views_are_not_counted(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        await client.get(f"/api/portal/calendar?token={own.portal_token}")

        response = await client.get("/api/clients/unread-counts", headers=auth_headers(owner_id))
        assert response.json()["unreadCounts"] == {str(own.id): 0}

    async def test_no_clients_gives_empty_map(self, client, owner_id):
        response = await client.get("/api/clients/unread-counts", headers=auth_headers(owner_id))
        assert response.json()["unreadCounts"] == {}
