"""Tests for unscheduled and scheduled calendar posts, including moving posts onto the calendar."""

from datetime import date, time

from sqlalchemy.exc import OperationalError

from app.crud import calendar as calendar_crud
from app.db.models.calendar import ScheduledPost, UnscheduledPost
from conftest import auth_headers


# =============================================================================
# Moving unscheduled posts
# =============================================================================


class TestMoveToSchedule:
    """A moved post ends up in exactly one table."""

    async def test_move_creates_scheduled_and_removes_unscheduled(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        draft = await seed.unscheduled_post(own, caption="Launch day")

        response = await client.post(
            "/api/calendar/scheduled",
            json={
                "scheduledPost": {
                    "client_id": str(own.id),
                    "caption": "Launch day",
                    "scheduled_date": "2026-11-05",
                    "scheduled_time": "09:30:00",
                },
                "unscheduledId": str(draft.id),
            },
            headers=auth_headers(owner_id),
        )

        assert response.status_code == 201
        post = response.json()["post"]
        assert post["scheduled_date"] == "2026-11-05"
        assert post["scheduled_time"] == "09:30:00"
        assert await seed.get(UnscheduledPost, draft.id) is None
        scheduled = await seed.all(ScheduledPost, ScheduledPost.client_id == own.id)
        assert len(scheduled) == 1
        assert scheduled[0].caption == "Launch day"

    async def test_failed_delete_rolls_back_the_insert(self, client, seed, owner_id, monkeypatch):
        own = await seed.client(owner_id)
        draft = await seed.unscheduled_post(own)

        async def _fail(db, post_id):
            raise OperationalError("DELETE", {}, Exception("disk I/O error"))

        monkeypatch.setattr(calendar_crud, "delete_unscheduled_post", _fail)

        response = await client.post(
            "/api/calendar/scheduled",
            json={
                "scheduledPost": {"client_id": str(own.id), "scheduled_date": "2026-11-05"},
                "unscheduledId": str(draft.id),
            },
            headers=auth_headers(owner_id),
        )

        assert response.status_code == 500
        assert response.json()["errorKind"] == "post_move_failed"
        assert await seed.get(UnscheduledPost, draft.id) is not None
        assert await seed.all(ScheduledPost, ScheduledPost.client_id == own.id) == []

    async def test_nothing_deleted_is_treated_as_failure(self, client, seed, owner_id, monkeypatch):
        own = await seed.client(owner_id)
        draft = await seed.unscheduled_post(own)

        async def _noop(db, post_id):
            return 0

        monkeypatch.setattr(calendar_crud, "delete_unscheduled_post", _noop)

        response = await client.post(
            "/api/calendar/scheduled",
            json={
                "scheduledPost": {"client_id": str(own.id), "scheduled_date": "2026-11-05"},
                "unscheduledId": str(draft.id),
            },
            headers=auth_headers(owner_id),
        )

        assert response.status_code == 500
        assert await seed.all(ScheduledPost, ScheduledPost.client_id == own.id) == []

    async def test_moving_another_clients_draft_is_forbidden(self, client, seed, owner_id):
        first = await seed.client(owner_id, name="First")
        second = await seed.client(owner_id, name="Second")
        draft = await seed.unscheduled_post(second)

        response = await client.post(
            "/api/calendar/scheduled",
            json={
                "scheduledPost": {"client_id": str(first.id), "scheduled_date": "2026-11-05"},
                "unscheduledId": str(draft.id),
            },
            headers=auth_headers(owner_id),
        )

        assert response.status_code == 403
        assert await seed.get(UnscheduledPost, draft.id) is not None


# =============================================================================
# Listing
# =============================================================================


class TestListScheduled:
    """Scheduled posts come back in calendar order with the client's uploads."""

    async def test_posts_are_ordered_by_date_then_time(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        late = await seed.scheduled_post(own, scheduled_date=date(2026, 11, 3), scheduled_time=time(8, 0))
        early_pm = await seed.scheduled_post(own, scheduled_date=date(2026, 11, 2), scheduled_time=time(15, 0))
        early_am = await seed.scheduled_post(own, scheduled_date=date(2026, 11, 2), scheduled_time=time(9, 0))

        response = await client.get(f"/api/calendar/scheduled?clientId={own.id}", headers=auth_headers(owner_id))

        assert response.status_code == 200
        ids = [p["id"] for p in response.json()["posts"]]
        assert ids == [str(early_am.id), str(early_pm.id), str(late.id)]
        assert response.json()["uploads"] == []

    async def test_inline_images_are_stripped_unless_requested(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        await seed.scheduled_post(own, image_url="data:image/png;base64,AAAA")
        headers = auth_headers(owner_id)

        stripped = await client.get(f"/api/calendar/scheduled?clientId={own.id}", headers=headers)
        assert stripped.json()["posts"][0]["image_url"] is None

        full = await client.get(f"/api/calendar/scheduled?clientId={own.id}&includeImageData=true", headers=headers)
        assert full.json()["posts"][0]["image_url"] == "data:image/png;base64,AAAA"

    async def test_limit_above_maximum_is_a_validation_error(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        response = await client.get(
            f"/api/calendar/scheduled?clientId={own.id}&limit=500", headers=auth_headers(owner_id)
        )
        assert response.status_code == 400
        assert response.json()["errorKind"] == "validation_error"

    async def test_client_id_is_required(self, client, owner_id):
        response = await client.get("/api/calendar/scheduled", headers=auth_headers(owner_id))
        assert response.status_code == 400

    async def test_untagged_filter_returns_posts_without_project(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        project = await seed.project(own)
        loose = await seed.scheduled_post(own)
        await seed.scheduled_post(own, project_id=project.id)

        response = await client.get(
            f"/api/calendar/scheduled?clientId={own.id}&filterUntagged=true", headers=auth_headers(owner_id)
        )
        assert [p["id"] for p in response.json()["posts"]] == [str(loose.id)]


# =============================================================================
# Editing
# =============================================================================


class TestEditScheduled:
    """Caption edits are tracked and approved posts are flagged for re-approval."""

    async def test_caption_edit_on_approved_post_needs_reapproval(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        post = await seed.scheduled_post(own, caption="v1", approval_status="approved")

        response = await client.patch(
            "/api/calendar/scheduled",
            json={"postId": str(post.id), "updates": {"caption": "v2"}},
            headers=auth_headers(owner_id),
        )

        assert response.status_code == 200
        body = response.json()["post"]
        assert body["caption"] == "v2"
        assert body["original_caption"] == "v1"
        assert body["edit_count"] == 1
        assert body["needs_reapproval"] is True

    async def test_empty_update_is_rejected(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        post = await seed.scheduled_post(own)
        response = await client.patch(
            "/api/calendar/scheduled",
            json={"postId": str(post.id), "updates": {}},
            headers=auth_headers(owner_id),
        )
        assert response.status_code == 400

    async def test_non_http_image_url_is_rejected(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        response = await client.post(
            "/api/calendar/unscheduled",
            json={"client_id": str(own.id), "image_url": "javascript:alert(1)"},
            headers=auth_headers(owner_id),
        )
        assert response.status_code == 400

    async def test_reschedule_requires_matching_client(self, client, seed, owner_id):
        first = await seed.client(owner_id, name="First")
        second = await seed.client(owner_id, name="Second")
        post = await seed.scheduled_post(first)

        response = await client.put(
            "/api/calendar/scheduled",
            json={"postId": str(post.id), "clientId": str(second.id), "scheduledDate": "2026-12-01"},
            headers=auth_headers(owner_id),
        )
        assert response.status_code == 403

    async def test_reschedule_moves_date_and_keeps_time(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        post = await seed.scheduled_post(own, scheduled_time=time(10, 15))

        response = await client.put(
            "/api/calendar/scheduled",
            json={"postId": str(post.id), "clientId": str(own.id), "scheduledDate": "2026-12-01"},
            headers=auth_headers(owner_id),
        )
        assert response.status_code == 200
        assert response.json()["post"]["scheduled_date"] == "2026-12-01"
        assert response.json()["post"]["scheduled_time"] == "10:15:00"

    async def test_delete_unscheduled_accepts_query_or_body(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        first = await seed.unscheduled_post(own)
        second = await seed.unscheduled_post(own)
        headers = auth_headers(owner_id)

        by_query = await client.delete(f"/api/calendar/unscheduled?postId={first.id}", headers=headers)
        assert by_query.status_code == 200

        by_body = await client.request(
            "DELETE", "/api/calendar/unscheduled", json={"postId": str(second.id)}, headers=headers
        )
        assert by_body.status_code == 200
        assert await seed.all(UnscheduledPost) == []
