"""Tests for authentication and per-user ownership of clients and their content."""

import uuid

from conftest import auth_headers, make_token


# =============================================================================
# Authentication
# =============================================================================


class TestAuthentication:
    """Requests without a valid Supabase token are rejected with the error envelope."""

    async def test_missing_token_returns_401_envelope(self, client):
        response = await client.get("/api/clients")
        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["errorKind"] == "unauthorized"
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_token_signed_with_wrong_secret_is_rejected(self, client, owner_id):
        token = make_token(owner_id, secret="not-the-secret")
        response = await client.get("/api/clients", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    async def test_expired_token_is_rejected(self, client, owner_id):
        token = make_token(owner_id, expires_in=-60)
        response = await client.get("/api/clients", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    async def test_valid_token_lists_only_own_clients(self, client, seed, owner_id, other_user_id):
        mine = await seed.client(owner_id, name="Mine")
        await seed.client(other_user_id, name="Theirs")

        response = await client.get("/api/clients", headers=auth_headers(owner_id))
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert [c["id"] for c in body["clients"]] == [str(mine.id)]


# =============================================================================
# Ownership guard
# =============================================================================


class TestOwnershipGuard:
    """Every client-scoped route answers 404 for unknown ids and 403 for other users' data."""

    async def test_unknown_client_is_404(self, client, owner_id):
        response = await client.get(f"/api/clients/{uuid.uuid4()}", headers=auth_headers(owner_id))
        assert response.status_code == 404
        assert response.json()["errorKind"] == "not_found"

    async def test_other_users_client_is_403(self, client, seed, owner_id, other_user_id):
        theirs = await seed.client(other_user_id)
        response = await client.get(f"/api/clients/{theirs.id}", headers=auth_headers(owner_id))
        assert response.status_code == 403
        assert response.json() == {"success": False, "error": "Forbidden", "errorKind": "forbidden"}

    async def test_create_unscheduled_post_for_own_client(self, client, seed, owner_id):
        own = await seed.client(owner_id)
        response = await client.post(
            "/api/calendar/unscheduled",
            json={"client_id": str(own.id), "caption": "Hello"},
            headers=auth_headers(owner_id),
        )
        assert response.status_code == 201
        post = response.json()["post"]
        assert post["client_id"] == str(own.id)
        assert post["caption"] == "Hello"
        assert post["approval_status"] == "pending"

    async def test_create_unscheduled_post_for_foreign_client_is_403(self, client, seed, owner_id, other_user_id):
        theirs = await seed.client(other_user_id)
        response = await client.post(
            "/api/calendar/unscheduled",
            json={"client_id": str(theirs.id), "caption": "Hello"},
            headers=auth_headers(owner_id),
        )
        assert response.status_code == 403

    async def test_project_of_another_client_is_rejected(self, client, seed, owner_id, other_user_id):
        own = await seed.client(owner_id)
        foreign_project = await seed.project(await seed.client(other_user_id))
        response = await client.post(
            "/api/calendar/unscheduled",
            json={"client_id": str(own.id), "project_id": str(foreign_project.id), "caption": "x"},
            headers=auth_headers(owner_id),
        )
        assert response.status_code == 403

    async def test_foreign_scheduled_post_revisions_are_403(self, client, seed, owner_id, other_user_id):
        post = await seed.scheduled_post(await seed.client(other_user_id))
        response = await client.get(f"/api/posts/{post.id}/revisions", headers=auth_headers(owner_id))
        assert response.status_code == 403


# =============================================================================
# Client limits
# =============================================================================


class TestClientLimit:
    """Creating clients is capped by the plan's client limit."""

    async def test_user_without_subscription_gets_one_client(self, client, seed, owner_id):
        headers = auth_headers(owner_id)
        first = await client.post("/api/clients", json={"name": "One"}, headers=headers)
        assert first.status_code == 201

        second = await client.post("/api/clients", json={"name": "Two"}, headers=headers)
        assert second.status_code == 403
        body = second.json()
        assert body["limit"] == 1
        assert body["current"] == 1

    async def test_agency_plan_is_unlimited(self, client, seed, owner_id):
        await seed.subscription(owner_id, tier="agency")
        headers = auth_headers(owner_id)
        for name in ("One", "Two", "Three"):
            response = await client.post("/api/clients", json={"name": name}, headers=headers)
            assert response.status_code == 201
