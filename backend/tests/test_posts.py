"""Tests for caption revisions and post tags."""

from app.db.models.client import PostTag, Tag
from conftest import auth_headers


class TestRevisions:

    async def _revise(self, http, post, owner_id, new_caption):
        return await http.post(
            f"/api/posts/{post.id}/revisions",
            json={"previous_caption": post.caption, "new_caption": new_caption},
            headers=auth_headers(owner_id),
        )

    async def test_revisions_are_numbered_per_post(self, client, seed, owner_id):
        mine = await seed.client(owner_id)
        post = await seed.scheduled_post(mine)
        other = await seed.scheduled_post(mine)

        first = await self._revise(client, post, owner_id, "v1")
        second = await self._revise(client, post, owner_id, "v2")
        elsewhere = await self._revise(client, other, owner_id, "v1")

        assert first.status_code == 201
        assert first.json()["revision"]["revision_number"] == 1
        assert second.json()["revision"]["revision_number"] == 2
        assert second.json()["revision"]["edited_by"] == str(owner_id)
        assert elsewhere.json()["revision"]["revision_number"] == 1

    async def test_list_is_newest_first_with_paging(self, client, seed, owner_id):
        mine = await seed.client(owner_id)
        post = await seed.scheduled_post(mine)
        for caption in ("v1", "v2", "v3"):
            await self._revise(client, post, owner_id, caption)

        response = await client.get(
            f"/api/posts/{post.id}/revisions", params={"limit": "2"}, headers=auth_headers(owner_id)
        )

        body = response.json()
        assert [r["revision_number"] for r in body["revisions"]] == [3, 2]
        assert body["totalCount"] == 3
        assert body["hasMore"] is True
        assert body["post"]["current_caption"] == "Scheduled caption"

    async def test_bad_paging_values_fall_back_to_defaults(self, client, seed, owner_id):
        mine = await seed.client(owner_id)
        post = await seed.scheduled_post(mine)
        await self._revise(client, post, owner_id, "v1")

        response = await client.get(
            f"/api/posts/{post.id}/revisions",
            params={"limit": "lots", "offset": "-4"},
            headers=auth_headers(owner_id),
        )

        assert response.status_code == 200
        assert len(response.json()["revisions"]) == 1
        assert response.json()["hasMore"] is False

    async def test_empty_caption_is_400(self, client, seed, owner_id):
        mine = await seed.client(owner_id)
        post = await seed.scheduled_post(mine)
        response = await client.post(
            f"/api/posts/{post.id}/revisions",
            json={"previous_caption": "a", "new_caption": ""},
            headers=auth_headers(owner_id),
        )
        assert response.status_code == 400


class TestTags:

    async def test_create_and_duplicate_tag(self, client, seed, owner_id):
        mine = await seed.client(owner_id)
        headers = auth_headers(owner_id)

        created = await client.post(f"/api/clients/{mine.id}/tags", json={"name": "Promo"}, headers=headers)
        duplicate = await client.post(f"/api/clients/{mine.id}/tags", json={"name": " Promo "}, headers=headers)

        assert created.status_code == 201
        assert created.json()["tag"]["color"] == "#3B82F6"
        assert duplicate.status_code == 409
        assert len(await seed.all(Tag)) == 1

    async def test_bad_color_is_400(self, client, seed, owner_id):
        mine = await seed.client(owner_id)
        response = await client.post(
            f"/api/clients/{mine.id}/tags", json={"name": "Promo", "color": "blue"}, headers=auth_headers(owner_id)
        )
        assert response.status_code == 400

    async def test_tag_and_untag_post(self, client, seed, owner_id):
        mine = await seed.client(owner_id)
        post = await seed.scheduled_post(mine)
        tag = await seed.add(Tag(client_id=mine.id, name="Promo"))
        headers = auth_headers(owner_id)

        added = await client.post(f"/api/posts/{post.id}/tags/{tag.id}", headers=headers)
        again = await client.post(f"/api/posts/{post.id}/tags/{tag.id}", headers=headers)
        assert added.json()["message"] == "Tag added"
        assert again.json()["message"] == "Tag already assigned"
        assert len(await seed.all(PostTag)) == 1

        removed = await client.delete(f"/api/posts/{post.id}/tags/{tag.id}", headers=headers)
        missing = await client.delete(f"/api/posts/{post.id}/tags/{tag.id}", headers=headers)
        assert removed.status_code == 200
        assert missing.status_code == 404

    async def test_tag_from_another_client_is_400(self, client, seed, owner_id):
        mine = await seed.client(owner_id)
        second = await seed.client(owner_id, name="Second")
        post = await seed.scheduled_post(mine)
        tag = await seed.add(Tag(client_id=second.id, name="Promo"))

        response = await client.post(f"/api/posts/{post.id}/tags/{tag.id}", headers=auth_headers(owner_id))

        assert response.status_code == 400
        assert await seed.all(PostTag) == []
