"""Tests for the editor image upload and the blob storage client."""

import base64

import httpx
import pytest

from app.core.errors import UpstreamError
from app.services.blob_storage import BlobStorage
from conftest import auth_headers


@pytest.fixture
def stored_blobs(monkeypatch):
    calls = []

    async def _put(self, pathname, data, content_type):
        calls.append((pathname, content_type, data))
        return {"url": f"https://blob.example.com/{pathname}", "pathname": pathname}

    monkeypatch.setattr(BlobStorage, "put", _put)
    return calls


class TestUploadImage:

    async def test_image_is_stored_under_user(self, client, owner_id, stored_blobs):
        encoded = base64.b64encode(b"gif-bytes").decode()
        response = await client.post(
            "/api/upload-image",
            json={"imageData": f"data:image/gif;base64,{encoded}", "filename": "loop.gif"},
            headers=auth_headers(owner_id),
        )

        assert response.status_code == 200
        assert response.json()["filename"] == "loop.gif"
        assert stored_blobs == [(f"uploads/{owner_id}/loop.gif", "image/gif", b"gif-bytes")]

    async def test_non_image_is_400(self, client, owner_id, stored_blobs):
        encoded = base64.b64encode(b"%PDF").decode()
        response = await client.post(
            "/api/upload-image",
            json={"imageData": f"data:application/pdf;base64,{encoded}", "filename": "doc.pdf"},
            headers=auth_headers(owner_id),
        )
        assert response.status_code == 400
        assert stored_blobs == []

    async def test_requires_login(self, client, stored_blobs):
        response = await client.post("/api/upload-image", json={"imageData": "AAAA", "filename": "a.png"})
        assert response.status_code == 401


class TestBlobStorage:

    async def test_put_sends_token_and_type(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["type"] = request.headers["x-content-type"]
            return httpx.Response(200, json={"url": "https://blob.example.com/x-abc.png", "pathname": "x-abc.png"})

        storage = BlobStorage(token="tok", api_url="https://blob.test", transport=httpx.MockTransport(handler))
        stored = await storage.put("x.png", b"data", "image/png")

        assert stored == {"url": "https://blob.example.com/x-abc.png", "pathname": "x-abc.png"}
        assert seen == {"url": "https://blob.test/x.png", "auth": "Bearer tok", "type": "image/png"}

    async def test_rejected_upload_raises(self):
        storage = BlobStorage(
            token="tok",
            api_url="https://blob.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(403, text="forbidden")),
        )
        with pytest.raises(UpstreamError):
            await storage.put("x.png", b"data", "image/png")
