"""
HTTP API tests.

The app runs on in-memory records and the fake Cloudinary-shaped asset
store from conftest.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from memehub.api.app import create_app
from memehub.auth.jwt import create_access_token, create_admin, hash_password
from memehub.config import Settings
from memehub.core.models import AdminRecord
from memehub.storage.base import StorageProvider
from memehub.storage.memory import InMemoryAdminStore, InMemoryRecordStore, LocalAssetStore


PNG = ("cat.png", b"\x89PNG fake", "image/png")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def storage(assets):
    return StorageProvider(
        records=InMemoryRecordStore(),
        admins=InMemoryAdminStore(),
        assets=assets,
    )


@pytest.fixture
def client(storage):
    settings = Settings(sentry_dsn="", mongodb_uri="", cloudinary_cloud_name="")
    app = create_app(settings=settings, storage=storage)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def admin_headers():
    admin = AdminRecord(username="mod", password_hash=hash_password("secret1"))
    token = create_access_token(admin)
    return {"Authorization": f"Bearer {token.access_token}"}


def upload(client, title="Hello", tags="a,b", image=PNG):
    files = {"image": image} if image else None
    return client.post("/api/memes", data={"title": title, "tags": tags}, files=files)


# =============================================================================
# Public endpoints
# =============================================================================


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestUpload:
    def test_upload(self, client, storage):
        response = upload(client)

        assert response.status_code == 201
        body = response.json()
        assert body["title"] == "Hello"
        assert body["tags"] == ["a", "b"]
        assert body["imageUrl"] == storage.assets.url_for(storage.assets.uploads[0])
        assert body["editedByUsers"] == 0
        assert body["isLocked"] is False

    def test_missing_title_uploads_nothing(self, client, storage):
        response = upload(client, title="   ")

        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed"
        assert storage.assets.uploads == []

    def test_missing_image(self, client):
        response = upload(client, image=None)
        assert response.status_code == 400

    def test_unsupported_type(self, client, storage):
        response = upload(client, image=("notes.txt", b"hello", "text/plain"))

        assert response.status_code == 400
        assert storage.assets.uploads == []

    @pytest.mark.parametrize(
        "image",
        [
            ("evil.html", b"<script>alert(1)</script>", "image/png"),
            ("cat.png", b"<script>alert(1)</script>", "text/html"),
            ("cat", b"\x89PNG fake", "image/png"),
        ],
    )
    def test_mismatched_extension_or_type(self, client, storage, image):
        response = upload(client, image=image)

        assert response.status_code == 400
        assert storage.assets.uploads == []

    def test_provider_failure(self, client, storage):
        storage.assets.fail_uploads = True
        response = upload(client)
        assert response.status_code == 502


class TestList:
    def test_search_and_total(self, client):
        upload(client, title="Silly CAT meme")
        upload(client, title="Dog", tags="Cats")
        upload(client, title="Bird", tags="tweet")

        response = client.get("/api/memes", params={"search": "cat"})

        assert response.status_code == 200
        assert {m["title"] for m in response.json()} == {"Silly CAT meme", "Dog"}
        assert response.headers["X-Total-Count"] == "2"

    def test_pagination(self, client):
        for i in range(5):
            upload(client, title=f"meme {i}")

        first = client.get("/api/memes", params={"limit": 2}).json()
        rest = client.get("/api/memes", params={"limit": 10, "offset": 2}).json()

        assert len(first) == 2
        assert len(rest) == 3
        assert not {m["id"] for m in first} & {m["id"] for m in rest}

    def test_bad_limit(self, client):
        response = client.get("/api/memes", params={"limit": 0})
        assert response.status_code == 400

    def test_get_unknown(self, client):
        response = client.get("/api/memes/nope")
        assert response.status_code == 404
        assert response.json()["message"] == "Meme not found"


class TestCommunityEdit:
    def test_edit(self, client):
        meme = upload(client, title="Before").json()

        response = client.post(f"/api/memes/{meme['id']}/edit", json={"title": "After", "tags": "x, y"})

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "After"
        assert body["tags"] == ["x", "y"]
        assert body["editedByUsers"] == 1
        assert body["editHistory"][0]["previousName"] == "Before"

    def test_edit_locked(self, client, admin_headers):
        meme = upload(client).json()
        client.patch(f"/api/memes/{meme['id']}", json={"isLocked": True}, headers=admin_headers)

        response = client.post(f"/api/memes/{meme['id']}/edit", json={"title": "Vandal"})

        assert response.status_code == 423
        assert client.get(f"/api/memes/{meme['id']}").json()["title"] == "Hello"

    def test_empty_title(self, client):
        meme = upload(client).json()
        response = client.post(f"/api/memes/{meme['id']}/edit", json={"title": ""})
        assert response.status_code == 400

    def test_edit_unknown(self, client):
        response = client.post("/api/memes/nope/edit", json={"title": "x"})
        assert response.status_code == 404


# =============================================================================
# Admin endpoints
# =============================================================================


class TestAdminAuth:
    def test_login(self, client, storage):
        asyncio.run(create_admin(storage.admins, "mod", "secret1"))

        response = client.post("/api/admin/login", json={"username": "mod", "password": "secret1"})
        assert response.status_code == 200
        token = response.json()["access_token"]

        status = client.get("/api/admin/status", headers={"Authorization": f"Bearer {token}"})
        assert status.json() == {"isAdmin": True, "username": "mod"}

    def test_bad_password(self, client, storage):
        asyncio.run(create_admin(storage.admins, "mod", "secret1"))
        response = client.post("/api/admin/login", json={"username": "mod", "password": "wrong"})
        assert response.status_code == 401

    def test_status_anonymous(self, client):
        assert client.get("/api/admin/status").json()["isAdmin"] is False

    def test_requires_token(self, client):
        meme = upload(client).json()
        response = client.patch(f"/api/memes/{meme['id']}", json={"isFeatured": True})
        assert response.status_code == 401

    def test_requires_admin_role(self, client):
        user = AdminRecord(username="someone", password_hash="x", role="user")
        token = create_access_token(user).access_token
        meme = upload(client).json()

        response = client.delete(f"/api/memes/{meme['id']}", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 403

    def test_garbage_token(self, client):
        response = client.delete("/api/memes/x", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_tokens_use_app_settings(self, storage, admin_headers):
        settings = Settings(sentry_dsn="", jwt_secret_key="app-specific-secret-for-this-test")
        asyncio.run(create_admin(storage.admins, "mod", "secret1"))

        with TestClient(create_app(settings=settings, storage=storage)) as client:
            meme = upload(client).json()
            login = client.post("/api/admin/login", json={"username": "mod", "password": "secret1"})
            own = {"Authorization": f"Bearer {login.json()['access_token']}"}

            rejected = client.patch(f"/api/memes/{meme['id']}", json={"isFeatured": True}, headers=admin_headers)
            accepted = client.patch(f"/api/memes/{meme['id']}", json={"isFeatured": True}, headers=own)

        assert rejected.status_code == 401
        assert accepted.status_code == 200


class TestModeration:
    def test_feature_and_lock(self, client, admin_headers):
        meme = upload(client).json()

        response = client.patch(
            f"/api/memes/{meme['id']}",
            json={"isLocked": True, "isFeatured": True},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["isLocked"] is True
        assert response.json()["isFeatured"] is True

    def test_empty_update(self, client, admin_headers):
        meme = upload(client).json()
        response = client.patch(f"/api/memes/{meme['id']}", json={}, headers=admin_headers)
        assert response.status_code == 400


class TestRename:
    def test_rename_keeps_tags(self, client, admin_headers):
        meme = upload(client, title="Old", tags="x").json()

        response = client.patch(
            f"/api/memes/{meme['id']}/rename",
            data={"title": "New"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["meme"]["title"] == "New"
        assert body["meme"]["tags"] == ["x"]
        assert body["oldAssetStatus"] is None

    def test_rename_with_new_image(self, client, storage, admin_headers):
        meme = upload(client, title="Old").json()
        old_id = storage.assets.provider_id_for(meme["imageUrl"])

        response = client.patch(
            f"/api/memes/{meme['id']}/rename",
            data={"title": "New", "tags": "dog"},
            files={"image": ("dog.webp", b"RIFF fake", "image/webp")},
            headers=admin_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["meme"]["imageUrl"] == storage.assets.url_for(storage.assets.uploads[-1])
        assert body["meme"]["tags"] == ["dog"]
        assert body["oldAssetStatus"] == "deleted"
        assert storage.assets.deletes == [old_id]

    def test_rename_rejects_unsupported_image(self, client, storage, admin_headers):
        meme = upload(client, title="Old").json()

        response = client.patch(
            f"/api/memes/{meme['id']}/rename",
            data={"title": "New"},
            files={"image": ("evil.html", b"<script>alert(1)</script>", "image/png")},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert len(storage.assets.uploads) == 1
        assert client.get(f"/api/memes/{meme['id']}").json()["title"] == "Old"

    def test_rename_unknown(self, client, storage, admin_headers):
        response = client.patch(
            "/api/memes/nope/rename",
            data={"title": "New"},
            files={"image": PNG},
            headers=admin_headers,
        )
        assert response.status_code == 404
        assert storage.assets.uploads == []


class TestDelete:
    def test_delete(self, client, admin_headers):
        meme = upload(client).json()

        response = client.delete(f"/api/memes/{meme['id']}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {"assetDeleted": True, "recordDeleted": True, "assetStatus": "deleted"}
        assert client.get(f"/api/memes/{meme['id']}").status_code == 404

    def test_delete_with_asset_already_gone(self, client, storage, admin_headers):
        meme = upload(client).json()
        storage.assets.assets.clear()

        response = client.delete(f"/api/memes/{meme['id']}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["recordDeleted"] is True
        assert response.json()["assetStatus"] == "already_gone"

    def test_delete_unknown(self, client, admin_headers):
        response = client.delete("/api/memes/nope", headers=admin_headers)
        assert response.status_code == 404


class TestBulkUpload:
    def test_bulk_upload(self, client, admin_headers):
        files = [
            ("images", ("a.png", b"one", "image/png")),
            ("images", ("b.gif", b"two", "image/gif")),
            ("images", ("c.txt", b"three", "text/plain")),
        ]

        response = client.post("/api/admin/bulk-upload", files=files, headers=admin_headers)

        assert response.status_code == 201
        body = response.json()
        assert len(body["created"]) == 2
        assert all(m["title"] == "Untitled Meme" for m in body["created"])
        assert body["failed"] == [
            {"filename": "c.txt", "error": "Unsupported image type (allowed: jpg, jpeg, png, gif, webp)"}
        ]

    def test_bulk_requires_admin(self, client):
        response = client.post("/api/admin/bulk-upload", files=[("images", PNG)])
        assert response.status_code == 401

    def test_bulk_rejects_mismatched_extension(self, client, storage, admin_headers):
        files = [
            ("images", ("evil.html", b"<script>alert(1)</script>", "image/png")),
            ("images", ("ok.jpg", b"jpeg", "image/jpeg")),
        ]

        response = client.post("/api/admin/bulk-upload", files=files, headers=admin_headers)

        body = response.json()
        assert len(body["created"]) == 1
        assert [f["filename"] for f in body["failed"]] == ["evil.html"]
        assert len(storage.assets.uploads) == 1


class TestLocalUploads:
    def test_html_is_never_stored_or_served(self, tmp_path):
        storage = StorageProvider(
            records=InMemoryRecordStore(),
            admins=InMemoryAdminStore(),
            assets=LocalAssetStore(base_path=str(tmp_path)),
        )
        app = create_app(settings=Settings(sentry_dsn=""), storage=storage)

        with TestClient(app) as client:
            response = upload(client, image=("evil.html", b"<script>alert(1)</script>", "image/png"))

        assert response.status_code == 400
        assert [p for p in tmp_path.rglob("*") if p.is_file()] == []

    def test_image_is_served_back(self, tmp_path):
        storage = StorageProvider(
            records=InMemoryRecordStore(),
            admins=InMemoryAdminStore(),
            assets=LocalAssetStore(base_path=str(tmp_path)),
        )
        app = create_app(settings=Settings(sentry_dsn=""), storage=storage)

        with TestClient(app) as client:
            meme = upload(client).json()
            served = client.get(meme["imageUrl"])

        assert served.status_code == 200
        assert served.headers["content-type"] == "image/png"
        assert served.content == PNG[1]
