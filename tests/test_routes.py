import io
import json
from dataclasses import replace

import pytest
from fastapi.testclient import TestClient
from PIL import Image as PILImage

from app import create_app
from errors import ConfigError
from tests.conftest import ADMIN_PASSWORD, jpeg_bytes, write_image


@pytest.fixture
def gallery(content_root):
    write_image(content_root / "family" / "a.jpg")
    write_image(content_root / "family" / "2023" / "b.jpg")
    write_image(content_root / "familyreunion" / "c.jpg")
    write_image(content_root / "vacation" / "d.jpg")
    return content_root


def random_ids(client: TestClient, n: int = 25, **params) -> list[str]:
    ids = []
    for _ in range(n):
        response = client.get("/api/random-image", params=params)
        assert response.status_code == 200, response.text
        ids.append(response.json()["image"]["id"])
    return ids


class TestAppFactory:
    def test_session_secret_required(self, settings) -> None:
        with pytest.raises(ConfigError):
            create_app(replace(settings, session_secret=None))

    def test_default_folders_created(self, app, content_root) -> None:
        assert (content_root / "family").is_dir()
        assert (content_root / "vacation").is_dir()

    def test_health(self, client: TestClient) -> None:
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestRandomImage:
    def test_no_images(self, client: TestClient) -> None:
        response = client.get("/api/random-image")

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "NO_IMAGES_FOUND"

    def test_payload(self, client: TestClient, content_root) -> None:
        write_image(content_root / "family" / "only.jpg", size=(40, 30))

        response = client.get("/api/images/random")

        assert response.status_code == 200
        image = response.json()["image"]
        assert image["id"] == "family/only.jpg"
        assert image["filename"] == "only.jpg"
        assert image["folder"] == "family"
        assert image["path"] == "/uploads/family/only.jpg"
        assert image["url"].endswith("/uploads/family/only.jpg")
        assert image["metadata"]["dimensions"] == {"width": 40, "height": 30}

    def test_folder_filter(self, client: TestClient, gallery) -> None:
        ids = random_ids(client, folder="family")

        assert set(ids) <= {"family/a.jpg", "family/2023/b.jpg"}

    def test_folder_filter_without_images(self, client: TestClient, gallery) -> None:
        response = client.get("/api/random-image", params={"folder": "weddings"})

        assert response.status_code == 404
        assert response.json()["code"] == "FOLDER_EMPTY"

    def test_served_file_is_reachable(self, client: TestClient, content_root) -> None:
        write_image(content_root / "vacation" / "beach.jpg")
        image = client.get("/api/random-image").json()["image"]

        assert client.get(image["path"]).status_code == 200


class TestPinAuthentication:
    def test_pin_required(self, client: TestClient) -> None:
        response = client.post("/api/auth/pin", json={})

        assert response.status_code == 400
        assert response.json()["code"] == "PIN_REQUIRED"

    def test_restricted_session_only_sees_assigned_folders(
        self, app, make_account, gallery
    ) -> None:
        make_account("Family", "2468", ["family"])
        guest = TestClient(app)

        response = guest.post("/api/auth/pin", json={"pin": "2468"})

        assert response.status_code == 200
        assert response.json()["account"]["assignedFolders"] == ["family"]
        assert guest.get("/api/auth/session").json()["authenticated"] is True
        ids = random_ids(guest, 30)
        assert set(ids) <= {"family/a.jpg", "family/2023/b.jpg"}

    def test_restricted_session_without_matching_images(
        self, app, make_account, gallery
    ) -> None:
        make_account("Weddings", "1357", ["weddings"])
        guest = TestClient(app)
        guest.post("/api/auth/pin", json={"pin": "1357"})

        response = guest.get("/api/random-image")

        assert response.status_code == 403
        assert response.json()["code"] == "ACCESS_RESTRICTED"

    def test_clearing_session_restores_full_access(self, app, make_account, gallery) -> None:
        make_account("Family", "2468", ["family"])
        guest = TestClient(app)
        guest.post("/api/auth/pin", json={"pin": "2468"})

        assert guest.delete("/api/auth/session").json()["success"] is True
        assert guest.get("/api/auth/session").json() == {"authenticated": False}
        assert "vacation/d.jpg" in random_ids(guest, 60)

    def test_failed_attempts_then_lockout(self, client: TestClient) -> None:
        remaining = []
        for _ in range(5):
            response = client.post("/api/auth/pin", json={"pin": "0000"})
            assert response.status_code == 401
            assert response.json()["code"] == "INVALID_PIN"
            remaining.append(response.json()["attemptsRemaining"])

        assert remaining == [4, 3, 2, 1, 0]

        response = client.post("/api/auth/pin", json={"pin": "0000"})
        assert response.status_code == 429
        body = response.json()
        assert body["code"] == "RATE_LIMITED"
        assert body["remainingTime"] == 15

    def test_lockout_applies_to_correct_pin(self, app, make_account) -> None:
        make_account("Family", "2468", ["family"])
        guest = TestClient(app)
        for _ in range(5):
            guest.post("/api/auth/pin", json={"pin": "0000"})

        response = guest.post("/api/auth/pin", json={"pin": "2468"})

        assert response.status_code == 429

    def test_success_resets_failures(self, app, make_account) -> None:
        make_account("Family", "2468", ["family"])
        guest = TestClient(app)
        for _ in range(3):
            guest.post("/api/auth/pin", json={"pin": "0000"})
        guest.post("/api/auth/pin", json={"pin": "2468"})

        response = guest.post("/api/auth/pin", json={"pin": "0000"})

        assert response.json()["attemptsRemaining"] == 4

    def test_last_accessed_recorded(self, app, settings, make_account) -> None:
        make_account("Family", "2468", ["family"])
        TestClient(app).post("/api/auth/pin", json={"pin": "2468"})

        records = json.loads(settings.accounts_file.read_text(encoding="utf-8"))

        assert records[0]["lastAccessed"] is not None


class TestAdminAuth:
    def test_login_json(self, client: TestClient) -> None:
        response = client.post("/api/auth/login", json={"password": ADMIN_PASSWORD})

        assert response.status_code == 200
        assert response.json()["redirect"] == "/admin"
        status = client.get("/api/auth/status").json()
        assert status["authenticated"] is True
        assert status["role"] == "admin"

    def test_login_missing_password(self, client: TestClient) -> None:
        assert client.post("/api/auth/login", json={}).status_code == 400

    def test_login_wrong_password(self, client: TestClient) -> None:
        response = client.post("/api/auth/login", json={"password": "nope"})

        assert response.status_code == 401
        assert client.get("/api/auth/status").json()["authenticated"] is False

    def test_login_form_wrong_password_redirects(self, client: TestClient) -> None:
        response = client.post("/api/auth/login", data={"password": "nope"}, follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == "/login?error=invalid"

    def test_bcrypt_admin_password(self, settings) -> None:
        import bcrypt

        hashed = bcrypt.hashpw(b"hunter22", bcrypt.gensalt()).decode()
        client = TestClient(create_app(replace(settings, admin_password=hashed)))

        assert client.post("/api/auth/login", json={"password": "hunter22"}).status_code == 200

    def test_logout(self, admin_client: TestClient) -> None:
        response = admin_client.post("/api/auth/logout", follow_redirects=False)

        assert response.status_code == 303
        assert admin_client.get("/api/auth/status").json()["authenticated"] is False

    def test_api_requires_auth(self, client: TestClient) -> None:
        response = client.get("/api/access-accounts")

        assert response.status_code == 401
        assert response.json()["code"] == "AUTH_REQUIRED"
        assert response.json()["redirect"] == "/login"

    def test_pages_redirect_to_login(self, client: TestClient) -> None:
        response = client.get("/admin", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "/login"

    def test_expired_session(self, app, admin_client: TestClient) -> None:
        app.state.settings.session_max_age = 0

        api = admin_client.get("/api/access-accounts")
        assert api.status_code == 401
        assert api.json()["code"] == "SESSION_EXPIRED"

    def test_expired_session_page_redirect(self, app, admin_client: TestClient) -> None:
        app.state.settings.session_max_age = 0

        response = admin_client.get("/admin", follow_redirects=False)

        assert response.headers["location"] == "/login?expired=true"

    def test_guest_via_qr_can_upload_but_not_administer(self, client: TestClient, content_root) -> None:
        response = client.get("/qr-upload")
        assert response.status_code == 200
        assert client.get("/api/auth/status").json()["role"] == "invitado"

        assert client.get("/api/access-accounts").status_code == 403
        upload = client.post(
            "/api/upload", files=[("images", ("party.jpg", jpeg_bytes(), "image/jpeg"))]
        )
        assert upload.status_code == 200
        assert upload.json()["files"][0]["path"].startswith("/uploads/evento/")

    def test_slideshow_login(self, client: TestClient) -> None:
        response = client.get("/slideshow-login", follow_redirects=False)

        assert response.headers["location"] == "/slideshow"
        assert client.get("/api/auth/status").json()["role"] == "slideshow"


class TestAccessAccountsApi:
    def test_crud(self, admin_client: TestClient, make_account) -> None:
        account = make_account("Grandma", "1234", ["family"])

        listed = admin_client.get("/api/access-accounts").json()["accounts"]
        assert [a["id"] for a in listed] == [account["id"]]

        response = admin_client.put(
            f"/api/access-accounts/{account['id']}",
            json={"name": "Grandma", "pin": "5678", "assignedFolders": ["vacation"]},
        )
        assert response.status_code == 200
        assert response.json()["account"]["assignedFolders"] == ["vacation"]

        assert admin_client.delete(f"/api/access-accounts/{account['id']}").status_code == 200
        assert admin_client.get("/api/access-accounts").json()["accounts"] == []

    def test_duplicate_pin(self, admin_client: TestClient, make_account) -> None:
        make_account("A", "1234", [])

        response = admin_client.post(
            "/api/access-accounts", json={"name": "B", "pin": "1234", "assignedFolders": []}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "DUPLICATE_PIN"
        assert len(admin_client.get("/api/access-accounts").json()["accounts"]) == 1

    def test_missing_fields(self, admin_client: TestClient) -> None:
        response = admin_client.post("/api/access-accounts", json={"name": "A"})

        assert response.status_code == 400
        assert response.json()["error"] == "Name and PIN are required"

    def test_unknown_account(self, admin_client: TestClient) -> None:
        response = admin_client.delete("/api/access-accounts/acc_missing")

        assert response.status_code == 404
        assert response.json()["code"] == "ACCOUNT_NOT_FOUND"


class TestImageManagement:
    def test_upload_is_visible_immediately(self, admin_client: TestClient, content_root) -> None:
        assert admin_client.get("/api/random-image").status_code == 404

        response = admin_client.post(
            "/api/upload", files=[("images", ("first.png", jpeg_bytes(), "image/png"))]
        )

        assert response.status_code == 200
        stored = response.json()["files"][0]
        assert stored["originalname"] == "first.png"
        assert stored["filename"].endswith(".jpg")
        image = admin_client.get("/api/random-image").json()["image"]
        assert image["path"] == stored["path"]

    def test_admin_upload_to_existing_folder(self, admin_client: TestClient, content_root) -> None:
        response = admin_client.post(
            "/api/upload",
            files=[("images", ("x.jpg", jpeg_bytes(), "image/jpeg"))],
            data={"folder": "vacation"},
        )

        assert response.status_code == 200
        assert response.json()["files"][0]["path"].startswith("/uploads/vacation/")

    def test_upload_rejects_non_images(self, admin_client: TestClient) -> None:
        response = admin_client.post(
            "/api/upload", files=[("images", ("notes.txt", b"hello", "text/plain"))]
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_IMAGE"

    def test_upload_rejects_corrupt_image(self, admin_client: TestClient) -> None:
        response = admin_client.post(
            "/api/upload", files=[("images", ("broken.jpg", b"not really a jpeg", "image/jpeg"))]
        )

        assert response.status_code == 400

    def test_upload_requires_auth(self, client: TestClient) -> None:
        response = client.post(
            "/api/upload", files=[("images", ("x.jpg", jpeg_bytes(), "image/jpeg"))]
        )

        assert response.status_code == 401

    def test_deleted_image_never_selected_again(self, admin_client: TestClient, gallery) -> None:
        random_ids(admin_client, 5)

        response = admin_client.delete("/api/images", params={"path": "/uploads/vacation/d.jpg"})

        assert response.status_code == 200
        assert not (gallery / "vacation" / "d.jpg").exists()
        assert "vacation/d.jpg" not in random_ids(admin_client, 40)

    def test_delete_missing_image(self, admin_client: TestClient) -> None:
        response = admin_client.delete("/api/images", params={"path": "family/none.jpg"})

        assert response.status_code == 404
        assert response.json()["code"] == "IMAGE_NOT_FOUND"

    def test_delete_outside_root(self, admin_client: TestClient, settings) -> None:
        response = admin_client.delete("/api/images", params={"path": "../data/access-accounts.json"})

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_PATH"
        assert settings.accounts_file.exists()

    def test_batch_delete_partial_failure(self, admin_client: TestClient, gallery) -> None:
        response = admin_client.request(
            "DELETE",
            "/api/images/batch",
            json={"paths": ["/uploads/family/a.jpg", "/uploads/family/missing.jpg"]},
        )

        assert response.status_code == 207
        body = response.json()
        assert body["deletedCount"] == 1
        assert body["failedCount"] == 1
        assert not (gallery / "family" / "a.jpg").exists()

    def test_batch_deleted_image_never_selected_again(self, admin_client: TestClient, gallery) -> None:
        random_ids(admin_client, 5)

        response = admin_client.request(
            "DELETE", "/api/images/batch", json={"paths": ["family/a.jpg", "vacation/d.jpg"]}
        )

        assert response.status_code == 200
        assert response.json()["deletedCount"] == 2
        ids = set(random_ids(admin_client, 40))
        assert ids.isdisjoint({"family/a.jpg", "vacation/d.jpg"})

    def test_batch_delete_with_path_outside_root(self, app, admin_client: TestClient, gallery) -> None:
        random_ids(admin_client, 5)
        assert app.state.image_index.is_built

        response = admin_client.request(
            "DELETE",
            "/api/images/batch",
            json={"paths": ["family/a.jpg", "../../etc/passwd.jpg"]},
        )

        assert response.status_code == 207
        body = response.json()
        assert body["deletedCount"] == 1
        assert body["failedCount"] == 1
        assert body["errors"] == ["Failed to delete: ../../etc/passwd.jpg"]
        assert not app.state.image_index.is_built
        assert "family/a.jpg" not in random_ids(admin_client, 40)

    def test_batch_delete_with_nothing_deleted_keeps_index(self, app, admin_client: TestClient, gallery) -> None:
        random_ids(admin_client, 1)

        response = admin_client.request(
            "DELETE", "/api/images/batch", json={"paths": ["family/missing.jpg"]}
        )

        assert response.status_code == 207
        assert app.state.image_index.is_built

    def test_batch_delete_requires_paths(self, admin_client: TestClient) -> None:
        response = admin_client.request("DELETE", "/api/images/batch", json={"paths": []})

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_PATHS"

    def test_rotate(self, admin_client: TestClient, content_root) -> None:
        path = write_image(content_root / "family" / "wide.jpg", size=(40, 20))

        response = admin_client.post(
            "/api/images/rotate", json={"path": "/uploads/family/wide.jpg", "angle": 90}
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Image rotated 90° clockwise successfully"
        with PILImage.open(path) as im:
            assert im.size == (20, 40)

    def test_rotate_invalidates_index(self, app, admin_client: TestClient, gallery) -> None:
        random_ids(admin_client, 1)
        assert app.state.image_index.is_built

        response = admin_client.post(
            "/api/images/rotate", json={"path": "family/a.jpg", "angle": -90}
        )

        assert response.status_code == 200
        assert "counter-clockwise" in response.json()["message"]
        assert not app.state.image_index.is_built

    def test_rotate_unreadable_image(self, admin_client: TestClient, content_root) -> None:
        bad = content_root / "family" / "bad.jpg"
        bad.write_bytes(b"not an image")

        response = admin_client.post(
            "/api/images/rotate", json={"path": "family/bad.jpg", "angle": 90}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_IMAGE"
        assert bad.read_bytes() == b"not an image"

    def test_rotate_invalid_angle(self, admin_client: TestClient, content_root) -> None:
        write_image(content_root / "family" / "wide.jpg")

        response = admin_client.post(
            "/api/images/rotate", json={"path": "family/wide.jpg", "angle": 45}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_ANGLE"

    def test_image_thumbnail(self, client: TestClient, content_root) -> None:
        write_image(content_root / "family" / "big.jpg", size=(640, 480))

        response = client.get("/api/images/family%2Fbig.jpg/thumbnail")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        with PILImage.open(io.BytesIO(response.content)) as im:
            assert im.size == (200, 200)

    def test_image_thumbnail_missing(self, client: TestClient) -> None:
        response = client.get("/api/images/family%2Fnone.jpg/thumbnail")

        assert response.status_code == 404


class TestFolders:
    def test_root_structure(self, client: TestClient, gallery) -> None:
        body = client.get("/api/folders").json()

        assert body["folder"]["name"] == "Root"
        assert body["folder"]["imageCount"] == 4
        subfolders = {f["name"]: f for f in body["subfolders"]}
        assert subfolders["family"]["imageCount"] == 2
        assert subfolders["family"]["hasSubfolders"] is True
        assert subfolders["vacation"]["hasSubfolders"] is False

    def test_nested_structure(self, client: TestClient, gallery) -> None:
        body = client.get("/api/folders/family").json()

        assert body["folder"]["path"] == "family"
        assert body["folder"]["parentPath"] == ""
        assert [c["path"] for c in body["folder"]["breadcrumb"]] == ["", "family"]
        assert [i["id"] for i in body["images"]] == ["family/a.jpg"]
        assert [s["path"] for s in body["subfolders"]] == ["family/2023"]

    def test_unknown_folder(self, client: TestClient) -> None:
        response = client.get("/api/folders/nowhere")

        assert response.status_code == 404
        assert response.json()["code"] == "FOLDER_NOT_FOUND"

    def test_folder_thumbnail(self, client: TestClient, gallery) -> None:
        response = client.get("/api/folders/family/thumbnail")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"

    def test_empty_folder_thumbnail(self, client: TestClient, content_root) -> None:
        (content_root / "empty").mkdir()

        response = client.get("/api/folders/empty/thumbnail")

        assert response.status_code == 404
        assert response.json()["code"] == "THUMBNAIL_NOT_FOUND"

    def test_admin_create_list_delete(self, admin_client: TestClient, content_root) -> None:
        response = admin_client.post("/api/admin/folders", json={"name": "2024", "path": "family"})
        assert response.status_code == 200
        assert (content_root / "family" / "2024").is_dir()

        listing = admin_client.get("/api/admin/folders", params={"path": "family"}).json()
        assert [f["path"] for f in listing["folders"]] == ["family/2024"]

        again = admin_client.post("/api/admin/folders", json={"name": "2024", "path": "family"})
        assert again.json()["code"] == "FOLDER_EXISTS"

        assert admin_client.delete("/api/admin/folders", params={"path": "family/2024"}).status_code == 200
        assert not (content_root / "family" / "2024").exists()

    def test_admin_folder_listing_outside_root(self, admin_client: TestClient) -> None:
        response = admin_client.get("/api/admin/folders", params={"path": "../.."})

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_PATH"

    def test_root_cannot_be_deleted(self, admin_client: TestClient, content_root) -> None:
        response = admin_client.delete("/api/admin/folders", params={"path": ""})

        assert response.status_code == 400
        assert content_root.is_dir()


class TestPages:
    def test_root_redirects_to_slideshow(self, client: TestClient) -> None:
        response = client.get("/", follow_redirects=False)

        assert response.headers["location"] == "/slideshow"

    @pytest.mark.parametrize("path", ["/slideshow", "/folder-selection", "/login"])
    def test_public_pages(self, client: TestClient, path: str) -> None:
        response = client.get(path)

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]

    @pytest.mark.parametrize("path", ["/admin", "/access-accounts", "/upload"])
    def test_admin_pages(self, admin_client: TestClient, path: str) -> None:
        assert admin_client.get(path).status_code == 200

    def test_qr_code_data_url(self, client: TestClient) -> None:
        response = client.get("/api/qr-code")

        assert response.status_code == 200
        assert response.text.startswith("data:image/png;base64,")
