from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from PIL import Image as PILImage

from app import create_app
from config import Settings

ADMIN_PASSWORD = "test-admin-password"


def write_image(path: Path, size: tuple[int, int] = (32, 32), color: str = "red") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    fmt = "PNG" if path.suffix.lower() == ".png" else "JPEG"
    PILImage.new("RGB", size, color).save(path, format=fmt)
    return path


def jpeg_bytes(size: tuple[int, int] = (32, 32), color: str = "blue") -> bytes:
    import io

    buf = io.BytesIO()
    PILImage.new("RGB", size, color).save(buf, format="JPEG")
    return buf.getvalue()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        session_secret="test-session-secret",
        admin_password=ADMIN_PASSWORD,
        admin_password_from_env=True,
        upload_dir=tmp_path / "uploads",
        data_dir=tmp_path / "data",
        default_folders=("family", "vacation"),
        upload_folder="evento",
        log_to_file=False,
    )


@pytest.fixture
def content_root(settings: Settings) -> Path:
    return settings.upload_dir


@pytest.fixture
def app(settings: Settings):
    return create_app(settings)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def admin_client(app) -> TestClient:
    client = TestClient(app)
    response = client.post("/api/auth/login", json={"password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return client


@pytest.fixture
def make_account(admin_client: TestClient):
    def _make(name: str, pin: str, folders: list[str]) -> dict[str, Any]:
        response = admin_client.post(
            "/api/access-accounts",
            json={"name": name, "pin": pin, "assignedFolders": folders},
        )
        assert response.status_code == 201, response.text
        return response.json()["account"]

    return _make
