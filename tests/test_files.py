"""Tests for profile image storage and serving."""

import base64

from fastapi.testclient import TestClient

from app.services.file import FileService, get_file_service


class TestFileService:
    """Tests for image validation and storage."""

    def test_create_folders(self, tmp_path, monkeypatch):
        from app.config import get_settings

        monkeypatch.setattr(get_settings(), "UPLOAD_DIR", str(tmp_path / "uploads"))
        service = FileService()
        service.create_folders()
        assert (tmp_path / "uploads" / "profile").is_dir()

    def test_validate_png_and_jpeg(self, image_base64):
        service = FileService()
        assert service.validate_image(image_base64("PNG")) is None
        assert service.validate_image(image_base64("JPEG")) is None

    def test_validate_rejects_gif(self, image_base64):
        assert FileService().validate_image(image_base64("GIF")) == "Only JPEG or PNG files are allowed"

    def test_validate_rejects_text(self):
        text = base64.b64encode(b"hello world").decode("ascii")
        assert FileService().validate_image(text) == "Only JPEG or PNG files are allowed"

    def test_validate_rejects_oversized(self, monkeypatch, image_base64):
        from app.config import get_settings

        monkeypatch.setattr(get_settings(), "MAX_IMAGE_SIZE_BYTES", 10)
        assert FileService().validate_image(image_base64()) == "Your profile image cannot be bigger than 2MB"

    def test_save_and_delete(self, image_base64):
        service = FileService()
        image = image_base64()
        file_name = service.save_profile_image(image)
        path = service.profile_folder() / file_name

        assert len(file_name) == 32
        assert path.read_bytes() == base64.b64decode(image)

        service.delete_profile_image(file_name)
        assert not path.exists()

    def test_delete_missing_file_is_ignored(self):
        FileService().delete_profile_image("does-not-exist")


class TestImageServing:
    """Tests for GET /images/{file}."""

    def test_missing_image(self, client: TestClient):
        response = client.get("/images/does-not-exist")
        assert response.status_code == 404

    def test_image_served_with_long_cache(self, client: TestClient, image_base64):
        image = image_base64("PNG")
        file_name = get_file_service().save_profile_image(image)

        response = client.get(f"/images/{file_name}")
        assert response.status_code == 200
        assert response.content == base64.b64decode(image)
        assert "max-age=31536000" in response.headers["Cache-Control"]
