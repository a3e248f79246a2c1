"""Tests for local media storage."""

import base64

import pytest

from app.services.media import MediaService

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 32


@pytest.fixture(name="media")
def media_fixture(tmp_path):
    return MediaService(root=tmp_path, url_prefix="/media")


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


class TestUpload:
    def test_data_uri_upload(self, media: MediaService, tmp_path):
        ref = media.upload("data:image/png;base64," + _b64(PNG), "avatars")
        assert ref.startswith("/media/avatars/")
        assert ref.endswith(".png")
        assert (tmp_path / ref.removeprefix("/media/")).read_bytes() == PNG

    def test_bare_base64_upload(self, media: MediaService):
        ref = media.upload(_b64(JPEG), "avatars")
        assert ref.endswith(".jpg")

    def test_line_wrapped_base64_upload(self, media: MediaService, tmp_path):
        image = PNG + b"\x01" * 300
        payload = "data:image/png;base64," + base64.encodebytes(image).decode()
        ref = media.upload(payload, "avatars")
        assert (tmp_path / ref.removeprefix("/media/")).read_bytes() == image

    def test_rejects_non_image(self, media: MediaService):
        with pytest.raises(ValueError, match="Unsupported image type"):
            media.upload(_b64(b"%PDF-1.7 not an image"), "avatars")

    def test_rejects_invalid_base64(self, media: MediaService):
        with pytest.raises(ValueError, match="base64"):
            media.upload("this is not base64!!", "avatars")

    def test_rejects_mismatched_declared_type(self, media: MediaService):
        with pytest.raises(ValueError, match="does not match"):
            media.upload("data:image/jpeg;base64," + _b64(PNG), "avatars")

    def test_rejects_oversized(self, media: MediaService):
        media.max_bytes = 16
        with pytest.raises(ValueError, match="too large"):
            media.upload(_b64(PNG), "avatars")


class TestDelete:
    def test_delete_removes_file(self, media: MediaService, tmp_path):
        ref = media.upload(_b64(PNG), "avatars")
        path = tmp_path / ref.removeprefix("/media/")
        assert path.exists()

        media.delete(ref)
        assert not path.exists()

    def test_delete_missing_file_is_noop(self, media: MediaService):
        media.delete("/media/avatars/does-not-exist.png")

    def test_delete_ignores_paths_outside_store(self, media: MediaService, tmp_path):
        outside = tmp_path.parent / "keep-me.txt"
        outside.write_text("x")
        media.delete("/media/../keep-me.txt")
        media.delete("default-avatar.png")
        assert outside.exists()
