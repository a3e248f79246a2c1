"""Media storage for user-uploaded images (avatars).

Files are written under MEDIA_DIR and referenced by URL path
(`{MEDIA_URL_PREFIX}/{folder}/{uuid}{ext}`), which main.py serves statically.
"""

import base64
import binascii
import logging
import os
import re
import uuid
from pathlib import Path

from app.config import get_settings

logger = logging.getLogger("learnhub.media")

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)

# Extension by detected image type
IMAGE_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


def sniff_image_type(data: bytes) -> str | None:
    """Detect an image MIME type from magic bytes."""
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


class MediaService:
    """Stores and deletes media files on local disk."""

    def __init__(self, root: str | Path | None = None, url_prefix: str | None = None) -> None:
        settings = get_settings()
        self.root = Path(root if root is not None else settings.MEDIA_DIR)
        self.url_prefix = (url_prefix if url_prefix is not None else settings.MEDIA_URL_PREFIX).rstrip("/")
        self.max_bytes = settings.MAX_AVATAR_SIZE_MB * 1024 * 1024

    def decode_payload(self, payload: str) -> tuple[bytes, str]:
        """Decode a data URI or bare base64 image. Returns (bytes, mime_type).

        Raises ValueError if the payload is not a supported image or is too large.
        """
        declared = None
        match = _DATA_URI_RE.match(payload.strip())
        encoded = payload.strip()
        if match:
            declared = match.group("mime").lower()
            encoded = match.group("data")
        # Accept line-wrapped (MIME-style) base64
        encoded = "".join(encoded.split())

        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("Avatar must be a base64-encoded image") from None

        if not data:
            raise ValueError("Avatar image is empty")
        if len(data) > self.max_bytes:
            raise ValueError(f"Avatar too large. Maximum: {self.max_bytes // (1024 * 1024)}MB")

        mime_type = sniff_image_type(data)
        if mime_type is None:
            raise ValueError(f"Unsupported image type. Allowed: {', '.join(sorted(IMAGE_TYPES))}")
        if declared and declared != mime_type:
            raise ValueError(f"Declared type '{declared}' does not match image content")
        return data, mime_type

    def upload(self, payload: str, folder: str) -> str:
        """Store an image payload in a folder. Returns its canonical reference."""
        data, mime_type = self.decode_payload(payload)
        stored_filename = f"{uuid.uuid4()}{IMAGE_TYPES[mime_type]}"
        target_dir = self.root / folder
        target_dir.mkdir(parents=True, exist_ok=True)

        with open(target_dir / stored_filename, "wb") as f:
            f.write(data)

        reference = f"{self.url_prefix}/{folder}/{stored_filename}"
        logger.info("Stored media %s (%d bytes)", reference, len(data))
        return reference

    def delete(self, reference: str) -> None:
        """Delete a stored file by reference. Unknown references are ignored."""
        file_path = self._path_for(reference)
        if file_path is None:
            logger.warning("Refusing to delete media outside store: %s", reference)
            return
        if file_path.exists():
            os.remove(file_path)
            logger.info("Deleted media %s", reference)

    def _path_for(self, reference: str) -> Path | None:
        prefix = f"{self.url_prefix}/"
        if not reference.startswith(prefix):
            return None
        root = self.root.resolve()
        file_path = (root / reference[len(prefix) :]).resolve()
        if root not in file_path.parents:
            return None
        return file_path


_media_service: MediaService | None = None


def get_media_service() -> MediaService:
    """Get singleton media service instance."""
    global _media_service
    if _media_service is None:
        _media_service = MediaService()
    return _media_service
