import uuid
from pathlib import Path

from ..config import settings
from ..domain.errors import UploadError, UploadErrorKind

IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


def store_image(payload: bytes, content_type: str | None, folder: str) -> str:
    """Write an uploaded image under UPLOAD_PATH and return its public path."""
    if content_type not in IMAGE_TYPES:
        raise UploadError(UploadErrorKind.UNSUPPORTED_TYPE, f"unsupported content type {content_type!r}")
    if len(payload) > settings.MAX_FILE_SIZE:
        raise UploadError(UploadErrorKind.FILE_TOO_LARGE, f"{len(payload)} bytes exceeds {settings.MAX_FILE_SIZE}")

    target_dir = Path(settings.UPLOAD_PATH) / folder
    target_dir.mkdir(parents=True, exist_ok=True)
    name = f"{uuid.uuid4().hex}{IMAGE_TYPES[content_type]}"
    (target_dir / name).write_bytes(payload)
    return f"/uploads/{folder}/{name}"
