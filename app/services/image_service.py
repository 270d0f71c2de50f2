import os
import random
import time
from pathlib import Path
from typing import Optional
import aiofiles
import aiofiles.os
from fastapi import Request, UploadFile
from app.core.config import Settings
from app.core.exceptions import InvalidImageError
import structlog

logger = structlog.get_logger()

UPLOADS_PREFIX = "/uploads/"
ABSOLUTE_URL_PREFIXES = ("http://", "https://")


def build_image_url(image_url: Optional[str], scheme: str, host: str) -> Optional[str]:
    """Turn a stored image reference into something a browser can load.

    Absolute URLs pass through untouched, upload paths are prefixed with the
    caller's scheme and host, and a missing reference stays missing.
    """
    if not image_url:
        return None

    if image_url.startswith(ABSOLUTE_URL_PREFIXES):
        return image_url

    if image_url.startswith(UPLOADS_PREFIX):
        return f"{scheme}://{host}{image_url}"

    return image_url


def request_image_url(image_url: Optional[str], request: Request) -> Optional[str]:
    host = request.headers.get("host") or request.url.netloc
    return build_image_url(image_url, request.url.scheme, host)


def resolve_image_reference(
    uploaded_path: Optional[str],
    supplied_url: Optional[str],
    existing: Optional[str] = None,
) -> Optional[str]:
    """Pick the image reference to store: upload, then supplied URL, then existing."""
    if uploaded_path:
        return uploaded_path
    if supplied_url and supplied_url.strip():
        return supplied_url.strip()
    return existing


class ImageStorage:
    """Stores uploaded product images on local disk under the uploads prefix."""

    def __init__(self, settings: Settings):
        self.upload_dir = Path(settings.upload_dir)
        self.max_size = settings.max_upload_size
        self.allowed_types = {t.lower() for t in settings.allowed_image_types}

    def ensure_directory(self):
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def validate(self, filename: str, content_type: Optional[str]) -> str:
        """Check extension and MIME type, returning the lower-cased extension."""
        ext = os.path.splitext(filename or "")[1].lower()
        mime_subtype = (content_type or "").split("/")[-1].lower()
        if ext.lstrip(".") not in self.allowed_types or mime_subtype not in self.allowed_types:
            raise InvalidImageError("Images only!", filename=filename, content_type=content_type)
        return ext

    @staticmethod
    def generate_filename(ext: str) -> str:
        suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
        return f"{suffix}{ext}"

    async def save(self, upload: UploadFile) -> str:
        """Persist an upload and return its relative reference, e.g. /uploads/1700-42.png"""
        ext = self.validate(upload.filename, upload.content_type)

        # Read at most one byte past the limit
        content = await upload.read(self.max_size + 1)
        if len(content) > self.max_size:
            raise InvalidImageError("File too large", filename=upload.filename)

        self.ensure_directory()
        filename = self.generate_filename(ext)
        async with aiofiles.open(self.upload_dir / filename, "wb") as f:
            await f.write(content)

        logger.info("Stored product image", filename=filename, size=len(content))
        return f"{UPLOADS_PREFIX}{filename}"

    async def discard(self, image_ref: Optional[str]):
        """Remove a stored upload that ended up unused."""
        if not image_ref or not image_ref.startswith(UPLOADS_PREFIX):
            return
        path = self.upload_dir / image_ref[len(UPLOADS_PREFIX):]
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            logger.warning("Unused product image already removed", image=image_ref)
