"""Storage of recipe images discovered during URL imports."""

import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse

from recipebox.config import Settings, get_settings
from recipebox.errors import FetchError
from recipebox.services.html_fetcher import SecureHtmlFetcher

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/avif": "avif",
}

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
MAX_FILENAME_STEM = 60


@dataclass
class StoredImage:
    """Where a stored image can be fetched from and where it lives."""

    url: str
    path: str


class ImageStorage(Protocol):
    """Object storage for image bytes."""

    def store(self, data: bytes, filename: str, owner_id: int) -> StoredImage: ...


def sanitize_filename(filename: str) -> str:
    """Reduce a filename to safe characters, keeping its extension."""
    name = Path(filename).name
    stem, dot, extension = name.rpartition(".")
    if not dot:
        stem, extension = name, ""
    stem = _UNSAFE_FILENAME_CHARS.sub("-", stem).strip("-.")[:MAX_FILENAME_STEM] or "image"
    extension = _UNSAFE_FILENAME_CHARS.sub("", extension).lower()
    return f"{stem}.{extension}" if extension else stem


class LocalImageStorage:
    """Store images on the local filesystem, one directory per user."""

    def __init__(self, settings: Settings | None = None, base_dir: str | Path | None = None):
        self.settings = settings or get_settings()
        self.base_dir = Path(base_dir or self.settings.image_storage_dir)
        self.public_base_url = self.settings.image_public_base_url.rstrip("/")

    def store(self, data: bytes, filename: str, owner_id: int) -> StoredImage:
        """Write bytes under a unique name and return its URL and path."""
        safe_name = f"{uuid.uuid4().hex[:12]}-{sanitize_filename(filename)}"
        relative = Path(str(owner_id)) / safe_name
        target = self.base_dir / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info(f"Stored image {relative} ({len(data)} bytes)")
        return StoredImage(url=f"{self.public_base_url}/{relative.as_posix()}", path=relative.as_posix())


class ImageDownloader:
    """Download a recipe's image and keep a copy.

    Failures are logged and reported as None: the recipe data is already
    captured, so a missing picture never fails an import.
    """

    def __init__(self, fetcher: SecureHtmlFetcher, storage: ImageStorage, settings: Settings | None = None):
        self.fetcher = fetcher
        self.storage = storage
        self.settings = settings or get_settings()

    async def download_and_store(self, url: str, owner_id: int) -> StoredImage | None:
        """Fetch ``url`` (images only, size-capped) and store it for ``owner_id``."""
        try:
            resource = await self.fetcher.fetch_resource(
                url,
                type_prefix="image/",
                max_bytes=self.settings.max_image_base64_bytes,
            )
        except FetchError as e:
            logger.warning(f"Could not download recipe image {url}: {e.code} {e.message}")
            return None

        extension = IMAGE_EXTENSIONS.get(resource.content_type, "jpg")
        stem = Path(urlparse(resource.url).path).stem or "recipe"
        try:
            return self.storage.store(resource.content, f"{stem}.{extension}", owner_id)
        except OSError as e:
            logger.warning(f"Could not store recipe image {url}: {e}")
            return None
