"""Filesystem blob store for profile images.

Learn: Images live at <base_dir>/<username>/<username>.<ext>. Storing
again for the same username overwrites the previous file; there is one
profile image per user. Keys are joined with safe_join so a crafted
username or filename can never escape base_dir.
"""

import os
from pathlib import Path

import structlog

from userhub.errors import ImageStoreError

logger = structlog.get_logger()


class PathTraversalError(ImageStoreError):
    """Raised when a key escapes the store's base directory."""


class ImageNotFoundError(ImageStoreError):
    """No image is stored under the requested key."""


def safe_join(base: Path, relative: str) -> Path:
    """Join relative to base while preventing path traversal."""
    base_resolved = base.resolve()
    rel_path = Path(relative)
    if rel_path.is_absolute():
        raise PathTraversalError("absolute paths not allowed")

    candidate = (base_resolved / rel_path).resolve()
    if base_resolved in candidate.parents:
        return candidate

    raise PathTraversalError("path traversal detected")


class ProfileImageStore:
    """store(key, bytes) / read(key) over a base directory."""

    def __init__(self, base_dir: str | Path, extension: str = "jpg"):
        self.base_dir = Path(base_dir).expanduser()
        self.extension = extension.lstrip(".")

    def key_for(self, username: str) -> str:
        """Storage key for a user's profile image."""
        return f"{username}/{self.filename_for(username)}"

    def filename_for(self, username: str) -> str:
        return f"{username}.{self.extension}"

    def store(self, key: str, data: bytes) -> Path:
        """Write data under key, replacing any previous content atomically."""
        path = safe_join(self.base_dir, key)
        tmp = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            os.replace(tmp, path)
        except OSError as e:
            logger.error("image.store_failed", key=key, error=str(e))
            raise ImageStoreError(f"could not store image {key}") from e
        logger.info("image.stored", key=key, size=len(data))
        return path

    def read(self, key: str) -> bytes:
        path = safe_join(self.base_dir, key)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise ImageNotFoundError(f"no image stored for {key}") from e
        except OSError as e:
            logger.error("image.read_failed", key=key, error=str(e))
            raise ImageStoreError(f"could not read image {key}") from e
