"""Bucket storage for uploaded plan images."""

import asyncio
from pathlib import Path, PurePosixPath
from typing import Final, NamedTuple, Protocol

from plan_analysis.logging import get_logger

logger = get_logger(__name__)

_EXTENSION_CONTENT_TYPES: Final[dict[str, str]] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
}

DEFAULT_CONTENT_TYPE: Final = "application/octet-stream"


class StoredObject(NamedTuple):
    """Bytes of a bucket object and the content type the backend reports for it."""

    data: bytes
    content_type: str


class BucketStore(Protocol):
    """Read access to objects stored under a logical bucket."""

    async def get_by_path(self, bucket: str, path: str) -> StoredObject:
        """Return the object at ``path`` in ``bucket``.

        Raises:
            FileNotFoundError: If no object exists at that path.
        """
        ...


def content_type_for(path: str) -> str:
    """Guess a content type from the object's extension."""
    suffix = PurePosixPath(path.lower()).suffix
    return _EXTENSION_CONTENT_TYPES.get(suffix, DEFAULT_CONTENT_TYPE)


def _safe_relative(path: str) -> PurePosixPath:
    rel = PurePosixPath(path.lstrip("/"))
    if not rel.parts or any(part in ("..", "") for part in rel.parts):
        raise FileNotFoundError(f"Invalid object path: {path!r}")
    return rel


class LocalBucketStore:
    """Directory-backed bucket store: ``<root>/<bucket>/<path>``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def object_path(self, bucket: str, path: str) -> Path:
        """Return where an object lives on disk."""
        return self.root / bucket / _safe_relative(path)

    async def get_by_path(self, bucket: str, path: str) -> StoredObject:
        file_path = self.object_path(bucket, path)
        data = await asyncio.to_thread(_read_file, file_path)
        logger.debug("bucket_object_read", bucket=bucket, path=path, size=len(data))
        return StoredObject(data=data, content_type=content_type_for(path))

    async def put_by_path(self, bucket: str, path: str, data: bytes) -> None:
        """Write an object, creating parent directories as needed."""
        file_path = self.object_path(bucket, path)
        await asyncio.to_thread(_write_file, file_path, data)
        logger.debug("bucket_object_written", bucket=bucket, path=path, size=len(data))


def _read_file(path: Path) -> bytes:
    if not path.is_file():
        raise FileNotFoundError(str(path))
    return path.read_bytes()


def _write_file(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
