"""Plan image acquisition: bucket storage first, public URL as fallback."""

from urllib.parse import unquote, urljoin, urlparse

import httpx

from plan_analysis.errors import AcquisitionError, PathResolutionError
from plan_analysis.logging import get_logger
from plan_analysis.models import ImageAsset
from plan_analysis.utils.bucket_store import BucketStore

logger = get_logger(__name__)

DEFAULT_IMAGE_MIME = "image/jpeg"


def resolve_bucket_path(image_ref: str, bucket: str) -> str:
    """Map an image reference to a path inside ``bucket``.

    Accepts public storage URLs (``https://host/storage/v1/object/public/<bucket>/a/b.jpg``)
    and bare references (``<bucket>/a/b.jpg``).

    Raises:
        PathResolutionError: If the reference has no ``<bucket>/`` segment or
            the remaining path is empty or escapes the bucket.
    """
    path = urlparse(image_ref).path
    if not path.startswith("/"):
        path = "/" + path

    marker = f"/{bucket}/"
    _, found, remainder = path.partition(marker)
    if not found:
        raise PathResolutionError(f"Reference is not inside bucket '{bucket}': {image_ref}")

    object_path = unquote(remainder).strip("/")
    if not object_path:
        raise PathResolutionError(f"Reference has no object path: {image_ref}")
    if ".." in object_path.split("/"):
        raise PathResolutionError(f"Reference escapes bucket '{bucket}': {image_ref}")
    return object_path


class ImageAcquirer:
    """Resolves an image reference to bytes and a MIME type."""

    def __init__(
        self,
        bucket_store: BucketStore,
        *,
        bucket: str,
        public_base_url: str = "",
        timeout: float = 30.0,
        max_bytes: int = 20 * 1024 * 1024,
    ) -> None:
        """Initialize the acquirer.

        Args:
            bucket_store: Storage backend holding uploaded plans.
            bucket: Logical bucket plan references point into.
            public_base_url: Prefix for fetching relative references over HTTP.
            timeout: HTTP timeout for the public fetch, in seconds.
            max_bytes: Largest body accepted from the public fetch.
        """
        self._bucket_store = bucket_store
        self._bucket = bucket
        self._public_base_url = public_base_url
        self._timeout = timeout
        self._max_bytes = max_bytes
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                headers={"Accept": "image/webp,image/apng,image/*,*/*;q=0.8"},
            )
        return self._client

    async def acquire(self, image_ref: str) -> ImageAsset:
        """Fetch the plan image.

        Raises:
            AcquisitionError: If both the bucket read and the public fetch fail.
        """
        try:
            return await self._from_bucket(image_ref)
        except Exception as e:
            logger.warning(
                "bucket_read_failed_using_public_fetch",
                image_ref=image_ref,
                error=str(e),
                error_type=type(e).__name__,
            )

        return await self._from_public_url(image_ref)

    async def _from_bucket(self, image_ref: str) -> ImageAsset:
        path = resolve_bucket_path(image_ref, self._bucket)
        stored = await self._bucket_store.get_by_path(self._bucket, path)
        if not stored.data:
            raise AcquisitionError(f"Bucket object is empty: {path}")

        mime_type = _base_content_type(stored.content_type)
        if not mime_type.startswith("image/"):
            # The bucket is trusted, only its reported type is not
            mime_type = DEFAULT_IMAGE_MIME

        logger.info(
            "plan_image_acquired",
            source="bucket",
            path=path,
            size=len(stored.data),
            mime_type=mime_type,
        )
        return ImageAsset(data=stored.data, mime_type=mime_type, source="bucket")

    def _public_url(self, image_ref: str) -> str:
        if urlparse(image_ref).scheme in ("http", "https"):
            return image_ref
        if self._public_base_url:
            return urljoin(self._public_base_url.rstrip("/") + "/", image_ref.lstrip("/"))
        raise AcquisitionError(f"Reference is not a fetchable URL: {image_ref}")

    async def _from_public_url(self, image_ref: str) -> ImageAsset:
        url = self._public_url(image_ref)
        try:
            client = await self._get_client()
            async with client.stream("GET", url) as response:
                content_type = self._check_response(response, url)
                data = await self._read_limited(response, url)
        except httpx.HTTPError as e:
            raise AcquisitionError(f"Image fetch failed for {url}: {e}") from e

        if not data:
            raise AcquisitionError(f"Image fetch returned an empty body: {url}")

        logger.info(
            "plan_image_acquired",
            source="public_url",
            url=url,
            size=len(data),
            mime_type=content_type,
        )
        return ImageAsset(data=data, mime_type=content_type, source="public_url")

    def _check_response(self, response: httpx.Response, url: str) -> str:
        """Reject a response from its headers alone. Returns the image MIME type."""
        if not response.is_success:
            raise AcquisitionError(f"Image fetch returned HTTP {response.status_code}: {url}")

        content_type = _base_content_type(response.headers.get("content-type", ""))
        if not content_type.startswith("image/"):
            raise AcquisitionError(f"Invalid image content type {content_type!r}: {url}")

        declared = response.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self._max_bytes:
            raise AcquisitionError(
                f"Image is {declared} bytes, limit is {self._max_bytes}: {url}"
            )
        return content_type

    async def _read_limited(self, response: httpx.Response, url: str) -> bytes:
        """Read the body, stopping as soon as it passes ``max_bytes``."""
        chunks: list[bytes] = []
        size = 0
        async for chunk in response.aiter_bytes():
            size += len(chunk)
            if size > self._max_bytes:
                raise AcquisitionError(
                    f"Image is at least {size} bytes, limit is {self._max_bytes}: {url}"
                )
            chunks.append(chunk)
        return b"".join(chunks)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None


def _base_content_type(value: str) -> str:
    """Strip parameters: ``image/png; charset=binary`` -> ``image/png``."""
    return value.split(";")[0].strip().lower()
