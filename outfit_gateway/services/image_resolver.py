"""Image resolution service for the AI request gateway.

This service turns image references into the representation a provider
accepts:
- Raw bytes (for APIs that take inline image bytes)
- Base64 inline data URLs (for chat-style APIs)
- URL pass-through (remote URLs unchanged, local images as absolute paths
  for providers that read files themselves)

Local references are resolved against the storage root with a traversal
guard. Remote references are fetched over HTTP. Nothing is cached or
modified between calls.
"""

import asyncio
import base64
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import List, Optional, Sequence, Union
from urllib.parse import urlsplit
import httpx

from outfit_gateway.core.errors import ImageUnavailable
from outfit_gateway.core.logging import get_logger
from outfit_gateway.models.domain.messages import LocalImage, RemoteImage
from outfit_gateway.utils.storage import StoragePathError, StorageRoot

logger = get_logger(__name__)

# Extension-based media types. This is a heuristic, not content sniffing:
# a mislabeled file is sent with the wrong type.
MEDIA_TYPES = {
    '.png': 'image/png',
    '.webp': 'image/webp',
    '.gif': 'image/gif',
}
DEFAULT_MEDIA_TYPE = 'image/jpeg'


class ImageRepresentation(str, Enum):
    """Target representation for a resolved image."""
    RAW_BYTES = "raw_bytes"
    BASE64_INLINE = "base64_inline"
    URL_PASSTHROUGH = "url_passthrough"


@dataclass(frozen=True)
class ResolvedImage:
    """An image in the representation a provider asked for."""
    media_type: str
    data: Optional[bytes] = None
    base64_data: Optional[str] = None
    url: Optional[str] = None

    @property
    def data_url(self) -> str:
        if self.base64_data is None:
            raise ValueError("Image was not resolved as base64")
        return f"data:{self.media_type};base64,{self.base64_data}"


def guess_media_type(name: str) -> str:
    """Infer the media type from the file extension of a path or URL."""
    suffix = PurePosixPath(urlsplit(name).path).suffix.lower()
    return MEDIA_TYPES.get(suffix, DEFAULT_MEDIA_TYPE)


def _redact_url(url: str) -> str:
    """Drop query and fragment, which may carry signed tokens."""
    return urlsplit(url)._replace(query="", fragment="").geturl()


class ImageResolver:
    """Resolve ``LocalImage``/``RemoteImage`` references."""

    def __init__(
        self,
        storage: StorageRoot,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.storage = storage
        self.timeout = timeout
        self._transport = transport

    async def resolve(
        self,
        reference: Union[LocalImage, RemoteImage],
        representation: ImageRepresentation
    ) -> ResolvedImage:
        """Produce ``representation`` for ``reference``.

        Raises:
            ImageUnavailable: If the image cannot be located or fetched
        """
        if isinstance(reference, LocalImage):
            return await self._resolve_local(reference, representation)
        if isinstance(reference, RemoteImage):
            return await self._resolve_remote(reference, representation)
        raise ImageUnavailable(f"Unknown image reference type: {type(reference).__name__}")

    async def resolve_many(
        self,
        references: Sequence[Union[LocalImage, RemoteImage]],
        representation: ImageRepresentation
    ) -> List[ResolvedImage]:
        """Resolve several references concurrently, preserving order."""
        return list(await asyncio.gather(
            *(self.resolve(reference, representation) for reference in references)
        ))

    def local_path(self, reference: LocalImage) -> Path:
        """Absolute path for a local reference, guarded against traversal."""
        try:
            return self.storage.join(reference.path)
        except StoragePathError as e:
            logger.warning("Rejected image path outside storage root", path=reference.path)
            raise ImageUnavailable(f"Image path is outside the storage root: {reference.path}") from e

    async def _resolve_local(
        self,
        reference: LocalImage,
        representation: ImageRepresentation
    ) -> ResolvedImage:
        path = self.local_path(reference)
        media_type = guess_media_type(reference.path)

        if representation == ImageRepresentation.URL_PASSTHROUGH:
            if not await asyncio.to_thread(path.is_file):
                raise ImageUnavailable(f"Image not found: {reference.path}")
            return ResolvedImage(media_type=media_type, url=str(path))

        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            logger.error("Failed to read local image", error=e, path=reference.path)
            raise ImageUnavailable(f"Image could not be read: {reference.path}") from e

        logger.debug("Resolved local image", path=reference.path, size=len(data))
        return self._encode(data, media_type, representation)

    async def _resolve_remote(
        self,
        reference: RemoteImage,
        representation: ImageRepresentation
    ) -> ResolvedImage:
        media_type = guess_media_type(reference.url)

        if representation == ImageRepresentation.URL_PASSTHROUGH:
            return ResolvedImage(media_type=media_type, url=reference.url)

        data = await self._fetch_remote(reference.url)
        return self._encode(data, media_type, representation)

    async def _fetch_remote(self, url: str) -> bytes:
        safe_url = _redact_url(url)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.error("Image download failed", error=e, url=safe_url)
            raise ImageUnavailable(f"Image download failed: {safe_url}") from e

        if not response.is_success:
            logger.warning(
                "Image download returned non-success status",
                url=safe_url,
                status_code=response.status_code
            )
            raise ImageUnavailable(
                f"Image download failed with status {response.status_code}: {safe_url}",
                status=response.status_code
            )

        return response.content

    @staticmethod
    def _encode(
        data: bytes,
        media_type: str,
        representation: ImageRepresentation
    ) -> ResolvedImage:
        if representation == ImageRepresentation.BASE64_INLINE:
            return ResolvedImage(
                media_type=media_type,
                base64_data=base64.b64encode(data).decode()
            )
        return ResolvedImage(media_type=media_type, data=data)
