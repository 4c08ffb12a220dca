"""Tests for image resolution across local and remote references."""

import base64
from pathlib import Path

import httpx
import pytest

from conftest import JPEG_BYTES, PNG_BYTES
from outfit_gateway.core.errors import ImageUnavailable
from outfit_gateway.models.domain.messages import LocalImage, RemoteImage
from outfit_gateway.services.image_resolver import (
    ImageRepresentation,
    ImageResolver,
    ResolvedImage,
    guess_media_type,
)


@pytest.mark.parametrize("name, media_type", [
    ("outfit.jpg", "image/jpeg"),
    ("outfit.jpeg", "image/jpeg"),
    ("OUTFIT.PNG", "image/png"),
    ("look.webp", "image/webp"),
    ("spin.gif", "image/gif"),
    ("no_extension", "image/jpeg"),
    ("https://cdn.example.com/a/b.png?sig=abc", "image/png"),
])
def test_guess_media_type(name, media_type):
    assert guess_media_type(name) == media_type


def recording_transport(calls, status_code=200, content=JPEG_BYTES):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(status_code, content=content)
    return httpx.MockTransport(handler)


async def test_local_base64(storage):
    resolver = ImageResolver(storage)

    resolved = await resolver.resolve(LocalImage(path="users/42/outfit.jpg"), ImageRepresentation.BASE64_INLINE)

    assert resolved.media_type == "image/jpeg"
    assert resolved.base64_data == base64.b64encode(JPEG_BYTES).decode()
    assert resolved.data_url == "data:image/jpeg;base64," + base64.b64encode(JPEG_BYTES).decode()
    assert resolved.data is None


async def test_local_raw_bytes(storage):
    resolver = ImageResolver(storage)

    resolved = await resolver.resolve(LocalImage(path="users/42/palette.png"), ImageRepresentation.RAW_BYTES)

    assert resolved == ResolvedImage(media_type="image/png", data=PNG_BYTES)


async def test_local_passthrough_is_absolute_path(storage):
    resolver = ImageResolver(storage)

    resolved = await resolver.resolve(LocalImage(path="users/42/outfit.jpg"), ImageRepresentation.URL_PASSTHROUGH)

    assert resolved.url == str(storage.root / "users" / "42" / "outfit.jpg")
    assert Path(resolved.url).is_absolute()


@pytest.mark.parametrize("representation", list(ImageRepresentation))
async def test_local_missing_file(storage, representation):
    resolver = ImageResolver(storage)

    with pytest.raises(ImageUnavailable):
        await resolver.resolve(LocalImage(path="users/42/missing.jpg"), representation)


async def test_local_traversal_never_reads(storage, mocker):
    read_bytes = mocker.patch.object(Path, "read_bytes")
    resolver = ImageResolver(storage)

    with pytest.raises(ImageUnavailable, match="outside the storage root"):
        await resolver.resolve(LocalImage(path="../secret.txt"), ImageRepresentation.RAW_BYTES)

    read_bytes.assert_not_called()


async def test_remote_fetch(storage):
    calls = []
    resolver = ImageResolver(storage, transport=recording_transport(calls, content=PNG_BYTES))

    resolved = await resolver.resolve(
        RemoteImage(url="https://images.example.com/look.png"),
        ImageRepresentation.BASE64_INLINE
    )

    assert len(calls) == 1
    assert resolved.media_type == "image/png"
    assert resolved.base64_data == base64.b64encode(PNG_BYTES).decode()


async def test_remote_passthrough_does_no_io(storage):
    calls = []
    resolver = ImageResolver(storage, transport=recording_transport(calls))

    resolved = await resolver.resolve(
        RemoteImage(url="https://images.example.com/look.jpg"),
        ImageRepresentation.URL_PASSTHROUGH
    )

    assert resolved.url == "https://images.example.com/look.jpg"
    assert calls == []


async def test_remote_error_status_is_kept(storage):
    resolver = ImageResolver(storage, transport=recording_transport([], status_code=404))

    with pytest.raises(ImageUnavailable) as exc_info:
        await resolver.resolve(RemoteImage(url="https://images.example.com/gone.jpg"), ImageRepresentation.RAW_BYTES)

    assert exc_info.value.status == 404


async def test_remote_error_message_drops_query(storage):
    resolver = ImageResolver(storage, transport=recording_transport([], status_code=403))

    with pytest.raises(ImageUnavailable) as exc_info:
        await resolver.resolve(
            RemoteImage(url="https://images.example.com/a.jpg?token=s3cr3t"),
            ImageRepresentation.RAW_BYTES
        )

    assert "s3cr3t" not in str(exc_info.value)
    assert "https://images.example.com/a.jpg" in str(exc_info.value)


async def test_remote_network_error(storage):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    resolver = ImageResolver(storage, transport=httpx.MockTransport(handler))

    with pytest.raises(ImageUnavailable) as exc_info:
        await resolver.resolve(RemoteImage(url="https://images.example.com/a.jpg"), ImageRepresentation.RAW_BYTES)

    assert exc_info.value.status is None


async def test_resolve_many_preserves_order(storage):
    resolver = ImageResolver(storage)

    resolved = await resolver.resolve_many(
        [LocalImage(path="users/42/palette.png"), LocalImage(path="users/42/outfit.jpg")],
        ImageRepresentation.RAW_BYTES
    )

    assert [image.data for image in resolved] == [PNG_BYTES, JPEG_BYTES]


async def test_repeated_resolution_is_identical(storage):
    resolver = ImageResolver(storage)
    reference = LocalImage(path="users/42/outfit.jpg")

    first = await resolver.resolve(reference, ImageRepresentation.BASE64_INLINE)
    second = await resolver.resolve(reference, ImageRepresentation.BASE64_INLINE)

    assert first == second
