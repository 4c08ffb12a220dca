"""Provider-agnostic message model for gateway requests and responses.

A request is an ordered list of ``Message`` objects. User content is an
ordered list of content blocks (text or image). Image references are
parsed once, at the boundary, into either a ``LocalImage`` (a path under
the storage root) or a ``RemoteImage`` (an external URL).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Sequence, Union
from urllib.parse import urlsplit
from pydantic import BaseModel, Field

from outfit_gateway.core.errors import DomainValidationFailure, ErrorKind
from outfit_gateway.models.domain.feedback import RatingHistory

DEFAULT_STORAGE_MARKER = "/v3/"


class Role(str, Enum):
    """Message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class LocalImage(BaseModel):
    """Image stored under the storage root, addressed by a relative path."""
    kind: Literal["local"] = "local"
    path: str


class RemoteImage(BaseModel):
    """Image at an arbitrary external URL."""
    kind: Literal["remote"] = "remote"
    url: str


ImageReference = Annotated[Union[LocalImage, RemoteImage], Field(discriminator="kind")]


class TextBlock(BaseModel):
    kind: Literal["text"] = "text"
    value: str


class ImageBlock(BaseModel):
    kind: Literal["image"] = "image"
    reference: ImageReference


ContentBlock = Annotated[Union[TextBlock, ImageBlock], Field(discriminator="kind")]


class Message(BaseModel):
    """One prompt message. Block order is significant."""
    role: Role
    content: Union[str, List[ContentBlock]]

    def blocks(self) -> List[Union[TextBlock, ImageBlock]]:
        """Content as a list of blocks; string content becomes one text block."""
        if isinstance(self.content, str):
            return [TextBlock(value=self.content)] if self.content else []
        return list(self.content)

    def text(self, separator: str = "\n\n") -> str:
        """Concatenated text of all text blocks."""
        return separator.join(
            block.value for block in self.blocks() if isinstance(block, TextBlock)
        )

    def images(self) -> List[ImageBlock]:
        return [block for block in self.blocks() if isinstance(block, ImageBlock)]


def parse_image_reference(
    url: str,
    marker: str = DEFAULT_STORAGE_MARKER
) -> Union[LocalImage, RemoteImage]:
    """Build an image reference from a URL or storage path.

    A URL containing the storage marker segment (``/v3/`` by default) is a
    local image whose path is everything after the first marker. A bare
    path without a scheme is a local image as-is. Any other ``http(s)`` URL
    is a remote image.

    Raises:
        ValueError: If the value is empty or uses an unsupported scheme
    """
    if not url or not url.strip():
        raise ValueError("Image reference is empty")

    url = url.strip()
    index = url.find(marker)
    if index >= 0:
        path = url[index + len(marker):]
        if not path:
            raise ValueError("Image reference has no path after the storage marker")
        return LocalImage(path=path)

    scheme = urlsplit(url).scheme.lower()
    if scheme in ("http", "https"):
        return RemoteImage(url=url)
    if not scheme:
        return LocalImage(path=url)
    raise ValueError(f"Unsupported image reference scheme: {scheme}")


def text_block(value: str) -> TextBlock:
    return TextBlock(value=value)


def image_block(url: str, marker: str = DEFAULT_STORAGE_MARKER) -> ImageBlock:
    return ImageBlock(reference=parse_image_reference(url, marker))


def messages_from_chat_format(
    payload: Sequence[Dict[str, Any]],
    marker: str = DEFAULT_STORAGE_MARKER
) -> List[Message]:
    """Convert chat-completions style message dicts into gateway messages.

    Accepts ``{"type": "text", "text": ...}`` and
    ``{"type": "image_url", "image_url": {"url": ...}}`` content parts.

    Raises:
        ValueError: On an unknown content part type
    """
    messages = []
    for item in payload:
        content = item.get("content", "")
        if isinstance(content, str):
            messages.append(Message(role=item["role"], content=content))
            continue

        blocks: List[Union[TextBlock, ImageBlock]] = []
        for part in content:
            part_type = part.get("type")
            if part_type == "text":
                blocks.append(text_block(part.get("text", "")))
            elif part_type == "image_url":
                image_url = part.get("image_url") or {}
                url = image_url.get("url") if isinstance(image_url, dict) else image_url
                blocks.append(image_block(url or "", marker))
            else:
                raise ValueError(f"Unsupported content part type: {part_type}")
        messages.append(Message(role=item["role"], content=blocks))
    return messages


@dataclass(frozen=True)
class GatewayRequest:
    """Messages plus the optional historical-ratings collaborator."""
    messages: Sequence[Message]
    history: Optional[RatingHistory] = None


class GatewayResponse(BaseModel):
    """Normalized reply returned to every caller regardless of provider.

    ``assistant_text`` is always set. ``parsed`` holds the extracted JSON
    object when extraction succeeded; otherwise ``parse_error`` says why.
    """
    assistant_text: str
    parsed: Optional[Dict[str, Any]] = None
    parse_error: Optional[ErrorKind] = None
    sentinel: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.parse_error is None and self.parsed is not None

    def raise_for_domain(self) -> "GatewayResponse":
        """Raise ``DomainValidationFailure`` if the model flagged the image."""
        if self.parse_error == ErrorKind.DOMAIN_VALIDATION_FAILURE:
            raise DomainValidationFailure(
                f"Model rejected the image: {self.sentinel}",
                sentinel=self.sentinel
            )
        return self
