"""Public API for outfit_gateway.

Expose a small, explicit set of names used by the rating, comparison and
palette flows.
"""
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("outfit-gateway")
except PackageNotFoundError:
    __version__ = "0.0.0"

from .core.config import ProviderName, Settings, get_settings
from .core.errors import (
    ConfigurationError,
    ConfigurationMissing,
    DomainValidationFailure,
    ErrorKind,
    GatewayError,
    ImageUnavailable,
    TransportFailure,
    UnsupportedContent,
)
from .models.domain.feedback import FeedbackLabel, FewShotExample, RatingHistory
from .models.domain.messages import (
    GatewayRequest,
    GatewayResponse,
    ImageBlock,
    LocalImage,
    Message,
    RemoteImage,
    Role,
    TextBlock,
    image_block,
    messages_from_chat_format,
    parse_image_reference,
    text_block,
)
from .services.gateway import Gateway

__all__ = [
    "ProviderName",
    "Settings",
    "get_settings",
    "ConfigurationError",
    "ConfigurationMissing",
    "DomainValidationFailure",
    "ErrorKind",
    "GatewayError",
    "ImageUnavailable",
    "TransportFailure",
    "UnsupportedContent",
    "FeedbackLabel",
    "FewShotExample",
    "RatingHistory",
    "GatewayRequest",
    "GatewayResponse",
    "ImageBlock",
    "LocalImage",
    "Message",
    "RemoteImage",
    "Role",
    "TextBlock",
    "image_block",
    "messages_from_chat_format",
    "parse_image_reference",
    "text_block",
    "Gateway",
    "__version__",
]
