"""Error taxonomy for the AI request gateway.

Every failure that leaves a gateway component is one of the exceptions
below, each tagged with an ``ErrorKind``. ``MALFORMED_MODEL_OUTPUT`` and
``DOMAIN_VALIDATION_FAILURE`` are normally returned on the response by the
normalizer rather than raised.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Kinds of gateway failures."""
    CONFIGURATION_MISSING = "configuration_missing"
    CONFIGURATION_ERROR = "configuration_error"
    IMAGE_UNAVAILABLE = "image_unavailable"
    UNSUPPORTED_CONTENT = "unsupported_content"
    TRANSPORT_FAILURE = "transport_failure"
    MALFORMED_MODEL_OUTPUT = "malformed_model_output"
    DOMAIN_VALIDATION_FAILURE = "domain_validation_failure"


class GatewayError(Exception):
    """Base class for all gateway errors."""

    kind: ErrorKind

    def __init__(self, message: str, provider: Optional[str] = None):
        self.message = message
        self.provider = provider
        super().__init__(message)


class ConfigurationMissing(GatewayError):
    """Required settings are absent. Raised before any I/O."""
    kind = ErrorKind.CONFIGURATION_MISSING


class ConfigurationError(GatewayError):
    """Settings are present but invalid, e.g. an unknown provider name."""
    kind = ErrorKind.CONFIGURATION_ERROR


class ImageUnavailable(GatewayError):
    """An image reference could not be resolved."""
    kind = ErrorKind.IMAGE_UNAVAILABLE

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        provider: Optional[str] = None
    ):
        self.status = status
        super().__init__(message, provider=provider)


class UnsupportedContent(GatewayError):
    """The provider cannot accept a content block or message role."""
    kind = ErrorKind.UNSUPPORTED_CONTENT


class TransportFailure(GatewayError):
    """Network, auth, rate-limit, timeout or upstream status failure."""
    kind = ErrorKind.TRANSPORT_FAILURE

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        status: Optional[int] = None,
        provider: Optional[str] = None
    ):
        self.reason = reason
        self.status = status
        super().__init__(message, provider=provider)


class DomainValidationFailure(GatewayError):
    """The model returned a valid but unusable judgment (sentinel phrase)."""
    kind = ErrorKind.DOMAIN_VALIDATION_FAILURE

    def __init__(self, message: str, sentinel: Optional[str] = None):
        self.sentinel = sentinel
        super().__init__(message)
