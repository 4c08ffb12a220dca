"""AI request gateway: the single entry point for rating, comparison and
palette flows.

The gateway:
- Selects the active provider from settings (static, no fallback chain)
- Validates that provider's settings before any I/O
- Fetches few-shot feedback examples from the optional history
- Assembles the message sequence and sends it through the adapter
- Normalizes the reply into a ``GatewayResponse``

``dispatch`` always returns a normalized response: ``parsed`` and
``parse_error`` are filled by the gateway, not left to callers. It raises
``ConfigurationMissing``/``ConfigurationError`` before any I/O, and
``ImageUnavailable``/``UnsupportedContent``/``TransportFailure`` from the
adapter. Nothing is retried.
"""

import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from outfit_gateway.core.config import ProviderName, Settings, get_settings
from outfit_gateway.core.errors import (
    ConfigurationError,
    ConfigurationMissing,
    GatewayError,
    TransportFailure,
)
from outfit_gateway.core.logging import correlation_id, get_logger, monitor_performance
from outfit_gateway.models.domain.feedback import RatingHistory
from outfit_gateway.models.domain.messages import (
    GatewayRequest,
    GatewayResponse,
    Message,
    messages_from_chat_format,
)
from outfit_gateway.providers import ADAPTERS, AdapterContext, ProviderAdapter
from outfit_gateway.services.feedback_examples import FeedbackExampleFetcher
from outfit_gateway.services.image_resolver import ImageResolver
from outfit_gateway.services.prompt_assembler import PromptAssembler
from outfit_gateway.services.response_normalizer import ResponseNormalizer
from outfit_gateway.utils.storage import StorageRoot

logger = get_logger(__name__)


class Gateway:
    """Dispatch provider-agnostic prompts to the configured provider."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        adapters: Optional[Mapping[ProviderName, ProviderAdapter]] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """Initialize the gateway.

        Args:
            settings: Gateway settings; defaults to the cached settings
            adapters: Adapter instances by provider; defaults to one of each
            http_transport: Transport for remote image downloads
        """
        self.settings = settings or get_settings()
        self.adapters = dict(adapters) if adapters is not None else {
            name: adapter_cls() for name, adapter_cls in ADAPTERS.items()
        }
        self.storage = StorageRoot(self.settings.STORAGE_ROOT)
        self.resolver = ImageResolver(
            self.storage,
            timeout=self.settings.IMAGE_FETCH_TIMEOUT_SECONDS,
            transport=http_transport
        )
        self.fetcher = FeedbackExampleFetcher(
            good_limit=self.settings.FEW_SHOT_GOOD_LIMIT,
            bad_limit=self.settings.FEW_SHOT_BAD_LIMIT
        )
        self.assembler = PromptAssembler()
        self.normalizer = ResponseNormalizer()

    def provider_name(self) -> ProviderName:
        """The configured provider.

        Raises:
            ConfigurationMissing: If no provider is configured
            ConfigurationError: If the name is not a known provider
        """
        value = (self.settings.AI_PROVIDER or "").strip().lower()
        if not value:
            raise ConfigurationMissing("AI provider is not configured (AI_PROVIDER)")
        try:
            return ProviderName(value)
        except ValueError:
            supported = ", ".join(p.value for p in ProviderName)
            raise ConfigurationError(
                f"Unknown AI provider: {value}. Supported providers: {supported}"
            ) from None

    def select_adapter(self) -> ProviderAdapter:
        """Adapter for the configured provider, with its settings validated."""
        name = self.provider_name()
        adapter = self.adapters.get(name)
        if adapter is None:
            raise ConfigurationError(f"No adapter available for provider: {name.value}")
        adapter.check_configuration(self.settings)
        return adapter

    def parse_messages(self, payload: Sequence[Dict[str, Any]]) -> List[Message]:
        """Build messages from chat-style dicts using the configured storage marker."""
        return messages_from_chat_format(payload, self.settings.STORAGE_URL_MARKER)

    async def dispatch(
        self,
        messages: Sequence[Message],
        history: Optional[RatingHistory] = None
    ) -> GatewayResponse:
        """Send one prompt to the configured provider."""
        return await self.dispatch_request(GatewayRequest(messages=messages, history=history))

    async def dispatch_request(self, request: GatewayRequest) -> GatewayResponse:
        token = correlation_id.set(correlation_id.get() or uuid.uuid4().hex)
        try:
            return await self._dispatch(request)
        finally:
            correlation_id.reset(token)

    def close(self) -> None:
        """Release long-lived provider connections."""
        for adapter in self.adapters.values():
            adapter.close()

    @monitor_performance("gateway_dispatch")
    async def _dispatch(self, request: GatewayRequest) -> GatewayResponse:
        adapter = self.select_adapter()
        logger.info("Routing AI request", provider=adapter.name.value)

        few_shot = await self.fetcher.fetch(request.history)
        messages = self.assembler.assemble(request.messages, few_shot)
        context = AdapterContext(
            settings=self.settings,
            resolver=self.resolver,
            storage=self.storage
        )

        try:
            raw = await adapter.send(messages, context)
        except GatewayError:
            raise
        except Exception as e:
            logger.error("Provider raised an unmapped error", error=e, provider=adapter.name.value)
            raise TransportFailure(
                f"{adapter.name.value} request failed ({e.__class__.__name__})",
                reason="unexpected_error",
                provider=adapter.name.value
            ) from e

        response = self.normalizer.normalize(raw)
        logger.info(
            "AI request completed",
            provider=adapter.name.value,
            parse_error=response.parse_error.value if response.parse_error else None
        )
        return response
