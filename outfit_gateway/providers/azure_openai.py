"""Azure OpenAI managed-cloud provider.

Uses the Responses API in streaming mode. The stream is consumed until its
terminal ``response.completed`` event, whose full output text is the
reply; intermediate delta events are ignored. Local images are inlined as
base64 data URLs, remote image URLs are passed through.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx
from openai import APIError, AsyncAzureOpenAI

from outfit_gateway.core.config import AzureOpenAISettings, ProviderName, Settings
from outfit_gateway.core.errors import TransportFailure, UnsupportedContent
from outfit_gateway.core.logging import get_logger
from outfit_gateway.models.domain.messages import ImageBlock, LocalImage, Message, Role, TextBlock
from outfit_gateway.services.image_resolver import ImageRepresentation

from .base import AdapterContext, ProviderAdapter, ResolvedImages

logger = get_logger(__name__)

TERMINAL_EVENT = "response.completed"
FAILURE_EVENTS = ("response.failed", "response.incomplete", "error")


class AzureOpenAIAdapter(ProviderAdapter):
    """Azure OpenAI deployment accessed with an API key."""

    name = ProviderName.AZURE

    def __init__(self, client_factory: Optional[Callable[[AzureOpenAISettings], Any]] = None):
        # client_factory can be injected to ease testing
        self._client_factory = client_factory or self._build_client

    def provider_settings(self, settings: Settings) -> AzureOpenAISettings:
        return settings.AZURE

    @staticmethod
    def _build_client(cfg: AzureOpenAISettings) -> AsyncAzureOpenAI:
        return AsyncAzureOpenAI(
            azure_endpoint=cfg.ENDPOINT,
            api_key=cfg.API_KEY.get_secret_value(),
            api_version=cfg.API_VERSION,
        )

    @staticmethod
    def _representation_for(reference) -> ImageRepresentation:
        if isinstance(reference, LocalImage):
            return ImageRepresentation.BASE64_INLINE
        return ImageRepresentation.URL_PASSTHROUGH

    def build_input(self, messages: Sequence[Message], images: ResolvedImages) -> List[Dict[str, Any]]:
        """Convert messages to Responses API input items."""
        items = []
        for message_index, message in enumerate(messages):
            if message.role == Role.SYSTEM:
                items.append({"role": "system", "content": message.text()})
                continue

            if message.role == Role.ASSISTANT:
                if message.images():
                    raise UnsupportedContent(
                        "Assistant messages cannot carry images",
                        provider=self.name.value
                    )
                items.append({"role": "assistant", "content": message.text()})
                continue

            content = []
            for block_index, block in enumerate(message.blocks()):
                if isinstance(block, TextBlock):
                    content.append({"type": "input_text", "text": block.value})
                elif isinstance(block, ImageBlock):
                    resolved = images[(message_index, block_index)]
                    image_url = resolved.url if resolved.url else resolved.data_url
                    content.append({"type": "input_image", "image_url": image_url})
            items.append({"role": "user", "content": content})
        return items

    async def send(self, messages: Sequence[Message], context: AdapterContext) -> str:
        cfg = context.settings.AZURE
        images = await self.resolve_images(messages, context, self._representation_for)
        request_input = self.build_input(messages, images)

        client = self._client_factory(cfg)
        logger.info(
            "Making Azure OpenAI request",
            deployment=cfg.DEPLOYMENT_ID,
            message_count=len(request_input)
        )

        try:
            stream = await client.responses.create(
                model=cfg.DEPLOYMENT_ID,
                input=request_input,
                temperature=cfg.TEMPERATURE,
                max_output_tokens=cfg.MAX_OUTPUT_TOKENS,
                stream=True,
            )
            text = await self._read_terminal_result(stream)
        except (APIError, httpx.HTTPError) as e:
            status = getattr(e, "status_code", None)
            logger.error("Azure OpenAI request failed", error_type=e.__class__.__name__, status_code=status)
            raise TransportFailure(
                f"Azure OpenAI request failed ({e.__class__.__name__})",
                reason=e.__class__.__name__,
                status=status,
                provider=self.name.value
            ) from e
        finally:
            await client.close()

        logger.info("Azure OpenAI response received", response_length=len(text))
        return text

    async def _read_terminal_result(self, stream) -> str:
        """Consume events until the terminal one; return its output text."""
        async for event in stream:
            event_type = getattr(event, "type", None)
            if event_type == TERMINAL_EVENT:
                return event.response.output_text or ""
            if event_type in FAILURE_EVENTS:
                raise TransportFailure(
                    f"Azure OpenAI stream ended with {event_type}: {self._failure_detail(event)}",
                    reason=event_type,
                    provider=self.name.value
                )

        raise TransportFailure(
            "Azure OpenAI stream ended without a terminal result",
            reason="incomplete_stream",
            provider=self.name.value
        )

    @staticmethod
    def _failure_detail(event) -> str:
        error = getattr(event, "error", None) or getattr(getattr(event, "response", None), "error", None)
        message = getattr(error, "message", None) or getattr(event, "message", None)
        return message or "no detail"
