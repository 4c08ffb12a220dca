"""Common contract for provider adapters.

Each adapter turns the assembled message sequence into one provider call
and returns the raw reply text. Settings are validated synchronously by
``check_configuration`` before any I/O. Adapters map every provider
exception to a gateway error; credentials never appear in log fields or
error messages.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence, Tuple, Union

from outfit_gateway.core.config import ProviderName, ProviderSettings, Settings
from outfit_gateway.core.errors import ConfigurationMissing
from outfit_gateway.models.domain.messages import ImageBlock, LocalImage, Message, RemoteImage
from outfit_gateway.services.image_resolver import ImageRepresentation, ImageResolver, ResolvedImage
from outfit_gateway.utils.storage import StorageRoot


@dataclass(frozen=True)
class AdapterContext:
    """Everything an adapter needs for one call."""
    settings: Settings
    resolver: ImageResolver
    storage: StorageRoot


# (message index, block index) -> resolved image
ResolvedImages = Dict[Tuple[int, int], ResolvedImage]


class ProviderAdapter(ABC):
    """One backend provider."""

    name: ProviderName

    @abstractmethod
    def provider_settings(self, settings: Settings) -> ProviderSettings:
        """This provider's section of the settings."""

    def check_configuration(self, settings: Settings) -> None:
        """Fail fast if required settings are absent.

        Raises:
            ConfigurationMissing: Naming the missing fields, never values
        """
        missing = self.provider_settings(settings).missing_fields()
        if missing:
            raise ConfigurationMissing(
                f"{self.name.value} configuration is missing: {', '.join(missing)}",
                provider=self.name.value
            )

    @abstractmethod
    async def send(self, messages: Sequence[Message], context: AdapterContext) -> str:
        """Perform the provider call and return the raw reply text."""

    def close(self) -> None:
        """Release connections held across calls. Most adapters hold none."""

    async def resolve_images(
        self,
        messages: Sequence[Message],
        context: AdapterContext,
        representation_for: Callable[[Union[LocalImage, RemoteImage]], ImageRepresentation],
    ) -> ResolvedImages:
        """Resolve every image block concurrently.

        ``representation_for`` maps an image reference to the
        ``ImageRepresentation`` this provider wants for it.
        """
        keys: List[Tuple[int, int]] = []
        blocks: List[ImageBlock] = []
        for message_index, message in enumerate(messages):
            for block_index, block in enumerate(message.blocks()):
                if isinstance(block, ImageBlock):
                    keys.append((message_index, block_index))
                    blocks.append(block)

        if not blocks:
            return {}

        resolved = await asyncio.gather(*(
            context.resolver.resolve(block.reference, representation_for(block.reference))
            for block in blocks
        ))
        return dict(zip(keys, resolved))
