"""Provider adapters, one per ``ProviderName``."""

from typing import Dict, Type

from outfit_gateway.core.config import ProviderName

from .base import AdapterContext, ProviderAdapter
from .azure_openai import AzureOpenAIAdapter
from .claude_cli import ClaudeCLIAdapter
from .clarifai import ClarifaiAdapter

ADAPTERS: Dict[ProviderName, Type[ProviderAdapter]] = {
    ProviderName.CLAUDE: ClaudeCLIAdapter,
    ProviderName.AZURE: AzureOpenAIAdapter,
    ProviderName.CLARIFAI: ClarifaiAdapter,
}

_unmapped = set(ProviderName) - set(ADAPTERS)
if _unmapped:
    raise RuntimeError(f"No adapter registered for providers: {sorted(p.value for p in _unmapped)}")

__all__ = [
    "ADAPTERS",
    "AdapterContext",
    "ProviderAdapter",
    "AzureOpenAIAdapter",
    "ClaudeCLIAdapter",
    "ClarifaiAdapter",
]
