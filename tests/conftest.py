"""Shared pytest fixtures for the outfit gateway tests.

This module provides fixtures used across all test files, including:
- Settings construction isolated from the environment and .env files
- A storage root with sample images
- A fake historical-ratings collaborator
- A scripted provider adapter
"""

import pytest
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from outfit_gateway.core.config import (
    AzureOpenAISettings,
    ClarifaiSettings,
    ClaudeCLISettings,
    ProviderName,
    Settings,
)
from outfit_gateway.models.domain.feedback import FeedbackLabel, FewShotExample
from outfit_gateway.models.domain.messages import Message
from outfit_gateway.providers.base import AdapterContext, ProviderAdapter
from outfit_gateway.services.image_resolver import ImageResolver
from outfit_gateway.utils.storage import StorageRoot

JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-png"


# Storage fixtures
@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    """Storage root with a user outfit photo and a palette image."""
    root = tmp_path / "api"
    (root / "users" / "42").mkdir(parents=True)
    (root / "users" / "42" / "outfit.jpg").write_bytes(JPEG_BYTES)
    (root / "users" / "42" / "palette.png").write_bytes(PNG_BYTES)
    (tmp_path / "secret.txt").write_text("outside the root")
    return root


@pytest.fixture
def storage(storage_dir: Path) -> StorageRoot:
    return StorageRoot(storage_dir)


# Settings fixtures
@pytest.fixture
def make_settings(storage_dir: Path):
    """Build settings that ignore the process environment and .env files."""
    def _make(
        provider: Optional[str] = "clarifai",
        claude: Optional[dict] = None,
        azure: Optional[dict] = None,
        clarifai: Optional[dict] = None,
        **overrides
    ) -> Settings:
        azure_values = {
            "ENDPOINT": "https://example.openai.azure.com",
            "API_KEY": "azure-secret-key",
            "API_VERSION": "2025-03-01-preview",
            "DEPLOYMENT_ID": "gpt-4o",
        }
        azure_values.update(azure or {})
        clarifai_values = {
            "PAT": "clarifai-secret-pat",
            "USER_ID": "clarifai",
            "APP_ID": "main",
            "MODEL_ID": "outfit-vlm",
            "MODEL_VERSION_ID": None,
        }
        clarifai_values.update(clarifai or {})
        claude_values = {"CREDENTIALS_PATH": None}
        claude_values.update(claude or {})

        values = {
            "AI_PROVIDER": provider,
            "STORAGE_ROOT": storage_dir,
            "CLAUDE": ClaudeCLISettings(_env_file=None, **claude_values),
            "AZURE": AzureOpenAISettings(_env_file=None, **azure_values),
            "CLARIFAI": ClarifaiSettings(_env_file=None, **clarifai_values),
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def adapter_context(make_settings, storage: StorageRoot):
    """Adapter context factory sharing the test storage root."""
    def _make(settings: Optional[Settings] = None, transport=None) -> AdapterContext:
        return AdapterContext(
            settings=settings or make_settings(),
            resolver=ImageResolver(storage, transport=transport),
            storage=storage,
        )

    return _make


# History fixtures
class FakeHistory:
    """In-memory ``RatingHistory`` recording its queries."""

    def __init__(self, good=None, bad=None, error: Optional[Exception] = None):
        self.good = good or []
        self.bad = bad or []
        self.error = error
        self.calls = []

    async def find_recent(self, label: FeedbackLabel, limit: int) -> List[FewShotExample]:
        self.calls.append((label, limit))
        if self.error:
            raise self.error
        examples = self.good if label == FeedbackLabel.ACCURATE else self.bad
        return examples[:limit]


@pytest.fixture
def good_example() -> FewShotExample:
    return FewShotExample(
        response={"score": 9, "summary": "Sharp tailoring"},
        label=FeedbackLabel.ACCURATE,
        timestamp=datetime(2026, 10, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def bad_example() -> FewShotExample:
    return FewShotExample(
        response={"score": 3, "summary": "Colors clash"},
        human_feedback="The colors were actually fine",
        label=FeedbackLabel.INACCURATE,
        timestamp=datetime(2026, 9, 30, tzinfo=timezone.utc),
    )


@pytest.fixture
def history(good_example, bad_example) -> FakeHistory:
    return FakeHistory(good=[good_example], bad=[bad_example])


# Adapter fixtures
class ScriptedAdapter(ProviderAdapter):
    """Adapter returning a fixed reply (or raising) and recording calls."""

    def __init__(self, name: ProviderName, reply: str = "", error: Optional[Exception] = None):
        self.name = name
        self.reply = reply
        self.error = error
        self.calls: List[Sequence[Message]] = []

    def provider_settings(self, settings: Settings):
        return {
            ProviderName.CLAUDE: settings.CLAUDE,
            ProviderName.AZURE: settings.AZURE,
            ProviderName.CLARIFAI: settings.CLARIFAI,
        }[self.name]

    async def send(self, messages: Sequence[Message], context: AdapterContext) -> str:
        self.calls.append(messages)
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def scripted_adapters():
    """One scripted adapter per provider; tests set ``reply``/``error``."""
    return {name: ScriptedAdapter(name) for name in ProviderName}
