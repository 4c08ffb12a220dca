"""Tests for the Azure OpenAI adapter."""

from types import SimpleNamespace

import httpx
import openai
import pytest

from outfit_gateway.core.errors import (
    ConfigurationMissing,
    ImageUnavailable,
    TransportFailure,
    UnsupportedContent,
)
from outfit_gateway.models.domain.messages import Message, Role, image_block, text_block
from outfit_gateway.providers.azure_openai import AzureOpenAIAdapter


class FakeStream:
    """Async iterator over canned stream events."""

    def __init__(self, events):
        self._events = iter(events)

    def __aiter__(self):
        return self

    async def __anext__(self):
        try:
            return next(self._events)
        except StopIteration:
            raise StopAsyncIteration


def delta(text):
    return SimpleNamespace(type="response.output_text.delta", delta=text)


def completed(text):
    return SimpleNamespace(type="response.completed", response=SimpleNamespace(output_text=text))


@pytest.fixture
def fake_client(mocker):
    def _make(events=None, error=None):
        create = mocker.AsyncMock(return_value=FakeStream(events or []), side_effect=error)
        return SimpleNamespace(
            responses=SimpleNamespace(create=create),
            close=mocker.AsyncMock()
        )
    return _make


@pytest.fixture
def azure_settings(make_settings):
    return make_settings(provider="azure")


def rating_messages(url="users/42/outfit.jpg"):
    return [
        Message(role=Role.SYSTEM, content="You are a stylist."),
        Message(role=Role.USER, content=[text_block("Rate this outfit"), image_block(url)]),
    ]


def test_check_configuration_names_missing_fields(make_settings):
    settings = make_settings(provider="azure", azure={"ENDPOINT": None, "API_KEY": None})

    with pytest.raises(ConfigurationMissing) as exc_info:
        AzureOpenAIAdapter().check_configuration(settings)

    assert "AZURE_OPENAI_ENDPOINT" in exc_info.value.message
    assert "AZURE_OPENAI_API_KEY" in exc_info.value.message


def test_check_configuration_ok(azure_settings):
    AzureOpenAIAdapter().check_configuration(azure_settings)


async def test_send_returns_terminal_text(fake_client, adapter_context, azure_settings):
    client = fake_client([delta('{"sc'), delta('ore": 8}'), completed('{"score": 8}')])
    adapter = AzureOpenAIAdapter(client_factory=lambda cfg: client)

    result = await adapter.send(rating_messages(), adapter_context(azure_settings))

    assert result == '{"score": 8}'
    kwargs = client.responses.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o"
    assert kwargs["stream"] is True
    assert kwargs["input"][0] == {"role": "system", "content": "You are a stylist."}
    user_content = kwargs["input"][1]["content"]
    assert user_content[0] == {"type": "input_text", "text": "Rate this outfit"}
    assert user_content[1]["type"] == "input_image"
    assert user_content[1]["image_url"].startswith("data:image/jpeg;base64,")
    client.close.assert_awaited_once()


async def test_send_passes_remote_url(fake_client, adapter_context, azure_settings):
    client = fake_client([completed("{}")])
    adapter = AzureOpenAIAdapter(client_factory=lambda cfg: client)

    await adapter.send(rating_messages("https://images.example.com/look.png"), adapter_context(azure_settings))

    user_content = client.responses.create.call_args.kwargs["input"][1]["content"]
    assert user_content[1]["image_url"] == "https://images.example.com/look.png"


async def test_send_failure_event(fake_client, adapter_context, azure_settings):
    failed = SimpleNamespace(
        type="response.failed",
        response=SimpleNamespace(error=SimpleNamespace(message="content filtered"))
    )
    client = fake_client([delta("{"), failed])
    adapter = AzureOpenAIAdapter(client_factory=lambda cfg: client)

    with pytest.raises(TransportFailure, match="content filtered") as exc_info:
        await adapter.send(rating_messages(), adapter_context(azure_settings))

    assert exc_info.value.reason == "response.failed"
    client.close.assert_awaited_once()


async def test_send_stream_without_terminal_event(fake_client, adapter_context, azure_settings):
    client = fake_client([delta('{"score": 8}')])
    adapter = AzureOpenAIAdapter(client_factory=lambda cfg: client)

    with pytest.raises(TransportFailure) as exc_info:
        await adapter.send(rating_messages(), adapter_context(azure_settings))

    assert exc_info.value.reason == "incomplete_stream"


async def test_send_maps_api_errors(fake_client, adapter_context, azure_settings):
    request = httpx.Request("POST", "https://example.openai.azure.com/openai/responses")
    client = fake_client(error=openai.APIConnectionError(request=request))
    adapter = AzureOpenAIAdapter(client_factory=lambda cfg: client)

    with pytest.raises(TransportFailure) as exc_info:
        await adapter.send(rating_messages(), adapter_context(azure_settings))

    assert exc_info.value.reason == "APIConnectionError"
    assert "azure-secret-key" not in str(exc_info.value)
    client.close.assert_awaited_once()


async def test_send_missing_image(fake_client, adapter_context, azure_settings):
    client = fake_client([completed("{}")])
    adapter = AzureOpenAIAdapter(client_factory=lambda cfg: client)

    with pytest.raises(ImageUnavailable):
        await adapter.send(rating_messages("users/42/missing.jpg"), adapter_context(azure_settings))

    client.responses.create.assert_not_called()


def test_build_input_rejects_assistant_images():
    messages = [Message(role=Role.ASSISTANT, content=[image_block("users/42/outfit.jpg")])]

    with pytest.raises(UnsupportedContent):
        AzureOpenAIAdapter().build_input(messages, {})


def test_build_input_keeps_assistant_text():
    messages = [Message(role=Role.ASSISTANT, content="Earlier rating")]

    assert AzureOpenAIAdapter().build_input(messages, {}) == [
        {"role": "assistant", "content": "Earlier rating"}
    ]
