"""Subscription CLI provider (Claude Code CLI).

The CLI authenticates with its own login state (``claude login``), not an
API key, so ``ANTHROPIC_API_KEY`` is removed from the child environment.
Images are not inlined: the storage root is allow-listed with
``--add-dir`` and the prompt asks the model to read each image file with
the Read tool. Calls are bounded by a wall-clock timeout.
"""

import asyncio
import contextlib
import json
import os
import shutil
from typing import List, Sequence

from outfit_gateway.core.config import ClaudeCLISettings, ProviderName, Settings
from outfit_gateway.core.errors import ConfigurationMissing, TransportFailure, UnsupportedContent
from outfit_gateway.core.logging import get_logger
from outfit_gateway.models.domain.messages import ImageBlock, LocalImage, Message, Role, TextBlock
from outfit_gateway.services.image_resolver import ImageRepresentation

from .base import AdapterContext, ProviderAdapter

logger = get_logger(__name__)

IMAGE_INSTRUCTION = 'Please analyze the image at "{path}" using the Read tool.'
STRIPPED_ENV_VARS = ("ANTHROPIC_API_KEY",)


class ClaudeCLIAdapter(ProviderAdapter):
    """Runs one non-interactive ``claude -p`` query per request."""

    name = ProviderName.CLAUDE

    def provider_settings(self, settings: Settings) -> ClaudeCLISettings:
        return settings.CLAUDE

    def check_configuration(self, settings: Settings) -> None:
        super().check_configuration(settings)
        cfg = settings.CLAUDE

        if shutil.which(cfg.BINARY) is None:
            raise ConfigurationMissing(
                f"claude CLI binary not found on PATH: {cfg.BINARY}",
                provider=self.name.value
            )
        if cfg.CREDENTIALS_PATH is not None and not cfg.CREDENTIALS_PATH.expanduser().is_file():
            raise ConfigurationMissing(
                "claude CLI login state is missing; run `claude login`",
                provider=self.name.value
            )

    async def build_prompt(self, messages: Sequence[Message], context: AdapterContext) -> str:
        """Flatten messages into one prompt with file-read instructions for images."""
        for message in messages:
            if message.role == Role.ASSISTANT:
                raise UnsupportedContent(
                    "claude CLI requests are single-turn; assistant messages are not accepted",
                    provider=self.name.value
                )
            for block in message.images():
                if not isinstance(block.reference, LocalImage):
                    raise UnsupportedContent(
                        "claude CLI can only read images from the storage root",
                        provider=self.name.value
                    )

        images = await self.resolve_images(
            messages, context, lambda reference: ImageRepresentation.URL_PASSTHROUGH
        )

        parts: List[str] = []
        for message_index, message in enumerate(messages):
            for block_index, block in enumerate(message.blocks()):
                if isinstance(block, TextBlock):
                    if block.value:
                        parts.append(block.value)
                elif isinstance(block, ImageBlock):
                    path = images[(message_index, block_index)].url
                    parts.append(IMAGE_INSTRUCTION.format(path=path))
        return "\n\n".join(parts)

    def build_command(self, cfg: ClaudeCLISettings, context: AdapterContext) -> List[str]:
        return [
            cfg.BINARY,
            "-p",
            "--output-format", "json",
            "--model", cfg.MODEL,
            "--add-dir", str(context.storage.root),
            "--allowedTools", "Read",
            "--permission-mode", "bypassPermissions",
        ]

    async def send(self, messages: Sequence[Message], context: AdapterContext) -> str:
        cfg = context.settings.CLAUDE
        prompt = await self.build_prompt(messages, context)
        env = {k: v for k, v in os.environ.items() if k not in STRIPPED_ENV_VARS}

        logger.info(
            "Making claude CLI request",
            model=cfg.MODEL,
            prompt_length=len(prompt),
            timeout_seconds=cfg.TIMEOUT_SECONDS
        )

        try:
            process = await asyncio.create_subprocess_exec(
                *self.build_command(cfg, context),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as e:
            logger.error("claude CLI could not be started", error=e)
            raise TransportFailure(
                "claude CLI could not be started",
                reason="spawn_failed",
                provider=self.name.value
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(prompt.encode()),
                timeout=cfg.TIMEOUT_SECONDS
            )
        except asyncio.TimeoutError as e:
            logger.error("claude CLI request timed out", timeout_seconds=cfg.TIMEOUT_SECONDS)
            raise TransportFailure(
                f"claude CLI request timed out after {cfg.TIMEOUT_SECONDS:g}s",
                reason="timeout",
                provider=self.name.value
            ) from e
        finally:
            # Reached on timeout and on caller cancellation
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        if process.returncode != 0:
            error_text = stderr.decode(errors="replace").strip()
            logger.error(
                "claude CLI exited with an error",
                exit_code=process.returncode,
                stderr=error_text[:500]
            )
            raise TransportFailure(
                f"claude CLI exited with code {process.returncode}",
                reason="exit_code",
                provider=self.name.value
            )

        return self.parse_output(stdout.decode(errors="replace"))

    def parse_output(self, output: str) -> str:
        """Extract the result text from the CLI's JSON envelope."""
        try:
            envelope = json.loads(output)
        except ValueError as e:
            raise TransportFailure(
                "claude CLI returned a non-JSON envelope",
                reason="bad_envelope",
                provider=self.name.value
            ) from e

        if not isinstance(envelope, dict) or envelope.get("type") != "result":
            raise TransportFailure(
                "claude CLI returned no result message",
                reason="bad_envelope",
                provider=self.name.value
            )
        if envelope.get("is_error") or envelope.get("subtype", "success") != "success":
            raise TransportFailure(
                f"claude CLI request failed: {envelope.get('subtype', 'error')}",
                reason=str(envelope.get("subtype") or "error"),
                provider=self.name.value
            )

        result = envelope.get("result") or ""
        logger.info("claude CLI response received", response_length=len(result))
        return result
