"""Clarifai perception API provider.

The model takes images plus a single ``prompt`` inference parameter, not a
conversation. All user text blocks are joined into that prompt and every
image is sent inline as raw bytes. The response envelope carries its own
status code; anything other than SUCCESS is a transport failure even
when the gRPC call itself succeeded.
"""

import asyncio
import json
from typing import Any, Callable, List, Optional, Sequence, Tuple

import grpc
from clarifai_grpc.channel.clarifai_channel import ClarifaiChannel
from clarifai_grpc.grpc.api import resources_pb2, service_pb2, service_pb2_grpc
from clarifai_grpc.grpc.api.status import status_code_pb2
from google.protobuf import json_format, struct_pb2

from outfit_gateway.core.config import ClarifaiSettings, ProviderName, Settings
from outfit_gateway.core.errors import TransportFailure, UnsupportedContent
from outfit_gateway.core.logging import get_logger
from outfit_gateway.models.domain.messages import Message, Role
from outfit_gateway.services.image_resolver import ImageRepresentation

from .base import AdapterContext, ProviderAdapter

logger = get_logger(__name__)


class ClarifaiAdapter(ProviderAdapter):
    """Clarifai model called through ``PostModelOutputs``."""

    name = ProviderName.CLARIFAI

    def __init__(self, stub_factory: Optional[Callable[[], Any]] = None):
        # stub_factory can be injected to ease testing
        self._stub_factory = stub_factory
        self._channel = None
        self._stub = None

    def stub(self):
        """The adapter's stub, opened on first use and reused afterwards."""
        if self._stub is None:
            if self._stub_factory is not None:
                self._stub = self._stub_factory()
            else:
                self._channel = ClarifaiChannel.get_grpc_channel()
                self._stub = service_pb2_grpc.V2Stub(self._channel)
        return self._stub

    def close(self) -> None:
        """Close the gRPC channel opened by :meth:`stub`, if any."""
        if self._channel is not None:
            self._channel.close()
        self._channel = None
        self._stub = None

    def provider_settings(self, settings: Settings) -> ClarifaiSettings:
        return settings.CLARIFAI

    def split_content(self, messages: Sequence[Message]) -> Tuple[str, list]:
        """Combined user text and the image references, in order.

        The model takes one prompt parameter, so system messages
        (few-shot context included) are not sent.
        """
        texts: List[str] = []
        references = []
        for message in messages:
            if message.role == Role.ASSISTANT:
                raise UnsupportedContent(
                    "Clarifai accepts a single prompt; assistant messages are not supported",
                    provider=self.name.value
                )
            if message.role != Role.USER:
                continue
            text = message.text()
            if text:
                texts.append(text)
            references.extend(block.reference for block in message.images())

        if not references:
            raise UnsupportedContent(
                "Clarifai requests need at least one image",
                provider=self.name.value
            )
        return "\n\n".join(texts), references

    def build_request(
        self,
        cfg: ClarifaiSettings,
        prompt: str,
        images: List[bytes]
    ) -> service_pb2.PostModelOutputsRequest:
        params = struct_pb2.Struct()
        params.update({"prompt": prompt})

        return service_pb2.PostModelOutputsRequest(
            user_app_id=resources_pb2.UserAppIDSet(user_id=cfg.USER_ID, app_id=cfg.APP_ID),
            model_id=cfg.MODEL_ID,
            version_id=cfg.MODEL_VERSION_ID or "",
            inputs=[
                resources_pb2.Input(data=resources_pb2.Data(image=resources_pb2.Image(base64=data)))
                for data in images
            ],
            model=resources_pb2.Model(
                model_version=resources_pb2.ModelVersion(
                    output_info=resources_pb2.OutputInfo(params=params)
                )
            ),
        )

    async def send(self, messages: Sequence[Message], context: AdapterContext) -> str:
        cfg = context.settings.CLARIFAI
        prompt, references = self.split_content(messages)
        resolved = await context.resolver.resolve_many(references, ImageRepresentation.RAW_BYTES)
        request = self.build_request(cfg, prompt, [image.data for image in resolved])
        metadata = (("authorization", f"Key {cfg.PAT.get_secret_value()}"),)

        logger.info(
            "Making Clarifai request",
            model_id=cfg.MODEL_ID,
            image_count=len(resolved),
            prompt_length=len(prompt)
        )

        stub = self.stub()
        try:
            response = await asyncio.to_thread(stub.PostModelOutputs, request, metadata=metadata)
        except grpc.RpcError as e:
            code = e.code() if callable(getattr(e, "code", None)) else None
            logger.error("Clarifai API error", error_type=e.__class__.__name__, grpc_code=str(code))
            raise TransportFailure(
                f"Clarifai request failed: {code}",
                reason="rpc_error",
                provider=self.name.value
            ) from e

        return self.extract_text(response)

    def extract_text(self, response) -> str:
        """Reply text from a ``MultiOutputResponse``."""
        if response.status.code != status_code_pb2.SUCCESS:
            logger.error(
                "Clarifai response error",
                status_code=response.status.code,
                description=response.status.description
            )
            raise TransportFailure(
                f"Clarifai returned status {response.status.code}: {response.status.description}",
                reason="provider_status",
                status=response.status.code,
                provider=self.name.value
            )

        if not response.outputs:
            raise TransportFailure(
                "Clarifai returned no output",
                reason="no_output",
                provider=self.name.value
            )

        data = response.outputs[0].data
        if data.HasField("text"):
            result = data.text.raw
        elif len(data.concepts) > 0:
            result = json.dumps([json_format.MessageToDict(concept) for concept in data.concepts])
        else:
            result = json.dumps(json_format.MessageToDict(data))

        logger.info("Clarifai response received", response_length=len(result))
        return result.strip()
