"""Merge caller messages and few-shot context into one message sequence."""

from typing import List, Sequence

from outfit_gateway.core.errors import UnsupportedContent
from outfit_gateway.models.domain.messages import Message, Role


class PromptAssembler:
    """Normalize a caller's messages before dispatch.

    The result has at most one system message, placed first, holding the
    few-shot block followed by every system message's text in encounter
    order. Other messages keep their order and their block order.
    """

    def __init__(self, separator: str = "\n\n"):
        self.separator = separator

    def assemble(self, messages: Sequence[Message], few_shot: str = "") -> List[Message]:
        """Raises ``UnsupportedContent`` if a system message carries an image."""
        system_parts = [few_shot] if few_shot else []
        conversation = []

        for message in messages:
            if message.role == Role.SYSTEM:
                if message.images():
                    raise UnsupportedContent("System messages cannot carry images")
                text = message.text(self.separator)
                if text:
                    system_parts.append(text)
            else:
                conversation.append(Message(role=message.role, content=message.blocks()))

        if system_parts:
            system = Message(role=Role.SYSTEM, content=self.separator.join(system_parts))
            return [system] + conversation
        return conversation
