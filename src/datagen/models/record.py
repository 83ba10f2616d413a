"""Dataset record model and chat message builders."""

from __future__ import annotations

import json
from typing import Literal

from pydantic import BaseModel
from pydantic_core import PydanticSerializationError

Role = Literal["system", "user", "assistant"]


class ChatMessage(BaseModel):
    role: Role
    content: str


class OutputRecord(BaseModel):
    """One JSONL row of the generated dataset."""

    messages: list[ChatMessage]

    def to_jsonl(self) -> str:
        try:
            line = self.model_dump_json()
        except PydanticSerializationError:
            # Lone surrogates have no UTF-8 form; write them as \u escapes.
            line = json.dumps(self.model_dump(), ensure_ascii=True, separators=(",", ":"))
        return line + "\n"


def build_request_messages(system_prompt: str, user_prompt: str) -> list[ChatMessage]:
    """Messages sent to the API. The system message is omitted when blank."""
    messages: list[ChatMessage] = []
    if system_prompt.strip():
        messages.append(ChatMessage(role="system", content=system_prompt))
    messages.append(ChatMessage(role="user", content=user_prompt))
    return messages


def format_assistant_content(content: str, reasoning: str | None = None) -> str:
    """Prefix the answer with a ``<think>`` block when reasoning text is present."""
    if isinstance(reasoning, str) and reasoning.strip():
        return f"<think>{reasoning}</think>\n{content}"
    return content


def build_output_record(
    system_prompt: str,
    user_prompt: str,
    assistant_content: str,
    store_system: bool,
) -> OutputRecord:
    messages: list[ChatMessage] = []
    if system_prompt.strip() and store_system:
        messages.append(ChatMessage(role="system", content=system_prompt))
    messages.append(ChatMessage(role="user", content=user_prompt))
    messages.append(ChatMessage(role="assistant", content=assistant_content))
    return OutputRecord(messages=messages)
