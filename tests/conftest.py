"""Shared fixtures."""

import pytest

from cmsai.clients import base as clients_base
from cmsai.clients.anthropic import AnthropicAdapter
from cmsai.clients.base import ProviderConfig, ProviderError
from cmsai.config import Settings
from cmsai.models.llm import LLMUsage, Message, ProviderTurn, Role, TextBlock, ToolUseBlock

CREDENTIAL_VARIABLES = ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GEMINI_API_KEY", "TAVILY_API_KEY")


@pytest.fixture(autouse=True)
def no_tokenizer_download(monkeypatch):
    """Use the character estimate instead of fetching tiktoken encodings."""
    monkeypatch.setattr(clients_base, "get_tokenizer", lambda: None)


class ScriptedAdapter(AnthropicAdapter):
    """Anthropic-shaped adapter that replays canned turns instead of calling the API."""

    def __init__(self, turns=(), tools=()):
        super().__init__(ProviderConfig(model="test-model", api_key="test-key"), tools)
        self.turns = list(turns)
        self.requests: list[tuple[str, list[Message], str]] = []

    def _send(self, system_prompt, history, tool_choice):
        self.requests.append((system_prompt, list(history), tool_choice))
        if not self.turns:
            raise ProviderError("no scripted turn left")
        turn = self.turns.pop(0)
        if isinstance(turn, BaseException):
            raise turn
        return turn

    @staticmethod
    def text(text: str) -> ProviderTurn:
        return ProviderTurn(
            messages=[Message(role=Role.ASSISTANT, content=[TextBlock(text=text)])],
            usage=LLMUsage(input_tokens=10, output_tokens=5),
            stop_reason="end_turn",
        )

    @staticmethod
    def tool(*calls: tuple[str, str, dict], text: str = "") -> ProviderTurn:
        messages = []
        if text:
            messages.append(Message(role=Role.ASSISTANT, content=[TextBlock(text=text)]))
        for call_id, name, tool_input in calls:
            messages.append(
                Message(role=Role.ASSISTANT, content=[ToolUseBlock(id=call_id, name=name, input=tool_input)])
            )
        return ProviderTurn(messages=messages, usage=LLMUsage(input_tokens=10, output_tokens=5), stop_reason="tool_use")


@pytest.fixture
def scripted():
    """The ScriptedAdapter class, for building adapters with canned turns."""
    return ScriptedAdapter


@pytest.fixture
def make_settings(monkeypatch):
    """Build Settings isolated from the environment and any .env file."""
    for name in CREDENTIAL_VARIABLES:
        monkeypatch.delenv(name, raising=False)

    def factory(**overrides) -> Settings:
        return Settings(_env_file=None, **overrides)

    return factory
