"""Provider adapter contract shared by every vendor family."""

import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import httpx
import tiktoken
from limits import RateLimitItem, parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from cmsai.models.llm import (
    ImageBlock,
    Message,
    ProviderTurn,
    Role,
    TextBlock,
    ToolCall,
    ToolDescriptor,
    ToolResultBlock,
    ToolUseBlock,
)
from cmsai.utils.logging import get_logger

logger = get_logger(__name__)

ToolChoice = str  # "auto" or a tool name


class ProviderError(RuntimeError):
    """Transport failure, non-success status or unreadable provider response."""


@dataclass
class ProviderConfig:
    """Configuration for one provider adapter."""

    model: str
    api_key: str = ""
    base_url: str = ""
    max_tokens: int = 4096
    temperature: float = 1.0
    timeout: float | None = None
    requires_api_key: bool = True


@lru_cache
def get_tokenizer() -> tiktoken.Encoding | None:
    """Tokenizer used for rough token estimates, None when unavailable."""
    try:
        # Close enough for every vendor we talk to
        return tiktoken.encoding_for_model("gpt-4")
    except Exception:
        logger.debug("tiktoken encoding unavailable, using character estimate")
        return None


def estimate_tokens(text: str) -> int:
    tokenizer = get_tokenizer()
    try:
        return len(tokenizer.encode(text)) if tokenizer else len(text) // 4
    except Exception:
        # Fallback: roughly 4 characters per token
        return len(text) // 4


def estimate_conversation_tokens(system_prompt: str, history: Sequence[Message]) -> int:
    """Estimate the prompt size of a request from its text content."""
    text_content = system_prompt
    for message in history:
        for block in message.blocks:
            if isinstance(block, TextBlock):
                text_content += block.text
            elif isinstance(block, ToolUseBlock):
                text_content += block.name + str(block.input)
            elif isinstance(block, ToolResultBlock):
                text_content += block.content
    return estimate_tokens(text_content)


def placeholder_call_id() -> str:
    """Correlation id for vendors that do not assign one to tool calls."""
    return f"call_{uuid.uuid4().hex[:24]}"


class ProviderRateLimiter:
    """Client-side request and token throttling using the limits library."""

    def __init__(
        self,
        requests_per_minute: int = 50,
        tokens_per_minute: int = 0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum requests per minute, 0 disables
            tokens_per_minute: Maximum estimated tokens per minute, 0 disables
            sleep: Blocking sleep used while a window is exhausted
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)
        self._sleep = sleep

        self.request_limit = parse(f"{requests_per_minute}/minute") if requests_per_minute > 0 else None
        self.token_limit = parse(f"{tokens_per_minute}/minute") if tokens_per_minute > 0 else None

    def check_rate_limit(self, estimated_tokens: int, identifier: str = "provider") -> None:
        """Block until the request fits in the current windows."""
        logger.debug(f"Checking rate limit for {estimated_tokens} tokens, identifier: {identifier}")

        if self.request_limit and not self.limiter.hit(self.request_limit, identifier):
            self._wait(self.request_limit, identifier, "Request")

        token_identifier = f"{identifier}_tokens"
        if self.token_limit and not self.limiter.hit(
            self.token_limit, token_identifier, cost=max(1, estimated_tokens)
        ):
            self._wait(self.token_limit, token_identifier, "Token")

    def _wait(self, item: RateLimitItem, identifier: str, label: str) -> None:
        window_stats = self.limiter.get_window_stats(item, identifier)
        wait_time = max(0.0, window_stats.reset_time - time.time())
        if wait_time > 0:
            logger.warning(f"{label} rate limit exceeded, waiting {wait_time:.2f}s")
            self._sleep(wait_time)


class ProviderAdapter(ABC):
    """Translates canonical messages to and from one vendor's wire format.

    Subclasses implement ``_send`` and the vendor-specific builders and tool
    translation. Classification works on canonical messages, which every
    adapter produces from its vendor response, so it is shared here.
    """

    provider = "base"

    def __init__(
        self,
        config: ProviderConfig,
        tools: Sequence[ToolDescriptor] = (),
        rate_limiter: ProviderRateLimiter | None = None,
    ):
        self.config = config
        self.tools = list(tools)
        self.rate_limiter = rate_limiter

    def send(self, system_prompt: str, history: Sequence[Message], tool_choice: ToolChoice = "auto") -> ProviderTurn:
        """Issue one request carrying the full history.

        Never raises for provider-side failures: they are logged and
        reported as ``ok=False``. No retries are attempted.
        """
        if self.config.requires_api_key and not self.config.api_key:
            logger.error(f"{self.provider} API key not set.")
            return ProviderTurn.failure(f"{self.provider} API key not set")

        estimated_tokens = estimate_conversation_tokens(system_prompt, history)
        logger.debug(f"Estimated tokens: {estimated_tokens}")
        if self.rate_limiter:
            self.rate_limiter.check_rate_limit(estimated_tokens, identifier=self.provider)

        logger.debug(
            f"Calling {self.provider} ({self.config.model}) with {len(history)} messages, "
            f"{len(self.tools)} tools, tool_choice={tool_choice}"
        )
        try:
            turn = self._send(system_prompt, list(history), tool_choice)
        except ProviderError as e:
            logger.error(f"Error calling {self.provider} API: {e}")
            return ProviderTurn.failure(str(e))

        logger.debug(f"Response received - Stop reason: {turn.stop_reason}, messages: {len(turn.messages)}")
        return turn

    @abstractmethod
    def _send(self, system_prompt: str, history: list[Message], tool_choice: ToolChoice) -> ProviderTurn:
        """Perform the round-trip; raise ProviderError on any failure."""

    def close(self) -> None:
        """Release transport resources the adapter created itself."""

    # Classification

    def is_tool_message(self, message: Message) -> bool:
        return any(isinstance(block, ToolUseBlock) for block in message.blocks)

    def is_text_message(self, message: Message) -> bool:
        return any(isinstance(block, TextBlock) and block.text for block in message.blocks)

    def extract_tool_calls(self, message: Message) -> list[ToolCall]:
        return [
            ToolCall(id=block.id, name=block.name, input=block.input)
            for block in message.blocks
            if isinstance(block, ToolUseBlock)
        ]

    def get_text(self, message: Message) -> str:
        return "".join(block.text for block in message.blocks if isinstance(block, TextBlock))

    # Builders

    def build_user_message(self, text: str) -> Message:
        return Message(role=Role.USER, content=text)

    def build_image_message(self, image: ImageBlock, text: str) -> Message:
        return Message(role=Role.USER, content=[image, TextBlock(text=f"User input for image: {text}")])

    def build_assistant_message(self, text: str) -> Message:
        return Message(role=Role.ASSISTANT, content=text)

    def build_tool_use_message(self, call: ToolCall) -> Message:
        return Message(role=Role.ASSISTANT, content=[ToolUseBlock(id=call.id, name=call.name, input=call.input)])

    @abstractmethod
    def build_tool_result_message(self, tool_call_id: str, result: str, is_error: bool = False) -> Message:
        """Message carrying a tool result, in the role this vendor expects."""

    # Tool declarations

    @abstractmethod
    def format_tools(self, tools: Sequence[ToolDescriptor]) -> list[dict[str, Any]]:
        """Translate canonical tool descriptors to the vendor declaration shape."""

    @abstractmethod
    def format_tool_choice(self, tool_choice: ToolChoice) -> Any:
        """Translate "auto" or a forced tool name to the vendor shape."""


class HttpProviderAdapter(ProviderAdapter):
    """Adapter that talks JSON over a plain httpx client."""

    def __init__(
        self,
        config: ProviderConfig,
        tools: Sequence[ToolDescriptor] = (),
        rate_limiter: ProviderRateLimiter | None = None,
        http_client: httpx.Client | None = None,
    ):
        super().__init__(config, tools, rate_limiter)
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=config.timeout)

    def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            response = self._http.post(url, json=payload, headers=headers, params=params)
        except httpx.HTTPError as exc:
            raise ProviderError(f"request failed: {exc}") from exc

        if response.status_code != 200:
            raise ProviderError(f"{response.status_code} {response.reason_phrase}: {response.text[:500]}")

        try:
            body = response.json()
        except ValueError as exc:
            raise ProviderError("response body is not valid JSON") from exc

        if not isinstance(body, dict):
            raise ProviderError("response body is not a JSON object")
        return body

    def close(self) -> None:
        if self._owns_http:
            self._http.close()
