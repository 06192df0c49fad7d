"""Conversation orchestrator: one user turn with at most one tool round-trip."""

import re
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from cmsai.clients.base import ProviderAdapter, ToolChoice
from cmsai.models.automode import AutomodeState
from cmsai.models.llm import ImageBlock, LLMUsage, Message, ProviderTurn, ToolCall
from cmsai.prompts import CHAT_SYSTEM_PROMPT, render_system_prompt
from cmsai.services.history import ConversationHistory
from cmsai.services.images import ImageLoadError, load_image
from cmsai.tools.base import ToolOutcome
from cmsai.tools.registry import ToolsRegistry
from cmsai.utils.logging import get_logger

logger = get_logger(__name__)

ERROR_RESPONSE = "I'm sorry, there was an error processing the message. Please try again."
IMAGE_ERROR_RESPONSE = "I'm sorry, there was an error processing the image. Please try again."
EMPTY_INPUT_RESPONSE = "Please enter a message."

EDIT_INTENT_PATTERN = re.compile(r"^(add|edit|update|change|modify)\s", re.IGNORECASE)
EDIT_TOOL = "write_to_file"

ToolListener = Callable[[ToolCall, ToolOutcome], None]


@dataclass
class TurnOutcome:
    """What a user turn produced."""

    text: str
    sentinel_seen: bool = False
    ok: bool = True


def tag_edit_intent(user_input: str) -> str:
    """Hint write_to_file when the input starts with an editing verb."""
    if EDIT_INTENT_PATTERN.match(user_input):
        return f"{user_input} ({EDIT_TOOL})"
    return user_input


class ConversationOrchestrator:
    """Owns the conversation history and runs the ask, execute, re-ask cycle."""

    def __init__(
        self,
        adapter: ProviderAdapter,
        registry: ToolsRegistry,
        history: ConversationHistory | None = None,
        automode: AutomodeState | None = None,
        prompt_template: str = CHAT_SYSTEM_PROMPT,
        theme_folder: str = "",
        on_tool: ToolListener | None = None,
        http_client: httpx.Client | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            adapter: Provider adapter for the selected model
            registry: Tools available to the model
            history: Session history, a fresh one by default
            automode: Session automode state, read when rendering the prompt
            prompt_template: System prompt template with placeholders
            theme_folder: Value for the active theme folder placeholder
            on_tool: Called after every tool execution
            http_client: Client used to fetch image URLs
        """
        self.adapter = adapter
        self.registry = registry
        self.history = history if history is not None else ConversationHistory()
        self.automode = automode if automode is not None else AutomodeState()
        self.prompt_template = prompt_template
        self.theme_folder = theme_folder
        self.on_tool = on_tool
        self.http_client = http_client
        self.usage = LLMUsage()

    def system_prompt(self, current_iteration: int | None = None, max_iterations: int | None = None) -> str:
        return render_system_prompt(
            self.prompt_template,
            automode_active=self.automode.active,
            current_iteration=current_iteration,
            max_iterations=max_iterations,
            theme_folder=self.theme_folder,
            exit_phrase=self.automode.exit_phrase,
        )

    def chat(
        self,
        user_input: str,
        image: str | ImageBlock | None = None,
        current_iteration: int | None = None,
        max_iterations: int | None = None,
        tool_choice: ToolChoice = "auto",
    ) -> TurnOutcome:
        """Process one user turn.

        Args:
            user_input: Raw user text
            image: Optional image URL, local path or already loaded block
            current_iteration: Automode pass number, for the system prompt
            max_iterations: Automode budget, for the system prompt
            tool_choice: "auto" or the name of a tool to force on the first request

        Returns:
            The assistant text and whether the exit phrase was seen
        """
        logger.info(f"Processing turn: {len(self.history)} messages in history, image={image is not None}")

        if image is None and not user_input.strip():
            logger.warning("Ignoring blank user input")
            return TurnOutcome(text=EMPTY_INPUT_RESPONSE, ok=False)

        if image is not None:
            if isinstance(image, str):
                try:
                    image = load_image(image, self.http_client)
                except ImageLoadError as e:
                    logger.error(f"Error encoding image: {e}")
                    return TurnOutcome(text=IMAGE_ERROR_RESPONSE, ok=False)
            message = self.adapter.build_image_message(image, user_input)
        else:
            message = self.adapter.build_user_message(tag_edit_intent(user_input))

        self.history.append(message)

        system_prompt = self.system_prompt(current_iteration, max_iterations)
        turn = self._send(system_prompt, tool_choice)
        if not turn.ok:
            return TurnOutcome(text=ERROR_RESPONSE, ok=False)

        response_parts: list[str] = []
        pending_calls: list[ToolCall] = []
        for reply in turn.messages:
            if self.adapter.is_tool_message(reply):
                pending_calls.extend(self.adapter.extract_tool_calls(reply))
            elif self.adapter.is_text_message(reply):
                response_parts.append(self.adapter.get_text(reply))

        if pending_calls:
            self._run_tools(pending_calls)

            followup = self._send(system_prompt, "auto")
            if not followup.ok:
                return TurnOutcome(text=ERROR_RESPONSE, ok=False)

            for reply in followup.messages:
                if self.adapter.is_text_message(reply):
                    response_parts.append(self.adapter.get_text(reply))
                elif self.adapter.is_tool_message(reply):
                    ignored = [call.name for call in self.adapter.extract_tool_calls(reply)]
                    logger.info(f"Not executing tool calls requested after tool results: {ignored}")

        response = "".join(response_parts)
        if response:
            self.history.append(self.adapter.build_assistant_message(response))

        sentinel_seen = self.automode.exit_phrase in response
        logger.info(
            f"Turn complete: {len(response)} chars, {len(pending_calls)} tool calls, "
            f"sentinel={sentinel_seen}, total tokens so far: {self.usage.total_tokens}"
        )
        return TurnOutcome(text=response, sentinel_seen=sentinel_seen)

    def _send(self, system_prompt: str, tool_choice: ToolChoice) -> ProviderTurn:
        turn = self.adapter.send(system_prompt, self.history.snapshot(), tool_choice)
        if turn.ok:
            self.usage.add(turn.usage)
        else:
            logger.warning(f"Provider request failed, aborting turn: {turn.error}")
        return turn

    def _run_tools(self, calls: list[ToolCall]) -> None:
        """Execute each call and append its tool-use and tool-result pair."""
        logger.info(f"LLM wants to use {len(calls)} tools")
        for call in calls:
            outcome = self.registry.execute(call.name, call.input)
            if not outcome.ok:
                logger.warning(f"Tool {call.name} failed ({outcome.error_kind}): {outcome.text[:200]}")

            self.history.append(self.adapter.build_tool_use_message(call))
            self.history.append(
                self.adapter.build_tool_result_message(call.id, outcome.render(), is_error=not outcome.ok)
            )

            if self.on_tool:
                self.on_tool(call, outcome)

    def append_message(self, message: Message) -> None:
        self.history.append(message)
