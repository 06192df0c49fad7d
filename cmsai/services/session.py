"""Chat session: command parsing and dispatch on top of the orchestrator."""

import threading
from dataclasses import dataclass
from enum import StrEnum

import httpx

from cmsai.clients.factory import ModelCatalog, ModelSpec, ProviderFactory
from cmsai.config import Settings, get_settings
from cmsai.models.automode import AutomodeResult, AutomodeState
from cmsai.prompts import load_prompt_template
from cmsai.services.automode import AutomodeSupervisor, IterationListener
from cmsai.services.conversation import ConversationOrchestrator, ToolListener, TurnOutcome
from cmsai.services.history import ConversationHistory
from cmsai.services.scraper import ScrapeError, scrape_url
from cmsai.tools.files import ReadFileInput
from cmsai.tools.registry import ToolsRegistry
from cmsai.utils.logging import get_logger

logger = get_logger(__name__)

SUMMARY_PROMPT = "Please give me a one sentence summary of this content: {content}"
IMAGE_NOT_SUPPORTED = "Image not supported for this model."
NO_FILE_CONTENTS = "No file contents found at the specified path."


class Intent(StrEnum):
    EXIT = "exit"
    IMAGE = "image"
    AUTOMODE = "automode"
    SCRAPE = "scrape"
    CHAT = "chat"
    BLANK = "blank"


@dataclass(frozen=True)
class Command:
    intent: Intent
    text: str = ""
    max_iterations: int | None = None


def parse_command(user_input: str, default_iterations: int = 25) -> Command:
    """Classify one line of user input.

    ``exit``, ``image`` and ``scrape`` match the whole line, case-insensitively.
    Any line starting with ``automode`` enters automode, with an optional
    iteration count as the second word. Everything else is chat.
    """
    text = user_input.strip()
    if not text:
        return Command(Intent.BLANK)

    lowered = text.lower()
    if lowered == "exit":
        return Command(Intent.EXIT)
    if lowered == "image":
        return Command(Intent.IMAGE)
    if lowered == "scrape":
        return Command(Intent.SCRAPE)
    if lowered.startswith("automode"):
        parts = text.split()
        iterations = default_iterations
        if len(parts) > 1 and parts[1].isdigit() and int(parts[1]) > 0:
            iterations = int(parts[1])
        return Command(Intent.AUTOMODE, max_iterations=iterations)
    return Command(Intent.CHAT, text=user_input)


class ChatSession:
    """One interactive session: a model, its tools, history and automode state."""

    def __init__(
        self,
        orchestrator: ConversationOrchestrator,
        model: ModelSpec,
        default_iterations: int = 25,
        on_iteration: IterationListener | None = None,
        http_client: httpx.Client | None = None,
    ):
        self.orchestrator = orchestrator
        self.model = model
        self.default_iterations = default_iterations
        self.supervisor = AutomodeSupervisor(orchestrator, on_iteration=on_iteration)
        self.http_client = http_client

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        model_key: str | None = None,
        catalog: ModelCatalog | None = None,
        on_tool: ToolListener | None = None,
        on_iteration: IterationListener | None = None,
        http_client: httpx.Client | None = None,
    ) -> "ChatSession":
        """Wire a session from settings.

        Raises:
            ConfigurationError: If the model is unknown or its key is missing
        """
        settings = settings or get_settings()
        factory = ProviderFactory(settings, catalog)
        key = model_key or settings.default_model
        spec = factory.catalog.get(key)

        registry = ToolsRegistry(
            workspace_dir=settings.workspace_dir,
            tavily_api_key=settings.tavily_api_key,
            tavily_url=settings.tavily_url,
            http_client=http_client,
        )
        adapter = factory.build(key, registry.descriptors(), http_client=http_client)
        orchestrator = ConversationOrchestrator(
            adapter,
            registry,
            history=ConversationHistory(),
            automode=AutomodeState(exit_phrase=settings.automode_exit_phrase),
            prompt_template=load_prompt_template(settings.system_prompt_path),
            theme_folder=settings.theme_folder,
            on_tool=on_tool,
            http_client=http_client,
        )
        return cls(
            orchestrator,
            spec,
            default_iterations=settings.automode_max_iterations,
            on_iteration=on_iteration,
            http_client=http_client,
        )

    @property
    def history(self) -> ConversationHistory:
        return self.orchestrator.history

    def parse(self, user_input: str) -> Command:
        return parse_command(user_input, self.default_iterations)

    def chat(self, user_input: str) -> TurnOutcome:
        return self.orchestrator.chat(user_input)

    def chat_with_image(self, image_source: str, user_input: str) -> TurnOutcome:
        if not self.model.supports_images:
            logger.info(f"Rejected image turn for model {self.model.key}")
            return TurnOutcome(text=IMAGE_NOT_SUPPORTED, ok=False)
        return self.orchestrator.chat(user_input, image=image_source)

    def automode(
        self,
        goal: str,
        max_iterations: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> AutomodeResult:
        return self.supervisor.run(goal, max_iterations or self.default_iterations, cancel_event)

    def scrape(self, url: str) -> TurnOutcome:
        """Summarize a web page in one sentence."""
        try:
            content = scrape_url(url, self.http_client)
        except ScrapeError as e:
            logger.error(f"Error scraping URL: {e}")
            return TurnOutcome(text=f"Error scraping URL: {e}", ok=False)
        return self.orchestrator.chat(SUMMARY_PROMPT.format(content=content))

    def summarize_file(self, path: str) -> TurnOutcome:
        """Summarize a local file, or every file under a directory."""
        outcome = self.orchestrator.registry.file_tools.read_file(ReadFileInput(path=path))
        if not outcome.ok or not outcome.text.strip() or outcome.text.startswith("No files found in"):
            return TurnOutcome(text=NO_FILE_CONTENTS, ok=False)
        return self.orchestrator.chat(SUMMARY_PROMPT.format(content=outcome.text))

    def reset(self) -> None:
        """Forget the conversation."""
        self.history.clear()

    def close(self) -> None:
        """Close the HTTP clients the session created. An injected client stays open."""
        self.orchestrator.adapter.close()
        self.orchestrator.registry.close()
