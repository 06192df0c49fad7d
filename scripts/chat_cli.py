#!/usr/bin/env python3
"""Interactive chat CLI for the CMS developer assistant."""

import argparse
import sys

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.text import Text

from cmsai.config import ConfigurationError, get_settings
from cmsai.models.automode import AutomodeStatus
from cmsai.models.llm import ToolCall
from cmsai.services.conversation import TurnOutcome
from cmsai.services.session import ChatSession, Intent
from cmsai.tools.base import ToolOutcome
from cmsai.utils.logging import LogConfig, setup_logging


class ChatCLI:
    """Interactive chat interface over a ChatSession."""

    def __init__(self, model_key: str | None = None):
        """Initialize chat CLI."""
        self.console = Console()
        self.session = ChatSession.from_settings(
            model_key=model_key,
            on_tool=self._show_tool,
            on_iteration=self._show_iteration,
        )

    def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                f"[bold blue]CMS AI Chat[/bold blue] ({self.session.model.label})\n"
                "Type 'exit' to end the conversation.\n"
                "Type 'image' to include an image in your message.\n"
                "Type 'automode [number]' to enter autonomous mode with a specific number of iterations.\n"
                "Type 'scrape' to scrape a website page.\n"
                "While in automode, press Ctrl+C at any time to return to regular chat.",
                border_style="blue",
            )
        )

        try:
            while True:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")
                command = self.session.parse(user_input)

                if command.intent == Intent.EXIT:
                    break
                elif command.intent == Intent.BLANK:
                    continue
                elif command.intent == Intent.SCRAPE:
                    url = Prompt.ask("[bold cyan]Enter URL to scrape here[/bold cyan]")
                    self._display_response(self.session.scrape(url))
                elif command.intent == Intent.IMAGE:
                    self._image_turn()
                elif command.intent == Intent.AUTOMODE:
                    self._automode(command.max_iterations)
                else:
                    self._display_response(self.session.chat(command.text))

        except (KeyboardInterrupt, EOFError):
            pass
        finally:
            self.console.print("\n[yellow]Goodbye![/yellow]")
            self.session.close()

    def _image_turn(self) -> None:
        if not self.session.model.supports_images:
            self.console.print("[red]Image not supported for this model.[/red]")
            return
        source = Prompt.ask("[bold cyan]Enter URL or path for image here[/bold cyan]")
        prompt = Prompt.ask("[bold cyan]You (prompt for image)[/bold cyan]")
        self._display_response(self.session.chat_with_image(source, prompt))

    def _automode(self, max_iterations: int | None) -> None:
        self.console.print(
            f"[magenta]Entering automode with {max_iterations} iterations. "
            "Press Ctrl+C to exit automode at any time.[/magenta]"
        )
        goal = Prompt.ask("[bold cyan]You[/bold cyan]")
        while not goal.strip():
            goal = Prompt.ask("[bold cyan]You[/bold cyan]")
        result = self.session.automode(goal, max_iterations)

        if result.status == AutomodeStatus.COMPLETED:
            self.console.print("[magenta]Automode completed.[/magenta]")
        elif result.status == AutomodeStatus.EXHAUSTED:
            self.console.print("[magenta]Max iterations reached. Exiting automode.[/magenta]")
        else:
            self.console.print("\n[magenta]Automode interrupted by user. Exiting automode.[/magenta]")

    def _show_iteration(self, iteration: int, max_iterations: int, outcome: TurnOutcome) -> None:
        self._display_response(outcome, title=f"Automode {iteration}/{max_iterations}")

    def _show_tool(self, call: ToolCall, outcome: ToolOutcome) -> None:
        style = "yellow" if outcome.ok else "red"
        self.console.print(
            Panel(
                Text(outcome.render()[:2000]),
                title=f"[bold {style}]Tool: {call.name}[/bold {style}]",
                border_style=style,
            )
        )

    def _display_response(self, outcome: TurnOutcome, title: str = "Assistant") -> None:
        """Display the assistant response with nice formatting."""
        if not outcome.text:
            return
        style = "green" if outcome.ok else "red"
        self.console.print(
            Panel(
                Markdown(outcome.text),
                title=f"[bold {style}]{title}[/bold {style}]",
                border_style=style,
                padding=(1, 2),
            )
        )


def main() -> None:
    """Main entry point."""
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Chat with the CMS developer assistant")
    parser.add_argument("--model", default=settings.default_model, help="Model key, e.g. claude3, openai, gemini")
    args = parser.parse_args()

    setup_logging(LogConfig(level=settings.log_level, rich=True))

    try:
        cli = ChatCLI(model_key=args.model)
    except ConfigurationError as e:
        Console(stderr=True).print(f"[red]{e}[/red]")
        sys.exit(1)
    cli.start()


if __name__ == "__main__":
    main()
