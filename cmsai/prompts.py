"""Chat system prompt template and rendering."""

from pathlib import Path

AUTOMODE_EXIT_PHRASE = "AUTOMODE_COMPLETE"

AUTOMODE_ON = "You are currently in automode."
AUTOMODE_OFF = "You are not in automode."

CONTINUATION_PROMPT = "Continue with the next step."

CHAT_SYSTEM_PROMPT = """You are an expert CMS developer assistant running inside a content management system.
You help the user build modules, blocks and reusable theme components, and you can read and change files.

The active theme folder is: {active_theme_folder}
Reusable UI components live in the "components" directory of the active theme.

You have access to these tools:
- create_files: create one or more new files, each with a path and its full content.
- write_to_file: write full content to a file; existing files are updated in place.
- read_file: read a file, or every file inside a directory.
- list_files: list the files and directories at a path.
- tavily_search: search the web for current information.

Use a tool whenever the user asks to create, inspect or change files. Always send complete file contents.
When the user asks to add, edit, update, change or modify something, use write_to_file.

{automode_status}
{iteration_info}

When you are in automode:
1. Break the goal into small, concrete steps and work through them one at a time.
2. Use the tools to make real progress in every iteration and explain briefly what you did.
3. When the whole goal is achieved, include the phrase "{exit_phrase}" in your response.
4. Do not ask the user questions in automode; make reasonable decisions and continue.
"""


def iteration_info(current_iteration: int | None, max_iterations: int | None) -> str:
    if current_iteration is None or max_iterations is None:
        return ""
    return f"You are currently on iteration {current_iteration} out of {max_iterations} in automode."


def render_system_prompt(
    template: str,
    automode_active: bool,
    current_iteration: int | None = None,
    max_iterations: int | None = None,
    theme_folder: str = "",
    exit_phrase: str = AUTOMODE_EXIT_PHRASE,
) -> str:
    """Fill the template placeholders.

    Replacement is literal so templates may contain other braces
    (code samples, JSON) without escaping.
    """
    replacements = {
        "{automode_status}": AUTOMODE_ON if automode_active else AUTOMODE_OFF,
        "{iteration_info}": iteration_info(current_iteration, max_iterations),
        "{active_theme_folder}": theme_folder,
        "{exit_phrase}": exit_phrase,
    }
    prompt = template
    for placeholder, value in replacements.items():
        prompt = prompt.replace(placeholder, value)
    return prompt


def load_prompt_template(path: str | None = None) -> str:
    """Load a custom template from disk, falling back to the built-in one."""
    if not path:
        return CHAT_SYSTEM_PROMPT
    return Path(path).read_text(encoding="utf-8")
