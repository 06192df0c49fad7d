"""File tools: create_files, write_to_file, read_file and list_files."""

from pathlib import Path

from pydantic import BaseModel, Field

from cmsai.tools.base import ToolDefinition, ToolErrorKind, ToolOutcome
from cmsai.utils.logging import get_logger

logger = get_logger(__name__)


class FileSpec(BaseModel):
    """One file to create."""

    path: str = Field(..., min_length=1, description="Path of the file, relative to the workspace root")
    content: str = Field(..., description="Complete content of the file")


class CreateFilesInput(BaseModel):
    """Input schema for create_files."""

    files: list[FileSpec] = Field(..., min_length=1, description="Files to create, each with a path and content")


class WriteToFileInput(BaseModel):
    """Input schema for write_to_file."""

    path: str = Field(..., min_length=1, description="Path of the file to write")
    content: str = Field(..., min_length=1, description="Complete new content of the file")


class ReadFileInput(BaseModel):
    """Input schema for read_file."""

    path: str = Field(..., min_length=1, description="Path of a file, or of a directory to read every file in")


class ListFilesInput(BaseModel):
    """Input schema for list_files."""

    path: str = Field(".", description="Directory to list, defaults to the workspace root")


def positional_line_diff(old_content: str, new_content: str) -> list[str]:
    """Compare two texts line by line, by index.

    Lines are not aligned by content: an inserted line makes every later
    line count as changed.
    """
    old_lines = old_content.splitlines()
    new_lines = new_content.splitlines()

    changes: list[str] = []
    for index in range(max(len(old_lines), len(new_lines))):
        line_number = index + 1
        if index >= len(old_lines):
            changes.append(f"Line {line_number} added: {new_lines[index]!r}")
        elif index >= len(new_lines):
            changes.append(f"Line {line_number} removed: {old_lines[index]!r}")
        elif old_lines[index] != new_lines[index]:
            changes.append(f"Line {line_number} changed: {old_lines[index]!r} -> {new_lines[index]!r}")
    return changes


class FileTools:
    """File operations rooted at a workspace directory."""

    def __init__(self, root: str | Path = "."):
        self.root = Path(root)

    def resolve(self, path: str) -> Path:
        candidate = Path(path)
        return candidate if candidate.is_absolute() else self.root / candidate

    def create_files(self, params: CreateFilesInput) -> ToolOutcome:
        results = []
        failed = False
        for spec in params.files:
            target = self.resolve(spec.path)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(spec.content, encoding="utf-8")
            except OSError as e:
                logger.error(f"Failed to create {target}: {e}")
                results.append(f"Error creating file {spec.path}: {e}")
                failed = True
                continue
            logger.info(f"Created file {target}")
            results.append(f"File created: {spec.path}")

        text = "\n".join(results)
        if failed:
            return ToolOutcome.failure(ToolErrorKind.IO_ERROR, text)
        return ToolOutcome.success(text)

    def write_to_file(self, params: WriteToFileInput) -> ToolOutcome:
        target = self.resolve(params.path)

        if not target.exists():
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(params.content, encoding="utf-8")
            except OSError as e:
                return ToolOutcome.failure(ToolErrorKind.IO_ERROR, f"Error writing file {params.path}: {e}")
            logger.info(f"Created file {target}")
            return ToolOutcome.success(f"File created: {params.path}")

        try:
            old_content = target.read_text(encoding="utf-8", errors="replace")
            changes = positional_line_diff(old_content, params.content)
            # Written even when nothing changed
            target.write_text(params.content, encoding="utf-8")
        except OSError as e:
            return ToolOutcome.failure(ToolErrorKind.IO_ERROR, f"Error writing file {params.path}: {e}")

        if not changes:
            return ToolOutcome.success("No changes detected.")

        logger.info(f"Updated file {target}: {len(changes)} line changes")
        return ToolOutcome.success(f"Changes applied to {params.path}:\n" + "\n".join(changes))

    def read_file(self, params: ReadFileInput) -> ToolOutcome:
        target = self.resolve(params.path)
        if not target.exists():
            return ToolOutcome.failure(ToolErrorKind.NOT_FOUND, f"Error: File not found: {params.path}")

        try:
            if target.is_file():
                return ToolOutcome.success(target.read_text(encoding="utf-8", errors="replace"))

            sections = []
            for file_path in sorted(p for p in target.rglob("*") if p.is_file()):
                content = file_path.read_text(encoding="utf-8", errors="replace")
                sections.append(f"Filename: {file_path.relative_to(target)}\nContent:\n{content}\n")
        except OSError as e:
            return ToolOutcome.failure(ToolErrorKind.IO_ERROR, f"Error reading {params.path}: {e}")

        if not sections:
            return ToolOutcome.success(f"No files found in {params.path}.")
        return ToolOutcome.success("".join(sections))

    def list_files(self, params: ListFilesInput) -> ToolOutcome:
        target = self.resolve(params.path)
        if not target.is_dir():
            return ToolOutcome.failure(ToolErrorKind.NOT_FOUND, f"Error: Directory not found: {params.path}")

        try:
            entries = sorted(target.iterdir(), key=lambda p: p.name)
        except OSError as e:
            return ToolOutcome.failure(ToolErrorKind.IO_ERROR, f"Error listing {params.path}: {e}")

        if not entries:
            return ToolOutcome.success(f"No files found in {params.path}.")
        return ToolOutcome.success("\n".join(f"{p.name}/" if p.is_dir() else p.name for p in entries))


def create_file_tools(file_tools: FileTools) -> list[ToolDefinition]:
    return [
        ToolDefinition(
            name="create_files",
            description=(
                "Create one or more new files with the given contents. Parent directories are created "
                "as needed. Use this for new modules, blocks and components."
            ),
            input_schema_class=CreateFilesInput,
            handler=file_tools.create_files,
        ),
        ToolDefinition(
            name="write_to_file",
            description=(
                "Write the complete content to a file. If the file exists it is updated and the changed "
                "lines are reported; otherwise the file is created."
            ),
            input_schema_class=WriteToFileInput,
            handler=file_tools.write_to_file,
        ),
        ToolDefinition(
            name="read_file",
            description=(
                "Read the content of a file. If the path is a directory, the content of every file inside "
                "it is returned."
            ),
            input_schema_class=ReadFileInput,
            handler=file_tools.read_file,
        ),
        ToolDefinition(
            name="list_files",
            description="List the files and directories at a path. Directories end with '/'.",
            input_schema_class=ListFilesInput,
            handler=file_tools.list_files,
        ),
    ]
