"""Automode state and results."""

from dataclasses import dataclass, field
from enum import StrEnum

from cmsai.prompts import AUTOMODE_EXIT_PHRASE
from cmsai.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_ITERATIONS = 25


class AutomodeStatus(StrEnum):
    """Lifecycle of one automode run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    EXHAUSTED = "exhausted"
    INTERRUPTED = "interrupted"
    FAILED = "failed"


@dataclass
class AutomodeState:
    """Automode flags shared between the supervisor and the system prompt."""

    active: bool = False
    iteration_count: int = 0
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    exit_phrase: str = AUTOMODE_EXIT_PHRASE
    status: AutomodeStatus = AutomodeStatus.IDLE

    def start(self, max_iterations: int) -> None:
        """Enter the running state with a fresh counter."""
        if max_iterations < 1:
            raise ValueError("Automode needs at least one iteration")
        self.active = True
        self.iteration_count = 0
        self.max_iterations = max_iterations
        self.status = AutomodeStatus.RUNNING

    def advance(self) -> None:
        self.iteration_count += 1

    @property
    def exhausted(self) -> bool:
        return self.iteration_count >= self.max_iterations

    def finish(self, status: AutomodeStatus) -> None:
        """Leave the running state; regular chat resumes after this."""
        logger.info(f"Automode finished: {status} after {self.iteration_count}/{self.max_iterations} iterations")
        self.active = False
        self.status = status


@dataclass
class AutomodeResult:
    """Outcome of an automode run."""

    status: AutomodeStatus
    iterations: int
    responses: list[str] = field(default_factory=list)

    @property
    def last_response(self) -> str:
        return self.responses[-1] if self.responses else ""
