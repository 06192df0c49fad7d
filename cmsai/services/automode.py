"""Automode: repeated autonomous turns until done, out of budget or interrupted."""

import threading
from collections.abc import Callable

from cmsai.models.automode import DEFAULT_MAX_ITERATIONS, AutomodeResult, AutomodeStatus
from cmsai.prompts import CONTINUATION_PROMPT
from cmsai.services.conversation import ConversationOrchestrator, TurnOutcome
from cmsai.utils.logging import get_logger

logger = get_logger(__name__)

INTERRUPTED_MESSAGE = "Automode interrupted. How can I assist you further?"

IterationListener = Callable[[int, int, TurnOutcome], None]


class AutomodeSupervisor:
    """Drives the orchestrator through an automode run.

    The first pass sends the user's goal; every later pass sends the
    continuation prompt. A response containing the exit phrase completes the
    run; otherwise it ends once the iteration budget is spent.
    """

    def __init__(self, orchestrator: ConversationOrchestrator, on_iteration: IterationListener | None = None):
        self.orchestrator = orchestrator
        self.on_iteration = on_iteration

    def run(
        self,
        initial_input: str,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        cancel_event: threading.Event | None = None,
    ) -> AutomodeResult:
        """Run automode for at most ``max_iterations`` passes.

        Args:
            initial_input: The user's goal, sent on the first pass
            max_iterations: Iteration budget, at least 1
            cancel_event: Checked before each pass; a set event interrupts the run

        Raises:
            ValueError: If the goal is blank or the budget is below 1

        Returns:
            Final status, passes performed and each pass's response text
        """
        if not initial_input.strip():
            raise ValueError("Automode needs a goal")

        state = self.orchestrator.automode
        state.start(max_iterations)
        logger.info(f"Automode started with a budget of {max_iterations} iterations")

        responses: list[str] = []
        user_input = initial_input
        try:
            while not state.exhausted:
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Automode cancellation requested")
                    return self._interrupt(responses)

                outcome = self.orchestrator.chat(
                    user_input,
                    current_iteration=state.iteration_count + 1,
                    max_iterations=state.max_iterations,
                )
                state.advance()
                responses.append(outcome.text)

                if self.on_iteration:
                    self.on_iteration(state.iteration_count, state.max_iterations, outcome)

                if outcome.sentinel_seen or state.exit_phrase in outcome.text:
                    state.finish(AutomodeStatus.COMPLETED)
                    return AutomodeResult(AutomodeStatus.COMPLETED, state.iteration_count, responses)

                user_input = CONTINUATION_PROMPT
        except KeyboardInterrupt:
            logger.info("Automode interrupted by user")
            return self._interrupt(responses)
        except Exception:
            logger.exception(f"Automode failed after {state.iteration_count} iterations")
            state.finish(AutomodeStatus.FAILED)
            raise

        logger.warning("Max iterations reached. Exiting automode.")
        state.finish(AutomodeStatus.EXHAUSTED)
        return AutomodeResult(AutomodeStatus.EXHAUSTED, state.iteration_count, responses)

    def _interrupt(self, responses: list[str]) -> AutomodeResult:
        orchestrator = self.orchestrator
        # Keep the history ending on an assistant message
        if orchestrator.history.last_is_user():
            orchestrator.append_message(orchestrator.adapter.build_assistant_message(INTERRUPTED_MESSAGE))

        state = orchestrator.automode
        state.finish(AutomodeStatus.INTERRUPTED)
        return AutomodeResult(AutomodeStatus.INTERRUPTED, state.iteration_count, responses)
