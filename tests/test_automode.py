"""Tests for the automode supervisor."""

import threading

import pytest

from cmsai.models.automode import AutomodeState, AutomodeStatus
from cmsai.models.llm import Role
from cmsai.prompts import AUTOMODE_EXIT_PHRASE, AUTOMODE_ON, CONTINUATION_PROMPT
from cmsai.services.automode import INTERRUPTED_MESSAGE, AutomodeSupervisor
from cmsai.services.conversation import ConversationOrchestrator
from cmsai.tools.registry import ToolsRegistry


@pytest.fixture
def registry(tmp_path):
    return ToolsRegistry(workspace_dir=str(tmp_path))


class TestAutomodeRun:
    """Tests for automode termination."""

    def test_exhausts_budget(self, scripted, registry):
        """Test a run without the exit phrase stops after the budget."""
        adapter = scripted([scripted.text(f"Step {n} done.") for n in range(1, 6)])
        orchestrator = ConversationOrchestrator(adapter, registry)

        result = AutomodeSupervisor(orchestrator).run("Build a hero block", max_iterations=3)

        assert result.status == AutomodeStatus.EXHAUSTED
        assert result.iterations == 3
        assert result.responses == ["Step 1 done.", "Step 2 done.", "Step 3 done."]
        assert len(adapter.requests) == 3
        assert orchestrator.automode.active is False
        assert orchestrator.automode.status == AutomodeStatus.EXHAUSTED

    def test_completes_on_exit_phrase(self, scripted, registry):
        """Test the run stops as soon as a response carries the exit phrase."""
        adapter = scripted(
            [
                scripted.text("Created the module skeleton."),
                scripted.text("Everything is done. AUTOMODE_COMPLETE"),
                scripted.text("never sent"),
            ]
        )
        orchestrator = ConversationOrchestrator(adapter, registry)

        result = AutomodeSupervisor(orchestrator).run("Build a module", max_iterations=10)

        assert result.status == AutomodeStatus.COMPLETED
        assert result.iterations == 2
        assert len(adapter.requests) == 2
        assert orchestrator.automode.active is False

    def test_custom_exit_phrase(self, scripted, registry):
        """Test a configured exit phrase is announced to the model and ends the run."""
        adapter = scripted([scripted.text("Step 1"), scripted.text("All done. TASK_DONE"), scripted.text("never sent")])
        orchestrator = ConversationOrchestrator(adapter, registry, automode=AutomodeState(exit_phrase="TASK_DONE"))

        result = AutomodeSupervisor(orchestrator).run("Build it", max_iterations=3)

        system_prompt = adapter.requests[0][0]
        assert '"TASK_DONE"' in system_prompt
        assert AUTOMODE_EXIT_PHRASE not in system_prompt
        assert result.status == AutomodeStatus.COMPLETED
        assert len(adapter.requests) == 2

    def test_continuation_prompt(self, scripted, registry):
        """Test later passes send the continuation prompt."""
        adapter = scripted([scripted.text("one"), scripted.text("two")])
        orchestrator = ConversationOrchestrator(adapter, registry)

        AutomodeSupervisor(orchestrator).run("Build a theme", max_iterations=2)

        user_texts = [m.content for m in orchestrator.history if m.role == Role.USER]
        assert user_texts == ["Build a theme", CONTINUATION_PROMPT]

    def test_system_prompt_reports_iteration(self, scripted, registry):
        """Test each pass tells the model its iteration."""
        adapter = scripted([scripted.text("one"), scripted.text("two")])
        orchestrator = ConversationOrchestrator(adapter, registry)

        AutomodeSupervisor(orchestrator).run("Go", max_iterations=2)

        first_prompt, second_prompt = (request[0] for request in adapter.requests)
        assert AUTOMODE_ON in first_prompt
        assert "iteration 1 out of 2" in first_prompt
        assert "iteration 2 out of 2" in second_prompt

    def test_failed_pass_continues(self, scripted, registry):
        """Test a failed pass counts toward the budget and the run goes on."""
        adapter = scripted([scripted.text("ok")])
        orchestrator = ConversationOrchestrator(adapter, registry)

        result = AutomodeSupervisor(orchestrator).run("Go", max_iterations=2)

        assert result.status == AutomodeStatus.EXHAUSTED
        assert result.iterations == 2
        assert result.responses[1].startswith("I'm sorry")

    def test_on_iteration_callback(self, scripted, registry):
        """Test the callback sees every pass."""
        adapter = scripted([scripted.text("a"), scripted.text("b")])
        seen = []
        supervisor = AutomodeSupervisor(
            ConversationOrchestrator(adapter, registry),
            on_iteration=lambda iteration, budget, outcome: seen.append((iteration, budget, outcome.text)),
        )

        supervisor.run("Go", max_iterations=2)

        assert seen == [(1, 2, "a"), (2, 2, "b")]

    def test_chat_mode_after_run(self, scripted, registry):
        """Test regular chat resumes outside automode."""
        adapter = scripted([scripted.text("AUTOMODE_COMPLETE"), scripted.text("Back to chat")])
        orchestrator = ConversationOrchestrator(adapter, registry)

        AutomodeSupervisor(orchestrator).run("Go", max_iterations=5)
        orchestrator.chat("Thanks")

        assert AUTOMODE_ON not in adapter.requests[-1][0]


class TestAutomodeInterrupt:
    """Tests for interrupting automode."""

    def test_keyboard_interrupt_mid_pass(self, scripted, registry):
        """Test an interrupt after the user message records a closing reply."""
        adapter = scripted([scripted.text("Step 1"), KeyboardInterrupt()])
        orchestrator = ConversationOrchestrator(adapter, registry)

        result = AutomodeSupervisor(orchestrator).run("Build it", max_iterations=5)

        assert result.status == AutomodeStatus.INTERRUPTED
        assert result.iterations == 1
        last = orchestrator.history.last()
        assert last.role == Role.ASSISTANT
        assert last.content == INTERRUPTED_MESSAGE
        assert orchestrator.automode.active is False
        assert orchestrator.automode.status == AutomodeStatus.INTERRUPTED

    def test_cancel_event(self, scripted, registry):
        """Test a set cancel event stops the run at the next boundary."""
        cancel = threading.Event()
        adapter = scripted([scripted.text("Step 1"), scripted.text("Step 2")])
        supervisor = AutomodeSupervisor(
            ConversationOrchestrator(adapter, registry),
            on_iteration=lambda iteration, budget, outcome: cancel.set(),
        )

        result = supervisor.run("Go", max_iterations=5, cancel_event=cancel)

        assert result.status == AutomodeStatus.INTERRUPTED
        assert len(adapter.requests) == 1
        # The last message is already an assistant reply
        assert supervisor.orchestrator.history.last().content == "Step 1"

    def test_invalid_budget(self, scripted, registry):
        """Test a zero budget is rejected before any request."""
        adapter = scripted()
        with pytest.raises(ValueError):
            AutomodeSupervisor(ConversationOrchestrator(adapter, registry)).run("Go", max_iterations=0)
        assert adapter.requests == []

    def test_blank_goal(self, scripted, registry):
        """Test a blank goal is rejected before automode starts."""
        adapter = scripted()
        orchestrator = ConversationOrchestrator(adapter, registry)

        with pytest.raises(ValueError, match="goal"):
            AutomodeSupervisor(orchestrator).run("   ", max_iterations=2)

        assert adapter.requests == []
        assert len(orchestrator.history) == 0
        assert orchestrator.automode.status == AutomodeStatus.IDLE


class TestAutomodeFailure:
    """Tests for unexpected errors during a pass."""

    def test_state_reset_on_error(self, scripted, registry):
        """Test an unexpected error leaves automode before propagating."""
        adapter = scripted([scripted.text("Step 1"), RuntimeError("boom")])
        orchestrator = ConversationOrchestrator(adapter, registry)

        with pytest.raises(RuntimeError, match="boom"):
            AutomodeSupervisor(orchestrator).run("Build it", max_iterations=5)

        assert orchestrator.automode.active is False
        assert orchestrator.automode.status == AutomodeStatus.FAILED

    def test_chat_after_failed_run(self, scripted, registry):
        """Test the next regular turn is rendered outside automode."""
        adapter = scripted([RuntimeError("boom"), scripted.text("Back to chat")])
        orchestrator = ConversationOrchestrator(adapter, registry)

        with pytest.raises(RuntimeError):
            AutomodeSupervisor(orchestrator).run("Build it", max_iterations=5)
        orchestrator.chat("Hello?")

        assert AUTOMODE_ON not in adapter.requests[-1][0]
