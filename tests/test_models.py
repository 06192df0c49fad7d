"""Tests for data models."""

import pytest
from pydantic import ValidationError

from cmsai.models.automode import AutomodeResult, AutomodeState, AutomodeStatus
from cmsai.models.llm import (
    ImageBlock,
    LLMUsage,
    Message,
    ProviderTurn,
    Role,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)


class TestMessage:
    """Tests for the canonical message model."""

    def test_string_content_as_blocks(self):
        """Test that plain text content is exposed as a single text block."""
        message = Message(role=Role.USER, content="Hello")
        assert message.blocks == [TextBlock(text="Hello")]

    def test_empty_string_has_no_blocks(self):
        """Test that empty text content yields no blocks."""
        assert Message(role=Role.ASSISTANT, content="").blocks == []

    def test_blocks_from_dicts_are_discriminated(self):
        """Test that raw block dicts validate into the right block types."""
        message = Message.model_validate(
            {
                "role": "assistant",
                "content": [
                    {"type": "text", "text": "Let me look."},
                    {"type": "tool_use", "id": "toolu_1", "name": "read_file", "input": {"path": "a.txt"}},
                ],
            }
        )
        assert isinstance(message.blocks[0], TextBlock)
        assert isinstance(message.blocks[1], ToolUseBlock)
        assert message.blocks[1].input == {"path": "a.txt"}

    def test_tool_result_block_defaults(self):
        """Test tool result block defaults to a non-error result."""
        block = ToolResultBlock(tool_use_id="toolu_1", content="ok")
        assert block.type == "tool_result"
        assert block.is_error is False

    def test_message_is_immutable(self):
        """Test that messages cannot be mutated after construction."""
        message = Message(role=Role.USER, content="Hello")
        with pytest.raises(ValidationError):
            message.content = "changed"

    def test_unknown_block_type_rejected(self):
        """Test that an unknown block type fails validation."""
        with pytest.raises(ValidationError):
            Message.model_validate({"role": "user", "content": [{"type": "video", "url": "x"}]})


class TestImageBlock:
    """Tests for image blocks."""

    def test_data_url_for_inline_data(self):
        """Test data URL built from base64 data."""
        block = ImageBlock(media_type="image/png", data="aGVsbG8=")
        assert block.data_url == "data:image/png;base64,aGVsbG8="

    def test_data_url_falls_back_to_url(self):
        """Test remote URL used when there is no inline data."""
        block = ImageBlock(url="https://example.com/cat.jpg")
        assert block.data_url == "https://example.com/cat.jpg"


class TestUsageAndTurns:
    """Tests for usage accounting and provider turns."""

    def test_usage_add(self):
        """Test usage accumulation ignores None."""
        usage = LLMUsage()
        usage.add(LLMUsage(input_tokens=10, output_tokens=3))
        usage.add(None)
        usage.add(LLMUsage(input_tokens=5, output_tokens=2))
        assert usage.input_tokens == 15
        assert usage.output_tokens == 5
        assert usage.total_tokens == 20

    def test_failure_turn(self):
        """Test failure turns carry no messages."""
        turn = ProviderTurn.failure("401 Unauthorized")
        assert turn.ok is False
        assert turn.messages == []
        assert turn.error == "401 Unauthorized"


class TestAutomodeState:
    """Tests for automode state transitions."""

    def test_start_resets_counter(self):
        """Test that starting automode activates it with a fresh counter."""
        state = AutomodeState(iteration_count=7)
        state.start(3)
        assert state.active is True
        assert state.iteration_count == 0
        assert state.max_iterations == 3
        assert state.status == AutomodeStatus.RUNNING

    def test_start_requires_positive_budget(self):
        """Test that a zero budget is rejected."""
        with pytest.raises(ValueError):
            AutomodeState().start(0)

    def test_exhausted_after_budget(self):
        """Test exhaustion once the counter reaches the budget."""
        state = AutomodeState()
        state.start(2)
        state.advance()
        assert not state.exhausted
        state.advance()
        assert state.exhausted

    def test_finish_deactivates(self):
        """Test that every terminal status leaves automode inactive."""
        for status in (AutomodeStatus.COMPLETED, AutomodeStatus.EXHAUSTED, AutomodeStatus.INTERRUPTED):
            state = AutomodeState()
            state.start(5)
            state.finish(status)
            assert state.active is False
            assert state.status == status

    def test_result_last_response(self):
        """Test last response of an automode result."""
        assert AutomodeResult(AutomodeStatus.EXHAUSTED, 0).last_response == ""
        result = AutomodeResult(AutomodeStatus.COMPLETED, 2, ["first", "second"])
        assert result.last_response == "second"
