"""Append-only conversation history."""

from collections.abc import Iterator

from cmsai.models.llm import Message, Role


class ConversationHistory:
    """Ordered messages of one chat session.

    Messages are only ever appended; nothing is pruned or summarized, so the
    history grows for the lifetime of the session.
    """

    def __init__(self) -> None:
        self._messages: list[Message] = []

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def snapshot(self) -> tuple[Message, ...]:
        """Immutable copy handed to provider adapters."""
        return tuple(self._messages)

    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def last_is_user(self) -> bool:
        last = self.last()
        return last is not None and last.role == Role.USER

    def clear(self) -> None:
        """Reset at session start or exit."""
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]
