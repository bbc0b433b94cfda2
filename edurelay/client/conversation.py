"""Conversation state for one chat view.

The message list is append-only and lives in memory for the lifetime of
the view. Turn state is an explicit tagged variant:

    Idle                      no request in flight
    StreamingTurn(accumulated) one reply streaming in

so "at most one accumulator per view" is enforced by begin_turn()
rather than inferred from the last message's role.
"""

from __future__ import annotations

from dataclasses import dataclass

from edurelay.personas import with_system_prompt
from edurelay.schemas.messages import ChatMessage, Persona, Role
from edurelay.schemas.streaming import StreamChunk


@dataclass(frozen=True)
class Idle:
    """No reply is streaming."""


@dataclass
class StreamingTurn:
    """A reply is streaming; ``accumulated`` holds every delta so far."""

    accumulated: str = ""
    deltas: int = 0
    # Index of the assistant message once the first delta has arrived
    assistant_index: int | None = None


TurnState = Idle | StreamingTurn


class TurnInProgressError(RuntimeError):
    """A new turn was started while a reply is still streaming."""


class Conversation:
    """Ordered chat history plus the state of the current turn."""

    def __init__(self, persona: Persona | None = None) -> None:
        self.persona = persona
        self._messages: list[ChatMessage] = []
        self._state: TurnState = Idle()

    @property
    def messages(self) -> list[ChatMessage]:
        """Copy of the visible messages, oldest first."""
        return list(self._messages)

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def is_streaming(self) -> bool:
        return isinstance(self._state, StreamingTurn)

    def request_messages(self) -> list[ChatMessage]:
        """Messages to send: persona prompt (if any) followed by the history."""
        if self.persona is None:
            return list(self._messages)
        return with_system_prompt(self._messages, self.persona)

    def begin_turn(self, text: str) -> list[ChatMessage]:
        """Append the user's message, enter StreamingTurn and return the request body.

        Raises:
            TurnInProgressError: If a reply is still streaming.
            ValueError: If ``text`` is blank.
        """
        if self.is_streaming:
            raise TurnInProgressError("A reply is still streaming")
        if not text.strip():
            raise ValueError("Message is empty")

        self._messages.append(ChatMessage(role=Role.USER, content=text))
        self._state = StreamingTurn()
        return self.request_messages()

    def append_delta(self, delta: str) -> StreamChunk:
        """Merge one content delta into the in-progress assistant message.

        The first delta of a turn appends a new assistant message; later
        deltas replace that message's content with the full accumulation.
        """
        turn = self._require_turn()
        turn.accumulated += delta
        turn.deltas += 1

        message = ChatMessage(role=Role.ASSISTANT, content=turn.accumulated)
        if turn.assistant_index is None:
            self._messages.append(message)
            turn.assistant_index = len(self._messages) - 1
        else:
            self._messages[turn.assistant_index] = message

        return StreamChunk(
            delta=delta,
            accumulated=turn.accumulated,
            token_count=turn.deltas,
        )

    def end_turn(self, *, cancelled: bool = False) -> StreamChunk:
        """Return to Idle. Whatever was accumulated stays in the history."""
        turn = self._require_turn()
        self._state = Idle()
        return StreamChunk(
            delta="",
            accumulated=turn.accumulated,
            token_count=turn.deltas,
            is_complete=True,
            cancelled=cancelled,
        )

    def clear(self) -> None:
        """Forget the history (e.g. the user starts a new chat)."""
        if self.is_streaming:
            raise TurnInProgressError("Cannot clear while a reply is streaming")
        self._messages.clear()

    def _require_turn(self) -> StreamingTurn:
        if not isinstance(self._state, StreamingTurn):
            raise RuntimeError("No turn in progress")
        return self._state
