"""Persona table: one fixed system prompt per chat persona.

Both the gateway (default prompt when the caller sends none) and the
client (persona chat views inject their own) read prompts from here.
"""

from __future__ import annotations

from functools import cache

from edurelay.prompts import render_prompt
from edurelay.schemas.messages import ChatMessage, Persona, Role

PERSONA_TITLES: dict[Persona, str] = {
    Persona.TUTOR: "AI Tutor",
    Persona.EXAM_PREP: "Exam Preparation Assistant",
    Persona.CAREER_GUIDANCE: "Career Guidance",
    Persona.PYQ_ANALYSIS: "Previous Year Questions",
}


@cache
def system_prompt(persona: Persona) -> str:
    """Return the system prompt text for a persona."""
    return render_prompt(str(Persona(persona)))


def has_system_message(messages: list[ChatMessage]) -> bool:
    """True when the conversation already leads with a system message."""
    return bool(messages) and messages[0].role == Role.SYSTEM


def with_system_prompt(
    messages: list[ChatMessage], persona: Persona
) -> list[ChatMessage]:
    """Prepend the persona prompt unless a system message is already first.

    Never mutates the input list.
    """
    if has_system_message(messages):
        return list(messages)
    return [ChatMessage(role=Role.SYSTEM, content=system_prompt(persona)), *messages]
