"""Tests for persona prompts and the Jinja2 prompt loader."""

from __future__ import annotations

import pytest

from edurelay.personas import (
    PERSONA_TITLES,
    has_system_message,
    system_prompt,
    with_system_prompt,
)
from edurelay.prompts import render_prompt
from edurelay.schemas.messages import ChatMessage, Persona, Role


class TestSystemPrompts:
    @pytest.mark.parametrize("persona", list(Persona))
    def test_every_persona_has_prompt_and_title(self, persona):
        assert system_prompt(persona).startswith("You are")
        assert PERSONA_TITLES[persona]

    def test_prompts_differ(self):
        prompts = {system_prompt(p) for p in Persona}
        assert len(prompts) == len(Persona)

    def test_tutor_prompt(self):
        assert "study assistant" in system_prompt(Persona.TUTOR)


class TestWithSystemPrompt:
    def test_prepends_prompt(self):
        messages = [ChatMessage(role=Role.USER, content="hi")]
        result = with_system_prompt(messages, Persona.CAREER_GUIDANCE)
        assert result[0].role == Role.SYSTEM
        assert result[0].content == system_prompt(Persona.CAREER_GUIDANCE)
        assert result[1:] == messages

    def test_existing_system_message_kept(self):
        messages = [
            ChatMessage(role=Role.SYSTEM, content="Custom"),
            ChatMessage(role=Role.USER, content="hi"),
        ]
        result = with_system_prompt(messages, Persona.TUTOR)
        assert result == messages
        assert sum(m.role == Role.SYSTEM for m in result) == 1

    def test_input_not_mutated(self):
        messages = [ChatMessage(role=Role.USER, content="hi")]
        with_system_prompt(messages, Persona.TUTOR)
        assert len(messages) == 1

    def test_has_system_message(self):
        assert not has_system_message([])
        assert has_system_message([ChatMessage(role=Role.SYSTEM, content="x")])


class TestRenderPrompt:
    def test_single_paper_has_no_comparison(self):
        prompt = render_prompt("question_paper_analysis", file_count=1)
        assert "Compare" not in prompt

    def test_multiple_papers_compared(self):
        prompt = render_prompt("question_paper_analysis", file_count=3)
        assert "Compare the 3 papers" in prompt

    def test_news_prompt_with_interests(self):
        prompt = render_prompt("news_recommendations", interests="data science", top_n=3)
        assert "top 3" in prompt
        assert "data science" in prompt

    def test_news_prompt_default_interests(self):
        prompt = render_prompt("news_recommendations", interests=None, top_n=5)
        assert "technology and career development" in prompt
        assert "top 5" in prompt

    def test_missing_template(self):
        with pytest.raises(FileNotFoundError, match="not found"):
            render_prompt("does_not_exist")
