"""Prompt template loader for persona and task prompts.

Loads Markdown prompt templates from the prompts/ directory and renders
them with Jinja2 variable substitution. Used by the gateway and the
client to build system prompts.
"""

from __future__ import annotations

from pathlib import Path

from jinja2 import BaseLoader, Environment

# Directory containing the .md prompt template files
_PROMPTS_DIR = Path(__file__).parent

_ENV = Environment(loader=BaseLoader(), keep_trailing_newline=False)


def render_prompt(template_name: str, **variables: object) -> str:
    """Load a prompt template and render it with Jinja2 variables.

    Args:
        template_name: Name of the template file (without .md extension).
                       Must correspond to a file in the prompts/ directory.
        **variables: Template variables to inject (interests, top_n,
                     file_count, etc.).

    Returns:
        The rendered prompt with surrounding whitespace stripped.

    Raises:
        FileNotFoundError: If the template file does not exist.
    """
    path = _PROMPTS_DIR / f"{template_name}.md"
    if not path.exists():
        raise FileNotFoundError(f"Prompt template not found: {path}")

    template = _ENV.from_string(path.read_text(encoding="utf-8"))
    return template.render(**variables).strip()
