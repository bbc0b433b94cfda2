"""Local document handling for question-paper analysis.

Validates uploaded files, reads their text and concatenates them (each
behind a labeled separator) with optional pasted text into the single
blob the analysis endpoint accepts.
"""

from __future__ import annotations

from pathlib import Path

from edurelay.errors import FileValidationError, PayloadTooLarge
from edurelay.schemas.messages import FILE_SEPARATOR_TEMPLATE

MAX_FILE_SIZE = 30 * 1024 * 1024  # 30MB

# Extensions whose contents can be read as plain text
TEXT_EXTENSIONS = frozenset({"txt", "md", "csv", "json"})

MAX_ANALYSIS_CHARS = 100_000


def validate_file(path: Path) -> None:
    """Check size, extension and name of an upload before reading it.

    Raises:
        FileValidationError: Describing the first failed check.
    """
    name = path.name
    if ".." in name or "/" in name or "\\" in name:
        raise FileValidationError("Invalid characters in filename")

    if not path.is_file():
        raise FileValidationError(f"File not found: {name}")

    if path.stat().st_size > MAX_FILE_SIZE:
        raise FileValidationError("File size exceeds 30MB limit")

    ext = path.suffix.lstrip(".").lower()
    if not ext:
        raise FileValidationError("File must have a valid extension")
    if ext not in TEXT_EXTENSIONS:
        allowed = ", ".join(sorted(TEXT_EXTENSIONS))
        raise FileValidationError(
            f"Invalid file type .{ext}. Only text files ({allowed}) can be analyzed."
        )


def read_document(path: Path) -> str:
    """Validate ``path`` and return its text (undecodable bytes replaced)."""
    validate_file(path)
    return path.read_text(encoding="utf-8", errors="replace")


def build_analysis_content(paths: list[Path], pasted_text: str = "") -> str:
    """Concatenate file texts behind labeled separators, then any pasted text."""
    parts = [
        f"{FILE_SEPARATOR_TEMPLATE.format(name=path.name)}\n{read_document(path).strip()}"
        for path in paths
    ]
    if pasted_text.strip():
        parts.append(pasted_text.strip())
    return "\n\n".join(parts)


def ensure_within_limit(content: str, max_chars: int = MAX_ANALYSIS_CHARS) -> None:
    """Reject content over the analysis ceiling before any network call.

    Raises:
        PayloadTooLarge: If ``content`` is longer than ``max_chars``.
    """
    if len(content) > max_chars:
        raise PayloadTooLarge(
            f"Content is {len(content):,} characters; the limit is {max_chars:,}."
        )
