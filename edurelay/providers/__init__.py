"""edurelay provider layer.

All upstream completion calls go through LiteLLMProvider via the
CompletionProvider interface.
"""

from edurelay.providers.base import CompletionProvider
from edurelay.providers.litellm_provider import (
    LiteLLMProvider,
    chunk_to_payload,
    translate_upstream_error,
)

__all__ = [
    "CompletionProvider",
    "LiteLLMProvider",
    "chunk_to_payload",
    "translate_upstream_error",
]
