"""Generative model backends, base class, and factory."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from ..config import KabalaConfig


@dataclass(frozen=True)
class InlineData:
    """Raw document bytes (image or PDF) sent alongside the prompt."""

    mime_type: str
    data: bytes


ContentPart = Union[str, InlineData]


class GenerativeBackend(ABC):
    """Abstract base for a single-shot text generation call."""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """True when credentials are present."""
        ...

    @abstractmethod
    async def generate(
        self, parts: list[ContentPart], max_output_tokens: int
    ) -> str:
        """Send one request and return the response text.

        Returns an empty string when the model produced no text. Request
        failures propagate as the SDK's exceptions.
        """
        ...


def create_backend(config: KabalaConfig) -> GenerativeBackend:
    """Create a generative backend based on configuration."""
    backend_name = config.ai.backend

    match backend_name:
        case "gemini":
            from .gemini import GeminiBackend

            return GeminiBackend(
                api_key=config.ai.gemini.api_key,
                model=config.ai.gemini.model,
                temperature=config.ai.temperature,
            )
        case "claude":
            from .claude import ClaudeBackend

            return ClaudeBackend(
                api_key=config.ai.claude.api_key,
                model=config.ai.claude.model,
                temperature=config.ai.temperature,
            )
        case _:
            raise ValueError(
                f"Unknown AI backend: {backend_name!r} (choose gemini or claude)"
            )
