"""Claude API backend for receipt extraction."""

from __future__ import annotations

import base64

from . import ContentPart, GenerativeBackend, InlineData


class ClaudeBackend(GenerativeBackend):
    """Generate receipt JSON using Claude (text, images and PDFs)."""

    def __init__(
        self,
        api_key: str = "",
        model: str = "claude-sonnet-4-5-20250929",
        temperature: float = 0.1,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._temperature = temperature

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def generate(
        self, parts: list[ContentPart], max_output_tokens: int
    ) -> str:
        if not self._api_key:
            raise ValueError(
                "Anthropic API key is not set. "
                "Check the config file or the ANTHROPIC_API_KEY environment variable."
            )

        try:
            import anthropic
        except ImportError:
            raise ImportError(
                "anthropic SDK is required: pip install anthropic"
            ) from None

        content: list[dict] = []
        for part in parts:
            if isinstance(part, InlineData):
                block_type = "document" if part.mime_type == "application/pdf" else "image"
                content.append(
                    {
                        "type": block_type,
                        "source": {
                            "type": "base64",
                            "media_type": part.mime_type,
                            "data": base64.standard_b64encode(part.data).decode(),
                        },
                    }
                )
            else:
                content.append({"type": "text", "text": part})

        client = anthropic.AsyncAnthropic(api_key=self._api_key)
        response = await client.messages.create(
            model=self._model,
            max_tokens=max_output_tokens,
            temperature=self._temperature,
            messages=[{"role": "user", "content": content}],
        )

        for block in response.content:
            text = getattr(block, "text", None)
            if isinstance(text, str) and text:
                return text
        return ""
