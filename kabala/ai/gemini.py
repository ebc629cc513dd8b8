"""Gemini API backend for receipt extraction."""

from __future__ import annotations

from . import ContentPart, GenerativeBackend, InlineData


class GeminiBackend(GenerativeBackend):
    """Generate receipt JSON using Google Gemini (text and vision)."""

    def __init__(
        self,
        api_key: str = "",
        model: str = "gemini-2.0-flash",
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
                "Gemini API key is not set. "
                "Check the config file or the GOOGLE_GEMINI_API_KEY environment variable."
            )

        try:
            import google.generativeai as genai
        except ImportError:
            raise ImportError(
                "google-generativeai SDK is required: pip install google-generativeai"
            ) from None

        genai.configure(api_key=self._api_key)
        model = genai.GenerativeModel(self._model)

        contents: list = []
        for part in parts:
            if isinstance(part, InlineData):
                contents.append({"mime_type": part.mime_type, "data": part.data})
            else:
                contents.append(part)

        response = await model.generate_content_async(
            contents,
            generation_config={
                "temperature": self._temperature,
                "max_output_tokens": max_output_tokens,
            },
        )
        # .text raises ValueError when the response has no usable candidate
        try:
            return response.text or ""
        except ValueError:
            return ""
