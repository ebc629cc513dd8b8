"""TOML configuration loader."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]


@dataclass
class GeminiConfig:
    api_key: str = ""
    model: str = "gemini-2.0-flash"


@dataclass
class ClaudeConfig:
    api_key: str = ""
    model: str = "claude-sonnet-4-5-20250929"


@dataclass
class AIConfig:
    backend: str = "gemini"
    timeout: float = 30.0
    temperature: float = 0.1
    max_output_tokens: int = 4096
    multimodal_max_output_tokens: int = 8192
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    claude: ClaudeConfig = field(default_factory=ClaudeConfig)


@dataclass
class DatabaseConfig:
    path: str = "~/.config/kabala/kabala.db"


@dataclass
class MatchingConfig:
    global_sample_limit: int = 500


@dataclass
class KabalaConfig:
    ai: AIConfig = field(default_factory=AIConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)


def load_config(path: str | Path | None = None) -> KabalaConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    API keys can be overridden via environment variables.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            if tomllib is None:
                raise ImportError(
                    "tomli is required on Python < 3.11: pip install tomli"
                )
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    ai = raw.get("ai", {})
    dbs = raw.get("database", {})
    mtc = raw.get("matching", {})

    gemini_cfg = ai.get("gemini", {})
    claude_cfg = ai.get("claude", {})

    # Resolve API keys: config file → environment variable
    gemini_api_key = (
        gemini_cfg.get("api_key", "")
        or os.environ.get("GOOGLE_GEMINI_API_KEY", "")
        or os.environ.get("GEMINI_API_KEY", "")
    )
    claude_api_key = claude_cfg.get("api_key", "") or os.environ.get(
        "ANTHROPIC_API_KEY", ""
    )

    return KabalaConfig(
        ai=AIConfig(
            backend=ai.get("backend", "gemini"),
            timeout=float(ai.get("timeout", 30.0)),
            temperature=float(ai.get("temperature", 0.1)),
            max_output_tokens=ai.get("max_output_tokens", 4096),
            multimodal_max_output_tokens=ai.get(
                "multimodal_max_output_tokens", 8192
            ),
            gemini=GeminiConfig(
                api_key=gemini_api_key,
                model=gemini_cfg.get("model", "gemini-2.0-flash"),
            ),
            claude=ClaudeConfig(
                api_key=claude_api_key,
                model=claude_cfg.get("model", "claude-sonnet-4-5-20250929"),
            ),
        ),
        database=DatabaseConfig(
            path=dbs.get("path", "~/.config/kabala/kabala.db"),
        ),
        matching=MatchingConfig(
            global_sample_limit=mtc.get("global_sample_limit", 500),
        ),
    )
