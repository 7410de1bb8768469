"""Runtime configuration for the completion backend and the app.

Credentials are read from the environment (optionally via a .env file loaded
at startup). Nothing here holds a module-level client.
"""

import os
from typing import Literal

from pydantic import BaseModel, Field, SecretStr

_DEFAULT_MODELS = {
    "groq": "openai/gpt-oss-120b",
    "cerebras": "gpt-oss-120b",
}


class LLMConfig(BaseModel):
    """Connection settings for one completion backend."""
    provider: Literal["groq", "cerebras"] = "groq"
    api_key: SecretStr = SecretStr("")
    model: str = _DEFAULT_MODELS["groq"]
    base_url: str | None = None
    temperature: float = 0.2
    max_tokens: int = Field(default=2048, gt=0)
    timeout: float = Field(default=45.0, gt=0)

    @classmethod
    def from_env(cls) -> "LLMConfig":
        """Build a config from LLM_* and provider-specific env vars."""
        provider = os.environ.get("LLM_PROVIDER", "groq").lower()
        prefix = provider.upper()
        return cls(
            provider=provider,
            api_key=SecretStr(os.environ.get(f"{prefix}_API_KEY", "")),
            model=os.environ.get(f"{prefix}_MODEL", _DEFAULT_MODELS.get(provider, "")),
            base_url=os.environ.get("LLM_BASE_URL") or None,
            temperature=float(os.environ.get("LLM_TEMPERATURE", "0.2")),
            max_tokens=int(os.environ.get("LLM_MAX_TOKENS", "2048")),
            timeout=float(os.environ.get("LLM_TIMEOUT", "45")),
        )

    def is_configured(self) -> bool:
        return bool(self.api_key.get_secret_value())


class AppSettings(BaseModel):
    """Limits shared by the API and the upload boundary."""
    document_context_chars: int = 500
    max_upload_mb: int = 10
    accepted_extensions: tuple[str, ...] = (".pdf", ".png", ".jpg", ".jpeg", ".txt")

    @classmethod
    def from_env(cls) -> "AppSettings":
        return cls(
            document_context_chars=int(os.environ.get("DOCUMENT_CONTEXT_CHARS", "500")),
            max_upload_mb=int(os.environ.get("MAX_UPLOAD_MB", "10")),
        )
