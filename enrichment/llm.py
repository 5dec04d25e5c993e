"""Chat-completion client for an OpenAI-compatible provider."""

import logging
from dataclasses import dataclass

from openai import OpenAI
from sqlalchemy.orm import Session

from config import DEFAULT_TARGET_LANG, OPENAI_API_KEY, OPENAI_BASE_URL, OPENAI_MODEL
from db.models import AIConfig

logger = logging.getLogger(__name__)


class LLMNotConfiguredError(ValueError):
    """No API key is available for the provider."""


@dataclass(frozen=True)
class LLMSettings:
    api_key: str
    base_url: str
    model: str
    target_lang: str = DEFAULT_TARGET_LANG
    provider: str = "openai"

    @classmethod
    def from_env(cls) -> "LLMSettings":
        return cls(api_key=OPENAI_API_KEY, base_url=OPENAI_BASE_URL, model=OPENAI_MODEL)

    @classmethod
    def from_db(cls, session: Session) -> "LLMSettings":
        """Saved AI config with env values filling any blank field."""
        env = cls.from_env()
        row = session.query(AIConfig).first()
        if row is None:
            return env
        return cls(
            api_key=row.api_key or env.api_key,
            base_url=row.base_url or env.base_url,
            model=row.model or env.model,
            target_lang=row.target_lang or env.target_lang,
            provider=row.provider or env.provider,
        )


class LLMClient:
    """Immutable pairing of settings and an SDK client.

    Reconfiguration builds a new ``LLMClient``; an existing instance never
    changes, so calls already running keep the configuration they started with.
    """

    def __init__(self, settings: LLMSettings) -> None:
        self.settings = settings
        self._client: OpenAI | None = None
        if settings.api_key:
            self._client = OpenAI(api_key=settings.api_key, base_url=settings.base_url or None)

    @property
    def configured(self) -> bool:
        return self._client is not None

    def chat(self, prompt: str, temperature: float = 0.3) -> str:
        """Send one user message and return the text of the first choice."""
        if self._client is None:
            raise LLMNotConfiguredError("OPENAI_API_KEY is not set and no AI config is saved")

        response = self._client.chat.completions.create(
            model=self.settings.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=temperature,
        )
        if not response.choices:
            raise ValueError("LLM returned no choices")

        content = response.choices[0].message.content or ""
        if not content:
            raise ValueError("LLM returned empty content")
        return content.strip()
