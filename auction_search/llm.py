"""Language-model completion providers.

The extractor only needs one capability: send a system prompt plus the user's
text and get JSON text back. Anything with a matching ``complete_json`` method
can stand in for the OpenAI provider.
"""
import os
from typing import Optional, Protocol

from dotenv import load_dotenv
from openai import OpenAI

from .utils import logger

load_dotenv()

OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", "30"))


class CompletionProvider(Protocol):
    def complete_json(self, system_prompt: str, user_text: str) -> Optional[str]:
        ...


class OpenAICompletionProvider:
    """Chat-completions call in JSON output mode with low temperature."""

    def __init__(self, api_key: str, model: str = OPENAI_MODEL,
                 temperature: float = 0.1, timeout: float = OPENAI_TIMEOUT,
                 client: Optional[OpenAI] = None):
        self.model = model
        self.temperature = temperature
        self.client = client or OpenAI(api_key=api_key, timeout=timeout)

    def complete_json(self, system_prompt: str, user_text: str) -> Optional[str]:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_text},
            ],
            response_format={"type": "json_object"},
            temperature=self.temperature,
        )
        if not response.choices:
            return None
        return response.choices[0].message.content


def default_completion_provider() -> Optional[CompletionProvider]:
    """OpenAI provider when OPENAI_API_KEY is set, otherwise None (the
    extractor then uses its keyword parser only)."""
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        logger.info("OPENAI_API_KEY not set; query parsing uses keyword fallback only")
        return None
    return OpenAICompletionProvider(api_key=api_key)
