"""OpenAI chat-completions generation provider."""

import logging

from openai import OpenAI, OpenAIError

from citerag.errors import ProviderError
from citerag.prompts import SYSTEM_MESSAGE

logger = logging.getLogger(__name__)


class OpenAIGenerator:
    """Generation provider backed by the OpenAI chat completions API.

    Every request is bounded by ``timeout`` seconds and is not retried;
    retry policy belongs to the caller.
    """

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        model_name: str | None = None,
        api_key: str | None = None,
        timeout: float = 30.0,
        temperature: float = 0.1,
        max_tokens: int = 500,
    ):
        self._model_name = model_name or self.DEFAULT_MODEL
        self._api_key = api_key
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client: OpenAI | None = None

    @property
    def client(self) -> OpenAI:
        """Create the API client on first use."""
        if self._client is None:
            try:
                self._client = OpenAI(
                    api_key=self._api_key, timeout=self.timeout, max_retries=0
                )
            except OpenAIError as exc:
                raise ProviderError(f"Could not create OpenAI client: {exc}") from exc
        return self._client

    @property
    def model_name(self) -> str:
        return self._model_name

    def generate(self, prompt: str) -> str:
        logger.debug(f"Generating with {self._model_name} ({len(prompt)} prompt chars)")
        try:
            out = self.client.chat.completions.create(
                model=self._model_name,
                messages=[
                    {"role": "system", "content": SYSTEM_MESSAGE},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as exc:
            raise ProviderError(f"Generation failed: {exc}") from exc

        content = out.choices[0].message.content if out.choices else None
        if not content or not content.strip():
            raise ProviderError("Generation returned an empty answer")
        return content.strip()
