"""OpenAI-backed implementation of the TextGenerator collaborator."""
import logging
from typing import Optional

from .collaborators import GenerationOptions
from .config import Settings, settings as default_settings
from .errors import ModelNotConfiguredError

logger = logging.getLogger(__name__)


class OpenAIGenerator:
    """Ask a chat model to answer a prompt and return the text."""

    def __init__(self, app_settings: Optional[Settings] = None, client=None):
        self._settings = app_settings or default_settings
        self._client = client

    def _get_client(self):
        if self._client is not None:
            return self._client
        api_key = self._settings.openai_api_key
        if not api_key:
            raise ModelNotConfiguredError("OPENAI_API_KEY not set. Add to .env or environment.")
        from openai import AsyncOpenAI
        self._client = AsyncOpenAI(api_key=api_key)
        return self._client

    async def generate(self, prompt: str, options: Optional[GenerationOptions] = None) -> str:
        options = options or GenerationOptions(
            temperature=self._settings.openai_temperature,
            max_tokens=self._settings.openai_max_tokens,
        )
        client = self._get_client()
        kwargs = {}
        if options.json_mode:
            # If supported by the model, this strongly enforces valid JSON output.
            kwargs["response_format"] = {"type": "json_object"}

        messages = []
        if options.system_prompt:
            messages.append({"role": "system", "content": options.system_prompt})
        messages.append({"role": "user", "content": prompt})

        response = await client.chat.completions.create(
            model=self._settings.openai_model or "gpt-4o-mini",
            temperature=float(options.temperature),
            max_tokens=options.max_tokens,
            messages=messages,
            **kwargs,
        )
        return (response.choices[0].message.content or "").strip()


def build_default_generator(app_settings: Optional[Settings] = None) -> Optional[OpenAIGenerator]:
    """Generator for the generative tier, or None when the tier cannot run."""
    s = app_settings or default_settings
    if not s.generative_tier_enabled:
        logger.info("Generative tier disabled by configuration")
        return None
    if not s.openai_api_key:
        logger.warning("OPENAI_API_KEY not set; generative tier will be skipped")
        return None
    return OpenAIGenerator(s)
