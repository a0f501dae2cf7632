"""Text-generation providers used for not-not analysis."""

import logging
from typing import Any, Protocol

from ..errors import ConfigError

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """Interface for LLM backends.

    ``model`` and ``temperature`` are recorded in the metadata of every
    candidate produced with the generator.
    """

    model: str
    temperature: float

    async def generate(self, system: str, user: str) -> str:
        """Return the model's text reply to a system + user prompt pair."""
        ...


class AnthropicGenerator:
    """Claude via the Anthropic messages API."""

    def __init__(self, api_key: str, model: str = "claude-sonnet-4-20250514", temperature: float = 0.2, max_tokens: int = 1000):
        import anthropic
        self.client = anthropic.AsyncAnthropic(api_key=api_key)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def generate(self, system: str, user: str) -> str:
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=system,
            messages=[{"role": "user", "content": user}],
        )
        return "".join(block.text for block in response.content if getattr(block, "type", "text") == "text")


class OpenAIGenerator:
    """Chat completions via the OpenAI API."""

    def __init__(self, api_key: str, model: str = "gpt-4", temperature: float = 0.2, max_tokens: int = 1000):
        from openai import AsyncOpenAI
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def generate(self, system: str, user: str) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


def get_text_generator(config: dict[str, Any]) -> TextGenerator:
    """Factory: return the LLM provider named in config."""
    llm_cfg = config.get("llm", {})
    provider = llm_cfg.get("provider", "anthropic")
    params = {
        "temperature": llm_cfg.get("temperature", 0.2),
        "max_tokens": llm_cfg.get("max_tokens", 1000),
    }

    if provider == "anthropic":
        api_key = config.get("anthropic_api_key")
        if not api_key:
            raise ConfigError("Anthropic API key required for generation. Set ANTHROPIC_API_KEY or anthropic_api_key in config.")
        model = llm_cfg.get("model", "claude-sonnet-4-20250514")
        logger.debug(f"Using Anthropic model {model}")
        return AnthropicGenerator(api_key=api_key, model=model, **params)
    elif provider == "openai":
        api_key = config.get("openai_api_key")
        if not api_key:
            raise ConfigError("OpenAI API key required for generation. Set OPENAI_API_KEY or openai_api_key in config.")
        model = llm_cfg.get("model", "gpt-4")
        logger.debug(f"Using OpenAI model {model}")
        return OpenAIGenerator(api_key=api_key, model=model, **params)
    else:
        raise ConfigError(f"Unknown llm provider: {provider}")
