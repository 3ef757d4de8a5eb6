"""Model client: schema-constrained completions through LiteLLM."""

from __future__ import annotations

import json
import re
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from mailsift.core.errors import MailsiftError

logger = structlog.get_logger(__name__)

# Model mapping (LiteLLM format)
MODELS = {
    "gpt-4o": "gpt-4o",
    "gpt-4o-mini": "gpt-4o-mini",
    "gpt5": "gpt-5-mini",
    "haiku": "anthropic/claude-haiku-4-5",
    "sonnet": "anthropic/claude-sonnet-4-5",
}

ALLOWED_MODELS = tuple(MODELS)
DEFAULT_MODEL = "gpt-4o"
DEFAULT_MAX_TOKENS = 4096

Message = dict[str, str]
CompletionFunc = Callable[..., Awaitable[Any]]
T = TypeVar("T", bound=BaseModel)

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


class ModelClientError(MailsiftError):
    """Raised when a model response cannot be parsed or validated."""


def extract_json(text: str) -> Any:
    """Parse JSON from a completion, tolerating markdown code fences.

    Raises:
        json.JSONDecodeError: If no valid JSON is found.
    """
    if "```" in text:
        match = _FENCED_JSON.search(text)
        if match:
            text = match.group(1)
    return json.loads(text)


def resolve_model(name: str) -> str:
    """Map a model alias to its LiteLLM identifier (unknown names pass through)."""
    return MODELS.get(name, name)


class ModelClient:
    """Async chat completion client.

    Example:
        client = ModelClient(openai_api_key="sk-...")
        result = await client.complete(messages, EventsResponse, model="gpt-4o-mini")
    """

    def __init__(
        self,
        *,
        model: str = DEFAULT_MODEL,
        openai_api_key: str | None = None,
        anthropic_api_key: str | None = None,
        completion_func: CompletionFunc | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> None:
        """Initialize the client.

        Args:
            model: Default model alias.
            openai_api_key: OpenAI API key.
            anthropic_api_key: Anthropic API key.
            completion_func: Async completion callable (defaults to litellm.acompletion).
            max_tokens: Completion token limit.
        """
        self.model = model
        self.openai_api_key = openai_api_key
        self.anthropic_api_key = anthropic_api_key
        self.max_tokens = max_tokens
        self._completion_func = completion_func

    def _get_completion_func(self) -> CompletionFunc:
        """Get the LiteLLM async completion function.

        Raises:
            ModelClientError: If litellm is not installed.
        """
        if self._completion_func is not None:
            return self._completion_func

        try:
            import litellm

            litellm.suppress_debug_info = True
            from litellm import acompletion
        except ImportError as e:  # pragma: no cover
            raise ModelClientError("litellm package not installed") from e

        self._completion_func = acompletion
        return acompletion

    def _completion_kwargs(
        self, messages: Sequence[Message], model: str | None, response_format: Any
    ) -> dict[str, Any]:
        resolved = resolve_model(model or self.model)
        kwargs: dict[str, Any] = {
            "model": resolved,
            "messages": list(messages),
            "max_tokens": self.max_tokens,
        }
        if response_format is not None:
            kwargs["response_format"] = response_format
        if resolved.startswith("gpt-5"):
            kwargs["reasoning_effort"] = "minimal"
        else:
            kwargs["temperature"] = 0

        api_key = self.anthropic_api_key if resolved.startswith("anthropic/") else self.openai_api_key
        if api_key:
            kwargs["api_key"] = api_key
        return kwargs

    async def _create(self, kwargs: dict[str, Any]) -> str:
        completion_func = self._get_completion_func()
        response = await completion_func(**kwargs)
        content = response.choices[0].message.content
        if not content:
            raise ModelClientError(f"Empty response from {kwargs['model']}")

        usage = getattr(response, "usage", None)
        logger.debug(
            "model_completion",
            model=kwargs["model"],
            total_tokens=getattr(usage, "total_tokens", None),
        )
        return str(content).strip()

    async def complete(
        self,
        messages: Sequence[Message],
        response_model: type[T],
        *,
        model: str | None = None,
    ) -> T:
        """Request a completion constrained to `response_model`.

        Args:
            messages: Chat messages.
            response_model: Pydantic model describing the response.
            model: Model alias, defaults to the client's model.

        Returns:
            Validated response model instance.

        Raises:
            ModelClientError: If the response is not valid JSON for the schema.
        """
        kwargs = self._completion_kwargs(messages, model, response_model)
        result_text = await self._create(kwargs)

        try:
            return response_model.model_validate(extract_json(result_text))
        except (json.JSONDecodeError, ValidationError) as e:
            raise ModelClientError(
                f"{kwargs['model']} returned an invalid {response_model.__name__}: {e}"
            ) from e

    async def complete_text(self, messages: Sequence[Message], *, model: str | None = None) -> str:
        """Request a free-text completion."""
        kwargs = self._completion_kwargs(messages, model, None)
        return await self._create(kwargs)
