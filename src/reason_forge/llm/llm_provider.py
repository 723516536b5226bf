"""
Abstract base class for LLM providers, defining the request/response contract
the reasoners consume, token management, and rate limit handling using
`tenacity` for retries.

A provider receives a `CompletionParams` (model, chat messages, temperature,
max tokens) and returns a `CompletionResponse` whose content is either a plain
string or a list of content parts. `extract_text` normalizes both shapes.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Callable, Union

import tenacity

from reason_forge.exceptions import ProviderError

logger = logging.getLogger(__name__)


@dataclass
class Message:
    """One chat message sent to a provider."""
    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ContentPart:
    """One part of a multi-part completion (e.g. {"type": "text", "text": ...})."""
    type: str = "text"
    text: str | None = None


Content = Union[str, list[Union[ContentPart, dict[str, Any]]]]


@dataclass
class CompletionParams:
    """Parameters of a single completion request."""
    messages: list[Message]
    model: str = "default"
    temperature: float | None = None
    max_tokens: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def system_prompt(self) -> str | None:
        """All system messages joined, or None if there are none."""
        system = [m.content for m in self.messages if m.role == "system"]
        return "\n\n".join(system) if system else None


@dataclass
class CompletionResponse:
    """Provider output: plain text or a list of content parts, plus usage."""
    content: Content
    usage: dict[str, int] | None = None

    @property
    def text(self) -> str:
        return extract_text(self.content)


def extract_text(content: Content | None) -> str:
    """
    Normalize provider content to a single string.

    Plain strings are returned as-is; for a list of parts the `text` of every
    part is concatenated in order (parts without text contribute nothing).
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    texts = []
    for part in content:
        if isinstance(part, ContentPart):
            texts.append(part.text or "")
        elif isinstance(part, dict):
            texts.append(part.get("text") or "")
        else:
            texts.append(str(part))
    return "".join(texts)


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.
    """

    def __init__(self,
                 model_name: str,
                 min_wait: float | None = 0.0,
                 max_wait: float | None = 0.0,
                 max_retries: int | None = 1,
                 rate_limit_exceptions: tuple[type[Exception], ...] | None = None,
                 input_token_limit: int | None = None,
                 output_token_limit: int | None = None,
                 ):
        """
        Initialize an LLM provider instance.

        Args:
            model_name: The name of the model, used when a request asks for "default".
            min_wait: Minimum wait time between retries in seconds.
            max_wait: Maximum wait time between retries in seconds.
            max_retries: Maximum attempts for rate-limited requests.
            rate_limit_exceptions: Exceptions that trigger a retry.
            input_token_limit: Maximum number of input tokens, for cost control.
            output_token_limit: Maximum number of output tokens, for cost control.
        """
        self.model_name = model_name

        # Retry settings for handling rate limits
        self.retry_settings = {"reraise": True}
        if min_wait is not None and max_wait is not None:
            self.retry_settings["wait"] = tenacity.wait_exponential(min=min_wait, max=max_wait)
        if max_retries is not None:
            self.retry_settings["stop"] = tenacity.stop_after_attempt(max_retries)
        self.retry_settings["retry"] = tenacity.retry_if_exception_type(
            rate_limit_exceptions or (tenacity.TryAgain,))

        # Token attributes
        self.input_token_limit = input_token_limit
        self.output_token_limit = output_token_limit
        self.input_tokens = 0
        self.output_tokens = 0

        # Mutual exclusion lock for thread-safe token updates
        self._lock = RLock()

    def __repr__(self):
        return (f"{self.__class__.__name__}(model_name={self.model_name!r}, "
                f"input_tokens={self.input_tokens}, output_tokens={self.output_tokens})")

    def to_dict(self) -> dict[str, Any]:
        """Serializable description of the provider (no credentials)."""
        return {
            "type": self.__class__.__name__,
            "model_name": self.model_name,
            "input_token_limit": self.input_token_limit,
            "output_token_limit": self.output_token_limit,
        }

    def get_token_usage(self) -> dict:
        """
        Retrieve the current token usage statistics.

        Returns:
            dict: A dictionary with the following keys:
                - "input_tokens" (int): The total number of input tokens used.
                - "output_tokens" (int): The total number of output tokens used.
        """
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
        }

    def estimate_input_tokens(self, params: CompletionParams) -> int:
        """Estimate the number of input tokens for a request."""
        return sum(len(m.content) for m in params.messages) // 4

    def check_token_limits(self, params: CompletionParams) -> bool:
        """Check if the token limits are exceeded."""
        input_tokens = self.estimate_input_tokens(params)

        # Estimate max allowable output size
        max_tokens = params.max_tokens
        if not max_tokens and self.output_token_limit is not None:
            max_tokens = self.output_token_limit - self.output_tokens

        if self.input_token_limit is not None and self.input_tokens + input_tokens > self.input_token_limit:
            raise ValueError("Estimated input token limit exceeded")
        elif self.output_token_limit is not None and \
            (max_tokens <= 0 or self.output_tokens + max_tokens > self.output_token_limit):
            raise ValueError("Estimated output token limit exceeded")
        return True

    def resolve_model(self, params: CompletionParams) -> str:
        """The concrete model id for a request ("default" maps to model_name)."""
        if not params.model or params.model == "default":
            return self.model_name
        return params.model

    @abstractmethod
    def generate_completion(self, params: CompletionParams) -> CompletionResponse:
        """Generate a completion for the given request.

        Args:
            params: Model, messages and sampling settings for the request.

        Returns:
            CompletionResponse: The generated content and token usage.
        """
        pass

    def generate(self, params: CompletionParams) -> CompletionResponse:
        """
        Generate a completion with retries.

        This method uses Tenacity to retry generation when the provider raises
        one of its rate limit exceptions. It checks token limits before calling
        the `generate_completion` method of the subclass and records usage
        reported in the response.

        Args:
            params: The completion request.

        Returns:
            CompletionResponse: The provider response.
        """

        @tenacity.retry(**self.retry_settings)
        def _generate_with_retry():
            self.check_token_limits(params)
            return self.generate_completion(params)

        response = _generate_with_retry()
        if response.usage:
            self.update_token_usage(
                input_tokens=response.usage.get("input_tokens"),
                output_tokens=response.usage.get("output_tokens"),
            )
        return response

    def update_token_usage(self,
                           input_tokens: int | None,
                           output_tokens: int | None):
        """
        Update the token usage counters in a thread-safe manner.

        Args:
            input_tokens (int): The number of input tokens to add. Can be None.
            output_tokens (int): The number of output tokens to add. Can be None.
        """
        with self._lock:
            if input_tokens is not None:
                self.input_tokens += input_tokens
            if output_tokens is not None:
                self.output_tokens += output_tokens
            logger.debug(f"Token usage updated: {self.input_tokens} input, {self.output_tokens} output")


class CallableLLMProvider(LLMProvider):
    """
    Adapts a plain function to the provider contract.

    The function receives a `CompletionParams` and may return a
    `CompletionResponse`, a string, a list of content parts, or a dict with
    "content" and optional "usage" keys. Any exception it raises is reported
    as a `ProviderError`.
    """

    def __init__(self,
                 func: Callable[[CompletionParams], Any],
                 model_name: str = "callable",
                 **kwargs):
        super().__init__(model_name=model_name, **kwargs)
        self.func = func

    def generate_completion(self, params: CompletionParams) -> CompletionResponse:
        try:
            result = self.func(params)
        except ProviderError:
            raise
        except Exception as err:
            raise ProviderError(f"{type(err).__name__}: {err}", provider=self.model_name) from err

        if isinstance(result, CompletionResponse):
            return result
        if isinstance(result, dict) and "content" in result:
            return CompletionResponse(content=result["content"], usage=result.get("usage"))
        return CompletionResponse(content=result)
