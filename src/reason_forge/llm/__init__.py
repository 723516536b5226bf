"""
LLM provider integrations for reason-forge.
This module provides the request/response contract the reasoners consume,
allowing users to easily switch between different models and providers.
"""

from .gemini import GeminiLLMProvider
from .llm_provider import (
    CallableLLMProvider,
    CompletionParams,
    CompletionResponse,
    ContentPart,
    LLMProvider,
    Message,
    extract_text,
)

__all__ = [
    "LLMProvider",
    "CallableLLMProvider",
    "GeminiLLMProvider",
    "CompletionParams",
    "CompletionResponse",
    "ContentPart",
    "Message",
    "extract_text",
]
