"""
reason-forge: structured reasoning graphs driven by LLM providers.
"""

from .exceptions import ConfigurationError, ParseError, ProviderError, ReasonForgeError, StateError

__version__ = "0.1.0"

__all__ = [
    "ReasonForgeError",
    "ConfigurationError",
    "ProviderError",
    "ParseError",
    "StateError",
]
