"""
Exception hierarchy for reason-forge.

All exceptions inherit from ReasonForgeError so callers can catch the whole
family at once. The public `reason` / `continue_reasoning` entry points never
let these escape; they are reported through `ReasoningResult.error` instead.
"""

from typing import Any


class ReasonForgeError(Exception):
    """Base exception for all reason-forge errors."""

    def __init__(self,
                 message: str,
                 *,
                 details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ReasonForgeError):
    """Invalid reasoning options or reasoner wiring."""


class ProviderError(ReasonForgeError):
    """A model provider call failed (network, API, quota...)."""

    def __init__(self,
                 message: str,
                 *,
                 provider: str | None = None,
                 details: dict[str, Any] | None = None):
        super().__init__(message, details=details)
        self.provider = provider


class ParseError(ReasonForgeError):
    """Provider text did not contain the expected markers."""


class StateError(ReasonForgeError):
    """A reasoning graph is not in a state the operation can work with."""
