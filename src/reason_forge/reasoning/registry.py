import logging

from reason_forge.reasoning.reasoner import Reasoner
from reason_forge.reasoning.types import ReasoningMethod

logger = logging.getLogger(__name__)


def _method_name(method: ReasoningMethod | str) -> str:
    return method.value if isinstance(method, ReasoningMethod) else str(method)


class ReasonerRegistry:
    """ Registry of reasoner instances keyed by method name. """

    def __init__(self, reasoners: dict[ReasoningMethod | str, Reasoner] | None = None):
        """ Initialize the registry.

        Args:
            reasoners: Initial mapping of method to reasoner. Defaults to None.
        """
        self._reasoners: dict[str, Reasoner] = {}
        for method, reasoner in (reasoners or {}).items():
            self.register(method, reasoner)

    def register(self, method: ReasoningMethod | str, reasoner: Reasoner) -> Reasoner:
        """
        Register a reasoner under a method name, replacing any previous one.

        Returns:
            The registered reasoner.
        """
        name = _method_name(method)
        if name in self._reasoners:
            logger.info(f"Replacing reasoner registered for '{name}'")
        self._reasoners[name] = reasoner
        return reasoner

    def get(self, method: ReasoningMethod | str) -> Reasoner | None:
        """Get the reasoner for a method, or None if not found."""
        return self._reasoners.get(_method_name(method))

    def list_methods(self) -> list[str]:
        """Return all registered method names."""
        return list(self._reasoners.keys())

    def remove(self, method: ReasoningMethod | str):
        """Remove a reasoner from the registry."""
        name = _method_name(method)
        if name in self._reasoners:
            del self._reasoners[name]
        else:
            raise ValueError(f"Reasoner '{name}' not found in registry.")

    def __contains__(self, method: ReasoningMethod | str) -> bool:
        return _method_name(method) in self._reasoners

    def __len__(self) -> int:
        return len(self._reasoners)
