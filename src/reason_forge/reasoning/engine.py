"""
This module defines the ReasoningEngine, the entry point for running reasoners.

The engine routes a query to the reasoner registered for the requested
method, routes continuations by the method stored on the graph, and runs
batches of independent queries sequentially or on a thread pool.

Example:
    ```python
    provider = GeminiLLMProvider(api_key=...)
    engine = ReasoningEngine.from_providers(provider, critic_provider=provider)

    result = engine.reason("Is 221 prime?", method="chain_of_thought", options={"step_count": 3})
    print(result.conclusion, result.confidence)

    more = engine.continue_reasoning(result.graph, {"step_count": 2})
    ```
"""

import logging
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from tqdm import tqdm

from reason_forge.llm import LLMProvider
from reason_forge.reasoning.chain_of_thought import ChainOfThoughtReasoner
from reason_forge.reasoning.dialogic import DialogicReasoner
from reason_forge.reasoning.reasoner import ProgressCallback, Reasoner
from reason_forge.reasoning.registry import ReasonerRegistry
from reason_forge.reasoning.socratic import SocraticReasoner
from reason_forge.reasoning.types import ReasoningGraph, ReasoningMethod, ReasoningResult
from reason_forge.utils.ids import IdGenerator

logger = logging.getLogger(__name__)


class ReasoningEngine:
    """
    Dispatches reasoning requests to registered reasoners.

    Attributes:
        registry (ReasonerRegistry): Reasoners keyed by method name.
        default_method (ReasoningMethod): Method used when none is given.
    """

    def __init__(self,
                 registry: ReasonerRegistry,
                 default_method: ReasoningMethod = ReasoningMethod.CHAIN_OF_THOUGHT):
        self.registry = registry
        self.default_method = default_method

    def __repr__(self):
        return f"ReasoningEngine(methods={self.registry.list_methods()}, default={self.default_method.value})"

    @classmethod
    def from_providers(cls,
                       provider: LLMProvider,
                       critic_provider: LLMProvider | None = None,
                       default_options: Mapping[str, Any] | None = None,
                       id_generator: IdGenerator | None = None) -> "ReasoningEngine":
        """
        Build an engine with the standard reasoners.

        The dialogic reasoner is registered only when a critic provider is given.
        """
        registry = ReasonerRegistry()
        kwargs = {"default_options": default_options, "id_generator": id_generator}
        registry.register(ReasoningMethod.CHAIN_OF_THOUGHT, ChainOfThoughtReasoner(provider, **kwargs))
        registry.register(ReasoningMethod.SOCRATIC, SocraticReasoner(provider, **kwargs))
        if critic_provider is not None:
            registry.register(ReasoningMethod.DIALOGIC, DialogicReasoner(provider, critic_provider, **kwargs))
        return cls(registry)

    def get_reasoner(self, method: ReasoningMethod | str | None = None) -> Reasoner:
        """Return the reasoner for a method; unknown methods raise ValueError."""
        method = method or self.default_method
        reasoner = self.registry.get(method)
        if reasoner is None:
            name = method.value if isinstance(method, ReasoningMethod) else method
            raise ValueError(f"No reasoner registered for method '{name}'. "
                             f"Available: {self.registry.list_methods()}")
        return reasoner

    def set_progress_callback(self, callback: ProgressCallback | None):
        """Install the callback on every registered reasoner."""
        for name in self.registry.list_methods():
            self.registry.get(name).set_progress_callback(callback)

    def reason(self,
               query: str,
               method: ReasoningMethod | str | None = None,
               options: Mapping[str, Any] | None = None) -> ReasoningResult:
        """Run a reasoning pass with the reasoner for `method`."""
        return self.get_reasoner(method).reason(query, options)

    def continue_reasoning(self,
                           graph: ReasoningGraph,
                           options: Mapping[str, Any] | None = None) -> ReasoningResult:
        """Continue a graph with the reasoner for the method that created it."""
        return self.get_reasoner(graph.method).continue_reasoning(graph, options)

    def reason_batch(self,
                     queries: list[str],
                     method: ReasoningMethod | str | None = None,
                     options: Mapping[str, Any] | None = None,
                     multi_thread: bool = False,
                     max_workers: int | None = 4,
                     progress_bar: bool = True) -> list[ReasoningResult]:
        """
        Reason over several independent queries.

        Args:
            queries: Queries to process; each gets its own graph.
            method: Reasoning method for every query.
            options: Options for every query.
            multi_thread: Run queries on a thread pool.
            max_workers: Thread pool size when multi_thread is True.
            progress_bar: Show a tqdm progress bar.

        Returns:
            list[ReasoningResult]: One result per query, in input order.
        """
        if multi_thread and max_workers is None:
            raise ValueError("max_workers must be specified when multi_thread is True.")
        reasoner = self.get_reasoner(method)

        if multi_thread:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                futures = [executor.submit(reasoner.reason, query, options) for query in queries]
                future_iterator = futures
                if progress_bar:
                    future_iterator = tqdm(futures, total=len(futures), desc="Reasoning over queries", unit="query")
                results = [future.result() for future in future_iterator]
        else:
            iterator = queries
            if progress_bar:
                iterator = tqdm(queries, total=len(queries), desc="Reasoning over queries", unit="query")
            results = [reasoner.reason(query, options) for query in iterator]

        failed = sum(1 for result in results if not result.success)
        if failed:
            logger.warning(f"{failed} of {len(results)} queries failed")
        return results
