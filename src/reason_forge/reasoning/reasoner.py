"""
This module defines the common contract for reasoners and the base class the
concrete strategies build on.

The `Reasoner` protocol is the public surface: `reason`, `continue_reasoning`
and `set_progress_callback`. `BaseReasoner` implements that surface once:

- it creates the graph, builds and validates the strategy config, times the
  pass and converts every failure into a `ReasoningResult` with
  `success=False` and the partial graph attached;
- it owns the only graph mutators, `add_node` and `add_edge`, which append
  under a re-entrant lock so parallel chains never interleave an append;
- it wraps provider calls (`complete`) so provider failures surface as
  `ProviderError` and multi-part content is flattened to text;
- it delivers progress notifications without letting a faulty callback
  disturb reasoning.

Subclasses implement `_run_reasoning` and `_run_continuation`, each returning
a `PassOutcome`.
"""

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, ClassVar, Protocol

from reason_forge.exceptions import ConfigurationError, ProviderError, StateError
from reason_forge.llm import CompletionParams, LLMProvider, Message, extract_text
from reason_forge.reasoning.config import ReasonerConfig
from reason_forge.reasoning.types import (
    ReasoningEdge,
    ReasoningGraph,
    ReasoningMethod,
    ReasoningNode,
    ReasoningNodeType,
    ReasoningProgress,
    ReasoningResult,
    ReasoningStep,
)
from reason_forge.utils.ids import IdGenerator, UUIDGenerator

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ReasoningProgress], Any]


class Reasoner(Protocol):
    """Protocol defining the public interface of reasoners."""
    def reason(self, query: str, options: Mapping[str, Any] | None = None) -> ReasoningResult:
        ...

    def continue_reasoning(self,
                           graph: ReasoningGraph,
                           options: Mapping[str, Any] | None = None) -> ReasoningResult:
        ...

    def set_progress_callback(self, callback: ProgressCallback | None) -> None:
        ...


@dataclass
class PassOutcome:
    """What a strategy pass produced; `graph` is set only when the pass built a new graph."""
    conclusion: str
    confidence: float
    step_count: int
    graph: ReasoningGraph | None = None


class BaseReasoner(ABC):
    """
    Base class providing the graph primitives and the public entry points.

    Attributes:
        method (ReasoningMethod): Strategy tag stamped on created graphs.
        config_class (type[ReasonerConfig]): Config struct for the strategy.
        continuation_defaults (dict): Defaults applied to continuation passes.
        llm_provider (LLMProvider): Provider used for generation.
        default_options (dict): Options applied to every call before caller options.
        id_generator (IdGenerator): Source of graph and node ids.
        logger (logging.Logger): Destination of this reasoner's log records.
    """
    method: ClassVar[ReasoningMethod]
    config_class: ClassVar[type[ReasonerConfig]] = ReasonerConfig
    continuation_defaults: ClassVar[dict[str, Any]] = {}

    def __init__(self,
                 llm_provider: LLMProvider,
                 default_options: Mapping[str, Any] | None = None,
                 id_generator: IdGenerator | None = None,
                 logger: logging.Logger | None = None):
        if llm_provider is None:
            raise ConfigurationError(f"{self.__class__.__name__} requires an LLM provider")
        self.llm_provider = llm_provider
        self.default_options = dict(default_options or {})
        self.id_generator = id_generator or UUIDGenerator()
        self.logger = logger or logging.getLogger(__name__)
        self.progress_callback: ProgressCallback | None = None
        self._lock = RLock()

    def __repr__(self):
        return f"{self.__class__.__name__}(method={self.method.value}, provider={self.llm_provider!r})"

    def get_method(self) -> ReasoningMethod:
        return self.method

    def set_progress_callback(self, callback: ProgressCallback | None) -> None:
        """Register a function called synchronously after each produced node."""
        self.progress_callback = callback

    def build_config(self,
                     options: Mapping[str, Any] | None = None,
                     continuing: bool = False) -> ReasonerConfig:
        """Merge constructor defaults, continuation defaults and caller options into a config."""
        merged = dict(self.default_options)
        if continuing:
            merged.update(self.continuation_defaults)
        merged.update(options or {})
        return self.config_class.from_options(merged)

    # Public entry points

    def reason(self, query: str, options: Mapping[str, Any] | None = None) -> ReasoningResult:
        """
        Run a full reasoning pass on a query.

        Never raises: failures are reported with `success=False`, an error
        message, and the partial graph built so far.
        """
        start = time.perf_counter()
        graph = self.create_graph(query, self.method)
        try:
            if not isinstance(query, str) or not query.strip():
                raise ConfigurationError("query must be a non-empty string")
            config = self.build_config(options)
            self.logger.info(f"Starting {self.method.value} reasoning for graph {graph.id}")
            outcome = self._run_reasoning(graph, config)
        except Exception as err:
            return self._failure(graph, err, start, nodes_before=0)
        return self._success(graph, outcome, start)

    def continue_reasoning(self,
                           graph: ReasoningGraph,
                           options: Mapping[str, Any] | None = None) -> ReasoningResult:
        """
        Extend a graph produced by an earlier pass.

        Never raises; a missing or empty graph yields `success=False` with a
        state error. A strategy that continues into a new graph attaches it to
        the raised exception as `partial_graph` so the failure reports it.
        """
        start = time.perf_counter()
        nodes_before = 0
        try:
            if graph is None or not graph.nodes:
                raise StateError("Cannot continue reasoning: the graph has no nodes")
            nodes_before = len(graph.nodes)
            config = self.build_config(options, continuing=True)
            self.logger.info(f"Continuing {self.method.value} reasoning on graph {graph.id}")
            outcome = self._run_continuation(graph, config)
        except Exception as err:
            partial_graph = getattr(err, "partial_graph", None)
            if partial_graph is not None:
                return self._failure(partial_graph, err, start, nodes_before=0)
            return self._failure(graph, err, start, nodes_before=nodes_before)
        return self._success(graph, outcome, start)

    @abstractmethod
    def _run_reasoning(self, graph: ReasoningGraph, config: ReasonerConfig) -> PassOutcome:
        """Child classes build a fresh pass into `graph` here."""
        pass

    @abstractmethod
    def _run_continuation(self, graph: ReasoningGraph, config: ReasonerConfig) -> PassOutcome:
        """Child classes extend a non-empty `graph` here."""
        pass

    def _success(self, graph: ReasoningGraph, outcome: PassOutcome, start: float) -> ReasoningResult:
        result_graph = outcome.graph or graph
        if result_graph.nodes:
            result_graph.conclusion = outcome.conclusion
        elapsed = (time.perf_counter() - start) * 1000
        self.logger.info(
            f"Finished {self.method.value} reasoning on graph {result_graph.id} "
            f"({outcome.step_count} steps, confidence {outcome.confidence:.2f}, {elapsed:.0f} ms)"
        )
        return ReasoningResult(
            graph=result_graph,
            conclusion=outcome.conclusion,
            confidence=outcome.confidence,
            time_taken=elapsed,
            step_count=outcome.step_count,
            success=True,
        )

    def _failure(self,
                 graph: ReasoningGraph | None,
                 error: Exception,
                 start: float,
                 nodes_before: int) -> ReasoningResult:
        message = f"{type(error).__name__}: {error}"
        graph_id = graph.id if graph is not None else None
        self.logger.error(f"{self.method.value} reasoning failed on graph {graph_id}: {message}")
        return ReasoningResult(
            graph=graph,
            conclusion="",
            confidence=0.0,
            time_taken=(time.perf_counter() - start) * 1000,
            step_count=max(0, len(graph.nodes) - nodes_before) if graph is not None else 0,
            success=False,
            error=message,
        )

    # Graph primitives

    def generate_id(self) -> str:
        return self.id_generator()

    def create_graph(self, query: str, method: ReasoningMethod) -> ReasoningGraph:
        """Create an empty graph for a query."""
        now = time.time()
        return ReasoningGraph(id=self.generate_id(), query=query, method=method, created_at=now, updated_at=now)

    def add_node(self,
                 graph: ReasoningGraph,
                 node_type: ReasoningNodeType,
                 content: str,
                 confidence: float | None = None,
                 metadata: dict[str, Any] | None = None) -> ReasoningNode:
        """Append a node and refresh `graph.updated_at`."""
        with self._lock:
            timestamp = max(time.time(), graph.updated_at)
            node = ReasoningNode(
                id=self.generate_id(),
                type=node_type,
                content=content,
                confidence=confidence,
                timestamp=timestamp,
                metadata=dict(metadata or {}),
            )
            graph.nodes.append(node)
            graph.updated_at = timestamp
        return node

    def add_edge(self,
                 graph: ReasoningGraph,
                 source: ReasoningNode | str,
                 target: ReasoningNode | str,
                 label: str | None = None,
                 weight: float | None = None) -> ReasoningEdge:
        """Append an edge between two existing nodes and refresh `graph.updated_at`."""
        source_id = source.id if isinstance(source, ReasoningNode) else source
        target_id = target.id if isinstance(target, ReasoningNode) else target
        with self._lock:
            for node_id in (source_id, target_id):
                if not graph.has_node(node_id):
                    raise StateError(f"Edge endpoint {node_id} is not a node of graph {graph.id}")
            edge = ReasoningEdge(source=source_id, target=target_id, label=label, weight=weight)
            graph.edges.append(edge)
            graph.updated_at = max(time.time(), graph.updated_at)
        return edge

    # Provider access

    def complete(self,
                 messages: list[Message],
                 config: ReasonerConfig,
                 temperature: float | None = None,
                 model: str | None = None,
                 provider: LLMProvider | None = None) -> str:
        """
        Issue one completion request and return its text.

        Args:
            messages: Chat messages for the request.
            config: Active config (model, temperature and max_tokens fallbacks).
            temperature: Overrides `config.temperature` for this call.
            model: Overrides `config.model` for this call.
            provider: Overrides the reasoner's default provider.

        Raises:
            ProviderError: If the provider call fails for any reason.
        """
        provider = provider or self.llm_provider
        params = CompletionParams(
            messages=messages,
            model=model or config.model,
            temperature=config.temperature if temperature is None else temperature,
            max_tokens=config.max_tokens,
        )
        try:
            response = provider.generate(params)
        except ProviderError:
            raise
        except Exception as err:
            raise ProviderError(f"{type(err).__name__}: {err}", provider=repr(provider)) from err

        text = extract_text(getattr(response, "content", response))
        self.logger.debug(f"Provider returned {len(text)} chars")
        return text

    # Progress

    def report_progress(self,
                        step: ReasoningStep,
                        step_number: int,
                        total_steps: int,
                        interim_conclusion: str | None = None,
                        confidence: float | None = None) -> None:
        """Notify the progress callback, if any. Callback errors are logged and dropped."""
        if self.progress_callback is None:
            return
        progress = ReasoningProgress(
            current_step=step,
            step_number=step_number,
            total_steps=total_steps,
            interim_conclusion=interim_conclusion,
            confidence=confidence,
        )
        try:
            self.progress_callback(progress)
        except Exception as err:
            self.logger.warning(f"Progress callback raised {type(err).__name__}: {err}")

    def report_node(self,
                    node: ReasoningNode,
                    description: str,
                    step_number: int,
                    total_steps: int,
                    previous: ReasoningNode | None = None,
                    interim_conclusion: str | None = None,
                    confidence: float | None = None) -> None:
        """Report a freshly added node as a progress step."""
        if self.progress_callback is None:
            return
        step = ReasoningStep(
            id=node.id,
            type=node.type,
            description=description,
            content=node.content,
            previous_step_id=previous.id if previous else None,
            timestamp=node.timestamp,
        )
        self.report_progress(step, step_number, total_steps, interim_conclusion, confidence)
