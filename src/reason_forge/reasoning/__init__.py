"""
The reasoning module turns a query into an auditable reasoning graph.

Key Components:
- types: The reasoning graph data model and result types
- config: Option structs for each reasoning method
- reasoner: The BaseReasoner contract and graph primitives
- chain_of_thought, socratic, dialogic: The reasoning methods
- engine: Registry-backed entry point for running reasoners

Example usage:
```python
from reason_forge.llm import CallableLLMProvider
from reason_forge.reasoning import ChainOfThoughtReasoner

llm = CallableLLMProvider(lambda params: "CONCLUSION: 42\\nCONFIDENCE: 0.9")
reasoner = ChainOfThoughtReasoner(llm)

result = reasoner.reason("What is six times seven?", {"step_count": 3})
print(result.conclusion, result.confidence)
```
"""

from .chain_of_thought import ChainOfThoughtReasoner
from .config import ChainOfThoughtConfig, DialogicConfig, ReasonerConfig, SocraticConfig, TaskPlanningOptions
from .dialogic import DialogicReasoner
from .engine import ReasoningEngine
from .reasoner import BaseReasoner, PassOutcome, ProgressCallback, Reasoner
from .registry import ReasonerRegistry
from .socratic import SocraticReasoner
from .types import (
    Goal,
    Objective,
    ReasoningEdge,
    ReasoningGraph,
    ReasoningMethod,
    ReasoningNode,
    ReasoningNodeType,
    ReasoningProgress,
    ReasoningResult,
    ReasoningStep,
)

__all__ = [
    "BaseReasoner",
    "Reasoner",
    "PassOutcome",
    "ProgressCallback",
    "ChainOfThoughtReasoner",
    "SocraticReasoner",
    "DialogicReasoner",
    "ReasonerRegistry",
    "ReasoningEngine",
    "ReasonerConfig",
    "ChainOfThoughtConfig",
    "SocraticConfig",
    "DialogicConfig",
    "TaskPlanningOptions",
    "Goal",
    "Objective",
    "ReasoningEdge",
    "ReasoningGraph",
    "ReasoningMethod",
    "ReasoningNode",
    "ReasoningNodeType",
    "ReasoningProgress",
    "ReasoningResult",
    "ReasoningStep",
]
