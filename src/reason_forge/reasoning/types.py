"""
Data model for reasoning sessions.

A `ReasoningGraph` records one session as an append-only list of nodes and
edges. Nodes carry the text of each reasoning unit; edges carry the causal
links between them. Graphs are mutated only through the `BaseReasoner`
primitives (`add_node` / `add_edge`), which keep `updated_at` current.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ReasoningMethod(str, Enum):
    """Strategy tag stored on a graph."""
    CHAIN_OF_THOUGHT = "chain_of_thought"
    SOCRATIC = "socratic"
    DIALOGIC = "dialogic"


class ReasoningNodeType(str, Enum):
    """Kinds of reasoning units."""
    OBSERVATION = "observation"
    ANALYSIS = "analysis"
    INFERENCE = "inference"
    ACTION = "action"
    QUESTION = "question"
    DECISION = "decision"
    REFLECTION = "reflection"


@dataclass
class ReasoningNode:
    """A node in the reasoning graph."""
    id: str
    type: ReasoningNodeType
    content: str
    confidence: float | None = None
    timestamp: float = field(default_factory=time.time)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "confidence": self.confidence,
            "timestamp": self.timestamp,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReasoningNode":
        return cls(
            id=data["id"],
            type=ReasoningNodeType(data["type"]),
            content=data.get("content", ""),
            confidence=data.get("confidence"),
            timestamp=data.get("timestamp", 0.0),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class ReasoningEdge:
    """Directed relation source -> target with an optional label and weight."""
    source: str
    target: str
    label: str | None = None
    weight: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.source, "to": self.target, "label": self.label, "weight": self.weight}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReasoningEdge":
        return cls(
            source=data["from"],
            target=data["to"],
            label=data.get("label"),
            weight=data.get("weight"),
        )


@dataclass
class ReasoningGraph:
    """
    One reasoning session.

    Attributes:
        id: Opaque unique identifier.
        query: The original problem statement.
        method: Strategy that created the graph.
        nodes: Nodes in insertion order.
        edges: Edges in insertion order; endpoints always exist in `nodes`.
        conclusion: Final conclusion of the latest completed pass, if any.
        created_at: Creation time (seconds since the epoch).
        updated_at: Time of the latest append.
        metadata: Strategy side channels (task plan, goal, selected chain...).
    """
    id: str
    query: str
    method: ReasoningMethod
    nodes: list[ReasoningNode] = field(default_factory=list)
    edges: list[ReasoningEdge] = field(default_factory=list)
    conclusion: str | None = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.updated_at:
            self.updated_at = self.created_at

    def get_node(self, node_id: str) -> ReasoningNode | None:
        """Return the node with the given id, or None."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def has_node(self, node_id: str) -> bool:
        return self.get_node(node_id) is not None

    def successors(self, node_id: str, label: str | None = None) -> list[ReasoningNode]:
        """Nodes reached by edges leaving `node_id`, optionally filtered by label."""
        ids = [e.target for e in self.edges if e.source == node_id and (label is None or e.label == label)]
        return [n for n in (self.get_node(i) for i in ids) if n is not None]

    def predecessors(self, node_id: str, label: str | None = None) -> list[ReasoningNode]:
        """Nodes with edges into `node_id`, optionally filtered by label."""
        ids = [e.source for e in self.edges if e.target == node_id and (label is None or e.label == label)]
        return [n for n in (self.get_node(i) for i in ids) if n is not None]

    def latest_node(self) -> ReasoningNode | None:
        """The most recently timestamped node; ties go to the later insertion."""
        latest = None
        for node in self.nodes:
            if latest is None or node.timestamp >= latest.timestamp:
                latest = node
        return latest

    def nodes_with_role(self, role: str) -> list[ReasoningNode]:
        return [n for n in self.nodes if n.metadata.get("role") == role]

    def is_acyclic(self) -> bool:
        """True if no node is its own ancestor."""
        children: dict[str, list[str]] = {n.id: [] for n in self.nodes}
        in_degree = dict.fromkeys(children, 0)
        for edge in self.edges:
            children.setdefault(edge.source, []).append(edge.target)
            children.setdefault(edge.target, [])
            in_degree[edge.target] = in_degree.get(edge.target, 0) + 1
            in_degree.setdefault(edge.source, 0)

        # Kahn's algorithm: nodes on a cycle never reach in-degree zero
        ready = [node_id for node_id, degree in in_degree.items() if degree == 0]
        removed = 0
        while ready:
            node_id = ready.pop()
            removed += 1
            for child in children[node_id]:
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    ready.append(child)
        return removed == len(in_degree)

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible representation of the graph."""
        return {
            "id": self.id,
            "query": self.query,
            "method": self.method.value,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "conclusion": self.conclusion,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReasoningGraph":
        return cls(
            id=data["id"],
            query=data["query"],
            method=ReasoningMethod(data["method"]),
            nodes=[ReasoningNode.from_dict(n) for n in data.get("nodes", [])],
            edges=[ReasoningEdge.from_dict(e) for e in data.get("edges", [])],
            conclusion=data.get("conclusion"),
            created_at=data.get("created_at", 0.0),
            updated_at=data.get("updated_at", 0.0),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class ReasoningStep:
    """A produced reasoning unit, as reported to progress callbacks."""
    id: str
    type: ReasoningNodeType
    description: str
    content: str
    previous_step_id: str | None = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class ReasoningProgress:
    """Progress notification sent after each produced node."""
    current_step: ReasoningStep
    step_number: int
    total_steps: int
    interim_conclusion: str | None = None
    confidence: float | None = None


@dataclass
class ReasoningResult:
    """Outcome of a reasoning pass.

    `time_taken` is in milliseconds. On failure `success` is False, `error`
    holds the message and `graph` holds whatever was built before the failure
    (None only when a continuation was given no graph).
    """
    graph: ReasoningGraph | None
    conclusion: str
    confidence: float
    time_taken: float
    step_count: int
    success: bool
    error: str | None = None


@dataclass
class Objective:
    """One objective of a goal."""
    id: str
    description: str
    completed: bool = False


@dataclass
class Goal:
    """A goal that Chain-of-Thought planning and conclusions are aligned to."""
    id: str
    name: str
    description: str = ""
    objectives: list[Objective] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "objectives": [
                {"id": o.id, "description": o.description, "completed": o.completed}
                for o in self.objectives
            ],
        }
