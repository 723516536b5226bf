"""
Configuration structs for the reasoners.

Each strategy has a frozen dataclass listing every option it understands with
its default. `from_options` builds one from a caller's option mapping: keys may
be snake_case or camelCase, a nested `method_options` mapping is flattened,
unknown keys are logged and ignored, and the result is validated once.

The confidence-blending constants (Socratic 0.6/0.4 split, 0.9 decay and 0.1
floor; Dialogic 0.7 base, 0.05 per turn and 0.9 synthesis) are plain fields so
they can be overridden per call.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar

from reason_forge.exceptions import ConfigurationError
from reason_forge.reasoning.types import Goal, Objective

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake_case(key: str) -> str:
    """'stepCount' -> 'step_count'; snake_case keys are returned unchanged."""
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _require(condition: bool, message: str):
    if not condition:
        raise ConfigurationError(message)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class TaskPlanningOptions:
    """Options for the Chain-of-Thought planning phase."""
    max_tasks: int = 5
    decompose_complex_tasks: bool = False
    prioritize_tasks: bool = False


@dataclass(frozen=True)
class ReasonerConfig:
    """
    Options shared by every reasoner.

    Attributes:
        temperature: Sampling temperature for ordinary generation calls.
        model: Model name passed to the provider ("default" lets it choose).
        max_tokens: Optional cap on generated tokens per call.
    """
    temperature: float = 0.7
    model: str = "default"
    max_tokens: int | None = None

    unit_fields: ClassVar[tuple[str, ...]] = ()
    positive_fields: ClassVar[tuple[str, ...]] = ()
    non_negative_fields: ClassVar[tuple[str, ...]] = ()

    @classmethod
    def from_options(cls, options: Mapping[str, Any] | None = None, **defaults) -> "ReasonerConfig":
        """
        Build and validate a config from caller options.

        Args:
            options: Caller options (snake_case or camelCase keys).
            **defaults: Defaults that replace the class defaults, e.g. the
                smaller step counts used by continuation passes.

        Raises:
            ConfigurationError: If a value has the wrong type or range.
        """
        known = {f.name for f in fields(cls)}
        values = dict(defaults)

        flattened = dict(options or {})
        for nested_key in ("method_options", "methodOptions"):
            nested = flattened.pop(nested_key, None)
            if nested:
                flattened = {**nested, **flattened}

        for key, value in flattened.items():
            name = to_snake_case(key)
            if name in known:
                values[name] = value
            else:
                logger.warning(f"Ignoring option '{key}' not recognized by {cls.__name__}")

        config = cls(**cls._coerce(values))
        config.validate()
        return config

    @classmethod
    def _coerce(cls, values: dict[str, Any]) -> dict[str, Any]:
        return values

    def validate(self):
        _require(_is_number(self.temperature) and 0.0 <= self.temperature <= 2.0,
                 f"temperature must be between 0 and 2, got {self.temperature!r}")
        _require(isinstance(self.model, str) and bool(self.model), "model must be a non-empty string")
        _require(self.max_tokens is None or (_is_int(self.max_tokens) and self.max_tokens > 0),
                 f"max_tokens must be a positive integer, got {self.max_tokens!r}")
        for name in self.positive_fields:
            value = getattr(self, name)
            _require(_is_int(value) and value >= 1, f"{name} must be an integer >= 1, got {value!r}")
        for name in self.non_negative_fields:
            value = getattr(self, name)
            _require(_is_int(value) and value >= 0, f"{name} must be an integer >= 0, got {value!r}")
        for name in self.unit_fields:
            value = getattr(self, name)
            _require(_is_number(value) and 0.0 <= value <= 1.0,
                     f"{name} must be a number between 0 and 1, got {value!r}")


@dataclass(frozen=True)
class ChainOfThoughtConfig(ReasonerConfig):
    """
    Chain-of-Thought options.

    Attributes:
        step_count: Reasoning steps per chain (5; continuation passes use 3).
        include_verification: Append a verification reflection after the conclusion.
        multiple_chains: Generate several chains and keep the most confident.
        chain_count: Number of chains when multiple_chains is set.
        enable_task_planning: Produce a task plan before stepping.
        goal: Optional goal the plan, steps and conclusion are aligned to.
        task_planning_options: Shape of the generated task plan.
        default_confidence: Used when the conclusion text carries no confidence.
        conclusion_temperature: Temperature of the conclusion call.
        verification_temperature: Temperature of the verification call.
        planning_temperature: Temperature of the planning call.
    """
    step_count: int = 5
    include_verification: bool = True
    multiple_chains: bool = False
    chain_count: int = 3
    enable_task_planning: bool = False
    goal: Goal | None = None
    task_planning_options: TaskPlanningOptions = field(default_factory=TaskPlanningOptions)
    default_confidence: float = 0.5
    conclusion_temperature: float = 0.5
    verification_temperature: float = 0.2
    planning_temperature: float = 0.4

    positive_fields: ClassVar[tuple[str, ...]] = ("chain_count",)
    non_negative_fields: ClassVar[tuple[str, ...]] = ("step_count",)
    unit_fields: ClassVar[tuple[str, ...]] = ("default_confidence",)

    @classmethod
    def _coerce(cls, values: dict[str, Any]) -> dict[str, Any]:
        goal = values.get("goal")
        if isinstance(goal, Mapping):
            values["goal"] = Goal(
                id=str(goal.get("id", "")),
                name=goal.get("name", ""),
                description=goal.get("description", ""),
                objectives=[
                    Objective(id=str(o.get("id", "")),
                              description=o.get("description", ""),
                              completed=bool(o.get("completed", False)))
                    for o in goal.get("objectives", [])
                ],
            )
        planning = values.get("task_planning_options")
        if isinstance(planning, Mapping):
            values["task_planning_options"] = TaskPlanningOptions(
                **{to_snake_case(k): v for k, v in planning.items()}
            )
        return values

    def validate(self):
        super().validate()
        _require(self.goal is None or isinstance(self.goal, Goal), "goal must be a Goal or a mapping")
        _require(isinstance(self.task_planning_options, TaskPlanningOptions),
                 "task_planning_options must be a mapping")
        _require(_is_int(self.task_planning_options.max_tasks) and self.task_planning_options.max_tasks >= 1,
                 "task_planning_options.max_tasks must be an integer >= 1")


@dataclass(frozen=True)
class SocraticConfig(ReasonerConfig):
    """
    Socratic options.

    Attributes:
        max_questions: Insights after which a single path stops (5; 3 when continuing).
        min_questions: Insights every branch must reach in branching mode (3; 1 when continuing).
        include_verification: Verify the conclusion and blend the score into confidence.
        include_synthesis: Merge all insights into a conclusion with one call.
        seed_questions: Initial questions; skips the question-generation call.
        explore_branches: Explore several cloned question paths.
        max_branches: Upper bound on paths in branching mode.
        default_confidence: Used when the synthesis carries no confidence.
        prior_weight / verification_weight: Blend of prior confidence and verification score.
        confidence_decay / confidence_floor: Applied when no score can be parsed.
        system_instructions: Replaces the default synthesis system prompt.
        verbose: Log each question and answer at INFO instead of DEBUG.
    """
    max_questions: int = 5
    min_questions: int = 3
    include_verification: bool = True
    include_synthesis: bool = True
    seed_questions: tuple[str, ...] = ()
    explore_branches: bool = False
    max_branches: int = 2
    default_confidence: float = 0.7
    prior_weight: float = 0.6
    verification_weight: float = 0.4
    confidence_decay: float = 0.9
    confidence_floor: float = 0.1
    system_instructions: str | None = None
    verbose: bool = False
    question_temperature: float = 0.5
    synthesis_temperature: float = 0.5
    verification_temperature: float = 0.3

    positive_fields: ClassVar[tuple[str, ...]] = ("max_questions", "max_branches")
    non_negative_fields: ClassVar[tuple[str, ...]] = ("min_questions",)
    unit_fields: ClassVar[tuple[str, ...]] = (
        "default_confidence", "prior_weight", "verification_weight", "confidence_decay", "confidence_floor",
    )

    @classmethod
    def _coerce(cls, values: dict[str, Any]) -> dict[str, Any]:
        seeds = values.get("seed_questions")
        if seeds is not None and not isinstance(seeds, str):
            values["seed_questions"] = tuple(seeds)
        return values

    def validate(self):
        super().validate()
        _require(isinstance(self.seed_questions, tuple), "seed_questions must be a list of strings")
        # min_questions only bounds branching runs
        if self.explore_branches:
            _require(self.min_questions <= self.max_questions,
                     f"min_questions ({self.min_questions}) cannot exceed max_questions ({self.max_questions})")


@dataclass(frozen=True)
class DialogicConfig(ReasonerConfig):
    """
    Dialogic options.

    Attributes:
        max_turns / min_turns: Bounds on critique/refinement turns.
        stop_on_consensus: End early once successive proposals converge.
        consensus_threshold: Jaccard similarity counted as consensus.
        include_synthesis: Finish with a proposer synthesis of the dialog.
        different_temperatures: Use proposer/critic temperatures instead of `temperature`.
        base_confidence / turn_increment: Proposal confidence is base + increment * turn
            (advisory, never clamped).
        synthesis_confidence: Confidence assigned to the synthesis.
        proposer_model / critic_model / synthesis_model: Per-role model names.
    """
    max_turns: int = 5
    min_turns: int = 2
    different_temperatures: bool = True
    proposer_temperature: float = 0.7
    critic_temperature: float = 0.9
    include_synthesis: bool = True
    stop_on_consensus: bool = True
    consensus_threshold: float = 0.8
    base_confidence: float = 0.7
    turn_increment: float = 0.05
    synthesis_confidence: float = 0.9
    synthesis_temperature: float = 0.5
    proposer_model: str | None = None
    critic_model: str | None = None
    synthesis_model: str | None = None

    non_negative_fields: ClassVar[tuple[str, ...]] = ("max_turns", "min_turns")
    unit_fields: ClassVar[tuple[str, ...]] = (
        "consensus_threshold", "base_confidence", "turn_increment", "synthesis_confidence",
    )

    def role_temperature(self, role: str) -> float:
        """Temperature for 'proposer' or 'critic' calls."""
        if not self.different_temperatures:
            return self.temperature
        return self.critic_temperature if role == "critic" else self.proposer_temperature
