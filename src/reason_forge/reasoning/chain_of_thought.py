"""
Chain-of-Thought reasoning.

A pass runs `Init -> Planning? -> Stepping(xN) -> Concluding -> Verifying?`.
Each step is one provider call prompted with every earlier step of its chain;
the conclusion call is parsed for a `CONCLUSION:`/`CONFIDENCE:` pair and the
optional verification call leaves the confidence unchanged.

With `multiple_chains`, `chain_count` chains are generated concurrently into
the same graph, each from its own initial observation. The chain with the
strictly highest confidence wins; ties go to the earliest chain. Losing
chains stay in the graph for auditability.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from reason_forge.reasoning.config import ChainOfThoughtConfig
from reason_forge.reasoning.prompts import ChainOfThoughtPrompts, build_messages
from reason_forge.reasoning.reasoner import BaseReasoner, PassOutcome
from reason_forge.reasoning.types import Goal, ReasoningGraph, ReasoningMethod, ReasoningNode, ReasoningNodeType
from reason_forge.utils.parsing import parse_conclusion

logger = logging.getLogger(__name__)


@dataclass
class ChainResult:
    """Conclusion of one chain and the node that holds it."""
    conclusion: str
    confidence: float
    conclusion_node: ReasoningNode
    chain_index: int = 0


def step_node_type(step_number: int, total_steps: int) -> ReasoningNodeType:
    """Step 1 frames the problem, the last step infers, the ones between analyze."""
    if step_number == 1:
        return ReasoningNodeType.QUESTION
    if step_number == total_steps:
        return ReasoningNodeType.INFERENCE
    return ReasoningNodeType.ANALYSIS


class ChainOfThoughtReasoner(BaseReasoner):
    """
    Linear step-by-step reasoning with optional task planning, verification
    and best-of-N chain selection.
    """
    method = ReasoningMethod.CHAIN_OF_THOUGHT
    config_class = ChainOfThoughtConfig
    continuation_defaults = {"step_count": 3}

    def _run_reasoning(self, graph: ReasoningGraph, config: ChainOfThoughtConfig) -> PassOutcome:
        if config.goal is not None:
            graph.metadata["goal"] = config.goal.to_dict()

        root = None
        task_plan = None
        if config.enable_task_planning:
            root = self._add_initial_observation(graph)
            task_plan = self._generate_task_plan(graph, root, config)

        if config.multiple_chains:
            chain = self._run_multiple_chains(graph, config, task_plan)
        else:
            chain = self._generate_chain(graph, config, root=root, task_plan=task_plan)

        if config.goal is not None and "taskPlan" in graph.metadata:
            self._record_goal_progress(graph, config.goal)

        return PassOutcome(chain.conclusion, chain.confidence, len(graph.nodes))

    def _add_initial_observation(self, graph: ReasoningGraph, chain_index: int | None = None) -> ReasoningNode:
        metadata = {"chainIndex": chain_index} if chain_index is not None else None
        return self.add_node(graph, ReasoningNodeType.OBSERVATION, f"Initial Query: {graph.query}", 1.0, metadata)

    def _generate_task_plan(self,
                            graph: ReasoningGraph,
                            root: ReasoningNode,
                            config: ChainOfThoughtConfig) -> str:
        planning = config.task_planning_options
        prompt = ChainOfThoughtPrompts.task_plan_prompt(
            graph.query,
            planning.max_tasks,
            goal=config.goal,
            decompose_complex_tasks=planning.decompose_complex_tasks,
            prioritize_tasks=planning.prioritize_tasks,
        )
        plan = self.complete(
            build_messages(ChainOfThoughtPrompts.planner_system_prompt, prompt),
            config,
            temperature=config.planning_temperature,
        )
        plan_node = self.add_node(graph, ReasoningNodeType.DECISION, plan, metadata={"type": "task_plan"})
        self.add_edge(graph, root, plan_node, "plans")
        graph.metadata["taskPlan"] = {"content": plan, "nodeId": plan_node.id}
        self.logger.info(f"Generated task plan for graph {graph.id}")
        self.report_node(plan_node, "Task plan", 0, config.step_count, previous=root)
        return plan

    def _run_multiple_chains(self,
                             graph: ReasoningGraph,
                             config: ChainOfThoughtConfig,
                             task_plan: str | None) -> ChainResult:
        self.logger.info(f"Generating {config.chain_count} chains for graph {graph.id}")
        with ThreadPoolExecutor(max_workers=config.chain_count) as executor:
            futures = [
                executor.submit(self._generate_chain, graph, config, None, task_plan, index)
                for index in range(config.chain_count)
            ]
            chains = [future.result() for future in futures]

        best = chains[0]
        for chain in chains[1:]:
            if chain.confidence > best.confidence:
                best = chain

        best.conclusion_node.metadata["selected"] = True
        graph.metadata["selectedChain"] = {
            "chainIndex": best.chain_index,
            "nodeId": best.conclusion_node.id,
            "confidence": best.confidence,
        }
        self.logger.info(f"Selected chain {best.chain_index} with confidence {best.confidence:.2f}")
        return best

    def _generate_chain(self,
                        graph: ReasoningGraph,
                        config: ChainOfThoughtConfig,
                        root: ReasoningNode | None = None,
                        task_plan: str | None = None,
                        chain_index: int | None = None) -> ChainResult:
        """
        Generate one chain: steps, conclusion and optional verification.

        Args:
            graph: Graph the chain is appended to.
            config: Active options.
            root: Initial observation to start from; a new one is added if None.
            task_plan: Plan text included in every step prompt.
            chain_index: Position of the chain in a multi-chain pass.
        """
        if root is None:
            root = self._add_initial_observation(graph, chain_index)

        extra = {"chainIndex": chain_index} if chain_index is not None else {}
        total = config.step_count + 1 + (1 if config.include_verification else 0)
        steps = [root]
        previous = root

        for step_number in range(1, config.step_count + 1):
            prompt = ChainOfThoughtPrompts.step_prompt(
                graph.query, steps, step_number, goal=config.goal, task_plan=task_plan)
            content = self.complete(build_messages(ChainOfThoughtPrompts.system_prompt, prompt), config)
            node = self.add_node(
                graph,
                step_node_type(step_number, config.step_count),
                content,
                metadata={"stepNumber": step_number, **extra},
            )
            self.add_edge(graph, previous, node, "next")
            self.report_node(node, f"Step {step_number}", step_number, total, previous=previous)
            steps.append(node)
            previous = node

        result = self._conclude(graph, config, steps, previous, config.step_count + 1, total, extra)
        result.chain_index = chain_index or 0
        return result

    def _conclude(self,
                  graph: ReasoningGraph,
                  config: ChainOfThoughtConfig,
                  steps: list[ReasoningNode],
                  previous: ReasoningNode,
                  step_number: int,
                  total: int,
                  extra: dict | None = None) -> ChainResult:
        text = self.complete(
            build_messages(ChainOfThoughtPrompts.system_prompt,
                           ChainOfThoughtPrompts.conclusion_prompt(graph.query, steps, goal=config.goal)),
            config,
            temperature=config.conclusion_temperature,
        )
        parsed = parse_conclusion(text)
        confidence = parsed.confidence
        if confidence is None:
            self.logger.warning(f"No confidence in conclusion, using default {config.default_confidence}")
            confidence = config.default_confidence

        conclusion_node = self.add_node(
            graph,
            ReasoningNodeType.INFERENCE,
            parsed.conclusion,
            confidence,
            {"isFinalConclusion": True, "stepNumber": step_number, **(extra or {})},
        )
        self.add_edge(graph, previous, conclusion_node, "concludes")
        self.report_node(conclusion_node, "Conclusion", step_number, total, previous=previous,
                         interim_conclusion=parsed.conclusion, confidence=confidence)

        if config.include_verification:
            verification = self.complete(
                build_messages(ChainOfThoughtPrompts.verifier_system_prompt,
                               ChainOfThoughtPrompts.verification_prompt(graph.query, parsed.conclusion, steps)),
                config,
                temperature=config.verification_temperature,
            )
            verification_node = self.add_node(
                graph, ReasoningNodeType.REFLECTION, verification,
                metadata={"type": "verification", **(extra or {})},
            )
            self.add_edge(graph, conclusion_node, verification_node, "verifies")
            self.report_node(verification_node, "Verification", step_number + 1, total,
                             previous=conclusion_node, interim_conclusion=parsed.conclusion,
                             confidence=confidence)

        return ChainResult(parsed.conclusion, confidence, conclusion_node)

    def _run_continuation(self, graph: ReasoningGraph, config: ChainOfThoughtConfig) -> PassOutcome:
        previous = graph.latest_node()
        current_step = previous.metadata.get("stepNumber") or len(graph.nodes)

        ordered = sorted(graph.nodes, key=lambda n: (n.metadata.get("stepNumber") or 0, n.timestamp))
        recap = ChainOfThoughtPrompts.format_steps(ordered)
        steps = list(ordered)

        final_step = current_step + config.step_count
        total = final_step + 1 + (1 if config.include_verification else 0)
        for offset in range(1, config.step_count + 1):
            step_number = current_step + offset
            content = self.complete(
                build_messages(ChainOfThoughtPrompts.system_prompt,
                               ChainOfThoughtPrompts.continuation_prompt(recap, step_number)),
                config,
            )
            node = self.add_node(graph, step_node_type(step_number, final_step), content,
                                 metadata={"stepNumber": step_number})
            self.add_edge(graph, previous, node, "next")
            self.report_node(node, f"Step {step_number}", step_number, total, previous=previous)
            recap += f"\n\nStep {step_number}: {content}"
            steps.append(node)
            previous = node

        chain = self._conclude(graph, config, steps, previous, final_step + 1, total)
        return PassOutcome(chain.conclusion, chain.confidence, len(graph.nodes))

    @staticmethod
    def _record_goal_progress(graph: ReasoningGraph, goal: Goal):
        graph.metadata["goalProgress"] = {
            "goalId": goal.id,
            "objectivesProgress": [
                {"id": o.id, "completed": o.completed, "progress": 100 if o.completed else 0}
                for o in goal.objectives
            ],
        }
