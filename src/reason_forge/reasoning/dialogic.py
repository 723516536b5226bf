"""
Dialogic reasoning: a proposer and a critic debate a problem.

The proposer answers first; each turn the critic reviews the latest proposal
and the proposer refines it. The debate stops at `max_turns`, or earlier once
`min_turns` have passed and two successive proposals are similar enough to
count as consensus. An optional synthesis call then merges the dialog into a
final answer.
"""

import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from reason_forge.exceptions import ConfigurationError
from reason_forge.llm import LLMProvider, Message
from reason_forge.reasoning.config import DialogicConfig
from reason_forge.reasoning.prompts import DialogicPrompts, build_messages
from reason_forge.reasoning.reasoner import BaseReasoner, PassOutcome
from reason_forge.reasoning.types import ReasoningGraph, ReasoningMethod, ReasoningNodeType
from reason_forge.utils.ids import IdGenerator
from reason_forge.utils.parsing import jaccard_similarity

logger = logging.getLogger(__name__)


class DialogicReasoner(BaseReasoner):
    """
    Proposer/critic debate with consensus detection.

    Attributes:
        proposer (LLMProvider): Writes the initial proposal, refinements and the synthesis.
        critic (LLMProvider): Critiques each proposal.
    """
    method = ReasoningMethod.DIALOGIC
    config_class = DialogicConfig

    def __init__(self,
                 proposer: LLMProvider,
                 critic: LLMProvider,
                 default_options: Mapping[str, Any] | None = None,
                 id_generator: IdGenerator | None = None,
                 logger: logging.Logger | None = None):
        if proposer is None or critic is None:
            raise ConfigurationError("DialogicReasoner requires both a proposer and a critic provider")
        super().__init__(proposer, default_options=default_options, id_generator=id_generator, logger=logger)
        self.proposer = proposer
        self.critic = critic

    def _run_reasoning(self, graph: ReasoningGraph, config: DialogicConfig) -> PassOutcome:
        query = graph.query
        problem_node = self.add_node(graph, ReasoningNodeType.QUESTION, query, 1.0, {"role": "system"})
        total_steps = 2 * config.max_turns + 1 + (1 if config.include_synthesis else 0)

        proposal = self.complete(
            build_messages(DialogicPrompts.proposer_system_prompt, DialogicPrompts.proposal_prompt(query)),
            config,
            temperature=config.role_temperature("proposer"),
            model=config.proposer_model,
            provider=self.proposer,
        )
        proposal_node = self.add_node(graph, ReasoningNodeType.INFERENCE, proposal, config.base_confidence,
                                      {"role": "proposer", "turn": 0})
        self.add_edge(graph, problem_node, proposal_node, "initial_proposal")
        self.report_node(proposal_node, "Initial proposal", 1, total_steps, previous=problem_node,
                         confidence=config.base_confidence)

        history = [
            Message("system", DialogicPrompts.history_system_prompt),
            Message("user", query),
            Message("assistant", proposal),
        ]
        critique_node = None
        turn = 0
        consensus = 0.0

        while turn < config.max_turns and (
                turn < config.min_turns or not config.stop_on_consensus or consensus < config.consensus_threshold):
            turn += 1

            critique = self.complete(
                build_messages(DialogicPrompts.critic_system_prompt,
                               DialogicPrompts.critique_prompt(query, proposal),
                               history=history[:-1]),
                config,
                temperature=config.role_temperature("critic"),
                model=config.critic_model,
                provider=self.critic,
            )
            history.append(Message("user", critique))
            critique_node = self.add_node(graph, ReasoningNodeType.ANALYSIS, critique, config.base_confidence,
                                          {"role": "critic", "turn": turn})
            self.add_edge(graph, proposal_node, critique_node, "critique")
            self.report_node(critique_node, f"Critique {turn}", 2 * turn, total_steps, previous=proposal_node)

            refined = self.complete(
                build_messages(DialogicPrompts.refiner_system_prompt, history=history),
                config,
                temperature=config.role_temperature("proposer"),
                model=config.proposer_model,
                provider=self.proposer,
            )
            history.append(Message("assistant", refined))
            confidence = config.base_confidence + config.turn_increment * turn
            refined_node = self.add_node(graph, ReasoningNodeType.INFERENCE, refined, confidence,
                                         {"role": "proposer", "turn": turn})
            self.add_edge(graph, critique_node, refined_node, "refinement")

            consensus = jaccard_similarity(proposal, refined)
            self.logger.debug(f"Turn {turn} consensus {consensus:.2f}")
            self.report_node(refined_node, f"Refinement {turn}", 2 * turn + 1, total_steps,
                             previous=critique_node, interim_conclusion=refined, confidence=confidence)
            proposal = refined
            proposal_node = refined_node

        if consensus >= config.consensus_threshold:
            self.logger.info(f"Consensus reached after {turn} turns ({consensus:.2f})")

        conclusion = proposal
        confidence = config.base_confidence + config.turn_increment * turn

        if config.include_synthesis:
            conclusion = self.complete(
                build_messages(DialogicPrompts.synthesis_system_prompt,
                               DialogicPrompts.synthesis_prompt(query),
                               history=history),
                config,
                temperature=config.synthesis_temperature,
                model=config.synthesis_model or config.proposer_model,
                provider=self.proposer,
            )
            confidence = config.synthesis_confidence
            synthesis_node = self.add_node(graph, ReasoningNodeType.INFERENCE, conclusion, confidence,
                                           {"role": "synthesis"})
            self.add_edge(graph, proposal_node, synthesis_node, "synthesis_input")
            if critique_node is not None:
                self.add_edge(graph, critique_node, synthesis_node, "synthesis_input")
            self.report_node(synthesis_node, "Synthesis", 2 * turn + 2, total_steps,
                             previous=proposal_node, interim_conclusion=conclusion, confidence=confidence)

        graph.metadata["turns"] = turn
        graph.metadata["consensus"] = consensus
        return PassOutcome(conclusion, confidence, 2 * turn + (1 if config.include_synthesis else 0))

    def _run_continuation(self, graph: ReasoningGraph, config: DialogicConfig) -> PassOutcome:
        """Re-run the debate on the same query in a new graph linked to the old one."""
        proposer_turns = [node.metadata.get("turn", 0) for node in graph.nodes_with_role("proposer")]
        new_graph = self.create_graph(graph.query, self.method)

        try:
            if not proposer_turns:
                self.logger.info(f"Graph {graph.id} has no proposals, starting a fresh debate")
                outcome = self._run_reasoning(new_graph, config)
            else:
                new_graph.metadata["continuedFrom"] = graph.id
                new_graph.metadata["previousTurn"] = max(proposer_turns)
                outcome = self._run_reasoning(new_graph, replace(config, min_turns=1))
        except Exception as err:
            err.partial_graph = new_graph
            raise

        outcome.graph = new_graph
        return outcome
