"""
Socratic reasoning: explore a problem by asking and answering questions.

The query becomes a `problem` node. Questions come from `seed_questions` or
one generation call and are worked through as question/answer node pairs;
each answer is an insight. When a path runs out of questions before reaching
its insight limit, one follow-up call refills it. With `explore_branches`,
paths are cloned up to `max_branches` and processed in rounds until every
path reaches `min_questions` insights or runs dry.

Insights are merged by an optional synthesis call and the result is
optionally verified; the verification `SCORE:` is blended into the
confidence.
"""

import logging
from collections import deque
from dataclasses import dataclass, field

from reason_forge.reasoning.config import SocraticConfig
from reason_forge.reasoning.prompts import SocraticPrompts, build_messages
from reason_forge.reasoning.reasoner import BaseReasoner, PassOutcome
from reason_forge.reasoning.types import ReasoningGraph, ReasoningMethod, ReasoningNode, ReasoningNodeType
from reason_forge.utils.parsing import extract_score, parse_conclusion, parse_question_list

logger = logging.getLogger(__name__)

NO_INSIGHTS_CONCLUSION = "No insights were generated through Socratic questioning."


@dataclass
class QuestionPath:
    """One line of questioning: where it stands, what is left to ask, what was learned."""
    current_node: ReasoningNode
    pending_questions: deque[str] = field(default_factory=deque)
    insights: list[str] = field(default_factory=list)

    def clone(self) -> "QuestionPath":
        return QuestionPath(self.current_node, deque(self.pending_questions), list(self.insights))


class SocraticReasoner(BaseReasoner):
    """Question-driven reasoning with optional branching, synthesis and verification."""
    method = ReasoningMethod.SOCRATIC
    config_class = SocraticConfig
    continuation_defaults = {"max_questions": 3, "min_questions": 1}

    def _trace(self, config: SocraticConfig, message: str):
        if config.verbose:
            self.logger.info(message)
        else:
            self.logger.debug(message)

    def _run_reasoning(self, graph: ReasoningGraph, config: SocraticConfig) -> PassOutcome:
        problem_node = self.add_node(graph, ReasoningNodeType.QUESTION, graph.query, 1.0, {"role": "problem"})

        questions = self._initial_questions(graph.query, config)
        self._trace(config, f"Starting with {len(questions)} initial questions")
        paths = [QuestionPath(problem_node, deque(questions))]
        question_count = 0

        if config.explore_branches:
            def active(path):
                return path.pending_questions and len(path.insights) < config.min_questions

            while any(active(path) for path in paths):
                for path in list(paths):
                    if active(path):
                        self._process_question(graph, path, question_count, config, config.max_questions)
                        question_count += 1
                if len(paths) < config.max_branches:
                    source = next((p for p in paths if p.pending_questions), None)
                    if source is not None:
                        paths.append(source.clone())
                        self._trace(config, f"Branched question path, now {len(paths)} paths")
        else:
            path = paths[0]
            while path.pending_questions and len(path.insights) < config.max_questions:
                self._process_question(graph, path, question_count, config, config.max_questions)
                question_count += 1

        insights = [insight for path in paths for insight in path.insights]
        confidence = config.default_confidence
        anchor = paths[0].current_node

        if config.include_synthesis and insights:
            conclusion, confidence, anchor = self._synthesize(
                graph, insights, [p.current_node for p in paths], config)
        else:
            conclusion = insights[-1] if insights else NO_INSIGHTS_CONCLUSION

        if config.include_verification:
            confidence = self._verify(graph, conclusion, confidence, anchor, insights, config)

        return PassOutcome(conclusion, confidence, question_count)

    def _run_continuation(self, graph: ReasoningGraph, config: SocraticConfig) -> PassOutcome:
        existing = [node.content for node in graph.nodes_with_role("answer")]
        path = QuestionPath(graph.latest_node(), insights=list(existing))
        path.pending_questions.extend(
            self._follow_up_questions(graph.query, "Previous inquiry", "Previous exploration", existing, config))

        limit = len(existing) + config.max_questions
        question_count = len(existing)
        while path.pending_questions and len(path.insights) < limit:
            self._process_question(graph, path, question_count, config, limit)
            question_count += 1

        conclusion = graph.conclusion or ""
        confidence = config.default_confidence
        anchor = path.current_node

        if config.include_synthesis and len(path.insights) > len(existing):
            conclusion, confidence, anchor = self._synthesize(graph, path.insights, [path.current_node], config)

        if config.include_verification:
            confidence = self._verify(graph, conclusion, confidence, anchor, path.insights, config)

        return PassOutcome(conclusion, confidence, question_count - len(existing))

    def _process_question(self,
                          graph: ReasoningGraph,
                          path: QuestionPath,
                          question_number: int,
                          config: SocraticConfig,
                          insight_limit: int):
        """Ask the next pending question of a path and record the answer as an insight."""
        question = path.pending_questions.popleft()
        self._trace(config, f"Question {question_number + 1}: {question[:100]}")

        question_node = self.add_node(graph, ReasoningNodeType.QUESTION, question,
                                      metadata={"role": "question", "questionNumber": question_number})
        self.add_edge(graph, path.current_node, question_node, "asks")

        answer = self.complete(
            build_messages(SocraticPrompts.answer_system_prompt,
                           SocraticPrompts.answer_prompt(graph.query, question, path.insights)),
            config,
        )
        self._trace(config, f"Answer {question_number + 1}: {answer[:100]}")
        answer_node = self.add_node(graph, ReasoningNodeType.INFERENCE, answer,
                                    metadata={"role": "answer", "questionNumber": question_number})
        self.add_edge(graph, question_node, answer_node, "answers")
        path.insights.append(answer)

        if not path.pending_questions and len(path.insights) < insight_limit:
            follow_ups = self._follow_up_questions(graph.query, question, answer, path.insights, config)
            self._trace(config, f"Generated {len(follow_ups)} follow-up questions")
            path.pending_questions.extend(follow_ups)

        path.current_node = answer_node
        self.report_node(answer_node, question, question_number + 1, insight_limit, previous=question_node)

    def _initial_questions(self, query: str, config: SocraticConfig) -> list[str]:
        if config.seed_questions:
            return list(config.seed_questions)
        text = self.complete(
            build_messages(SocraticPrompts.question_system_prompt, SocraticPrompts.initial_questions_prompt(query)),
            config,
            temperature=config.question_temperature,
        )
        return parse_question_list(text)

    def _follow_up_questions(self,
                             query: str,
                             question: str,
                             answer: str,
                             insights: list[str],
                             config: SocraticConfig) -> list[str]:
        text = self.complete(
            build_messages(SocraticPrompts.question_system_prompt,
                           SocraticPrompts.follow_up_prompt(query, question, answer, insights)),
            config,
            temperature=config.question_temperature,
        )
        return parse_question_list(text)

    def _synthesize(self,
                    graph: ReasoningGraph,
                    insights: list[str],
                    inputs: list[ReasoningNode],
                    config: SocraticConfig) -> tuple[str, float, ReasoningNode]:
        """Merge insights into a conclusion node linked from each input node."""
        self._trace(config, f"Synthesizing {len(insights)} insights")
        custom = config.system_instructions is not None
        text = self.complete(
            build_messages(config.system_instructions or SocraticPrompts.synthesis_system_prompt,
                           SocraticPrompts.synthesis_prompt(graph.query, insights, custom_instructions=custom)),
            config,
            temperature=config.synthesis_temperature,
        )
        parsed = parse_conclusion(text)
        confidence = parsed.confidence
        if confidence is None:
            self.logger.warning(f"No confidence in synthesis, using default {config.default_confidence}")
            confidence = config.default_confidence

        synthesis_node = self.add_node(graph, ReasoningNodeType.INFERENCE, parsed.conclusion, confidence,
                                       {"role": "synthesis"})
        for node_id in dict.fromkeys(n.id for n in inputs):
            self.add_edge(graph, node_id, synthesis_node, "synthesis_input")
        self.report_node(synthesis_node, "Synthesis", len(insights) + 1, len(insights) + 1,
                         interim_conclusion=parsed.conclusion, confidence=confidence)
        return parsed.conclusion, confidence, synthesis_node

    def _verify(self,
                graph: ReasoningGraph,
                conclusion: str,
                confidence: float,
                anchor: ReasoningNode,
                insights: list[str],
                config: SocraticConfig) -> float:
        """Verify the conclusion against every insight and return the adjusted confidence."""
        verification = self.complete(
            build_messages(SocraticPrompts.verification_system_prompt,
                           SocraticPrompts.verification_prompt(graph.query, conclusion, insights)),
            config,
            temperature=config.verification_temperature,
        )
        node = self.add_node(graph, ReasoningNodeType.REFLECTION, verification, metadata={"role": "verification"})
        self.add_edge(graph, anchor, node, "verifies")

        adjusted = self.adjust_confidence(confidence, verification, config)
        self._trace(config, f"Verification adjusted confidence {confidence:.2f} -> {adjusted:.2f}")
        self.report_node(node, "Verification", 1, 1, previous=anchor,
                         interim_conclusion=conclusion, confidence=adjusted)
        return adjusted

    @staticmethod
    def adjust_confidence(prior: float, verification: str, config: SocraticConfig) -> float:
        """Blend the prior with the verification score, or decay it when no score is given."""
        score = extract_score(verification)
        if score is not None:
            return config.prior_weight * prior + config.verification_weight * score
        return max(config.confidence_floor, prior * config.confidence_decay)
