from collections import deque
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from reason_forge.reasoning.chain_of_thought import ChainOfThoughtReasoner, ChainResult, step_node_type
from reason_forge.reasoning.types import ReasoningMethod, ReasoningNodeType

QUERY = "What is 6 times 7?"


@pytest.fixture
def provider(scripted, cot_responses):
    return scripted(handler=cot_responses())


@pytest.fixture
def reasoner(provider, ids):
    return ChainOfThoughtReasoner(provider, id_generator=ids)


def assert_single_path(graph):
    """Edges link consecutive nodes in insertion order."""
    assert len(graph.edges) == len(graph.nodes) - 1
    for edge, (source, target) in zip(graph.edges, zip(graph.nodes, graph.nodes[1:])):
        assert (edge.source, edge.target) == (source.id, target.id)


@pytest.mark.parametrize("total, expected", [
    (1, [ReasoningNodeType.QUESTION]),
    (2, [ReasoningNodeType.QUESTION, ReasoningNodeType.INFERENCE]),
    (4, [ReasoningNodeType.QUESTION, ReasoningNodeType.ANALYSIS, ReasoningNodeType.ANALYSIS,
         ReasoningNodeType.INFERENCE]),
])
def test_step_node_type(total, expected):
    assert [step_node_type(n, total) for n in range(1, total + 1)] == expected


class TestSingleChain:
    @pytest.mark.parametrize("steps", [1, 3, 5])
    def test_node_and_edge_counts_without_verification(self, reasoner, steps):
        result = reasoner.reason(QUERY, {"stepCount": steps, "includeVerification": False})

        graph = result.graph
        assert result.success is True
        assert len(graph.nodes) == steps + 2
        assert_single_path(graph)
        assert [e.label for e in graph.edges] == ["next"] * steps + ["concludes"]
        assert graph.is_acyclic()
        assert result.step_count == steps + 2

    def test_verification_adds_one_reflection(self, reasoner):
        result = reasoner.reason(QUERY, {"stepCount": 2})

        graph = result.graph
        assert len(graph.nodes) == 5
        assert len(graph.edges) == 4
        reflection = graph.nodes[-1]
        assert reflection.type == ReasoningNodeType.REFLECTION
        assert graph.edges[-1].label == "verifies"
        assert graph.edges[-1].source == graph.nodes[-2].id
        assert [e.label for e in graph.edges].count("verifies") == 1
        assert result.confidence == 0.8

    def test_graph_shape(self, reasoner):
        result = reasoner.reason(QUERY, {"step_count": 3, "include_verification": False})

        graph = result.graph
        assert graph.method == ReasoningMethod.CHAIN_OF_THOUGHT
        root = graph.nodes[0]
        assert root.type == ReasoningNodeType.OBSERVATION
        assert root.content == f"Initial Query: {QUERY}"
        assert root.confidence == 1.0
        assert [n.metadata.get("stepNumber") for n in graph.nodes[1:4]] == [1, 2, 3]
        assert [n.type for n in graph.nodes[1:4]] == [
            ReasoningNodeType.QUESTION, ReasoningNodeType.ANALYSIS, ReasoningNodeType.INFERENCE]

        conclusion = graph.nodes[-1]
        assert conclusion.type == ReasoningNodeType.INFERENCE
        assert conclusion.metadata["isFinalConclusion"] is True
        assert conclusion.content == "42"
        assert conclusion.confidence == 0.8
        assert result.conclusion == graph.conclusion == "42"

    def test_step_prompts_include_prior_steps(self, reasoner, provider):
        reasoner.reason(QUERY, {"stepCount": 2, "includeVerification": False})

        second_step_prompt = provider.user_prompts[1]
        assert "Original query: Initial Query: " in second_step_prompt
        assert "Step 1: reasoning for step 1" in second_step_prompt
        assert second_step_prompt.endswith("Step 2:")

    def test_call_temperatures(self, reasoner, provider):
        reasoner.reason(QUERY, {"stepCount": 1, "temperature": 0.9})
        assert [p.temperature for p in provider.calls] == [0.9, 0.5, 0.2]

    def test_missing_confidence_uses_default(self, scripted, cot_responses, ids):
        provider = scripted(handler=cot_responses(conclusion="The answer is 42."))
        reasoner = ChainOfThoughtReasoner(provider, id_generator=ids)

        result = reasoner.reason(QUERY, {"stepCount": 1, "includeVerification": False})
        assert result.conclusion == "The answer is 42."
        assert result.confidence == 0.5

        result = reasoner.reason(QUERY, {"stepCount": 1, "defaultConfidence": 0.3})
        assert result.confidence == 0.3

    def test_progress_reports_every_node(self, reasoner):
        seen = []
        reasoner.set_progress_callback(seen.append)
        reasoner.reason(QUERY, {"stepCount": 2})

        assert [p.step_number for p in seen] == [1, 2, 3, 4]
        assert {p.total_steps for p in seen} == {4}
        assert seen[2].interim_conclusion == "42"

    def test_provider_failure_keeps_steps(self, scripted, ids):
        def handler(params):
            if params.messages[-1].content.endswith("CONCLUSION:"):
                raise TimeoutError("provider timed out")
            return "step"

        reasoner = ChainOfThoughtReasoner(scripted(handler=handler), id_generator=ids)
        result = reasoner.reason(QUERY, {"stepCount": 2})

        assert result.success is False
        assert "provider timed out" in result.error
        assert result.conclusion == ""
        assert result.confidence == 0.0
        assert len(result.graph.nodes) == 3
        assert result.graph.conclusion is None


class TestTaskPlanning:
    def test_plan_node_and_metadata(self, reasoner, provider):
        result = reasoner.reason(QUERY, {"stepCount": 2, "enableTaskPlanning": True,
                                         "includeVerification": False})

        graph = result.graph
        observations = [n for n in graph.nodes if n.type == ReasoningNodeType.OBSERVATION]
        assert len(observations) == 1
        plan = graph.nodes[1]
        assert plan.type == ReasoningNodeType.DECISION
        assert plan.metadata["type"] == "task_plan"
        assert graph.metadata["taskPlan"] == {"content": plan.content, "nodeId": plan.id}
        assert graph.edges[0].label == "plans"
        assert (graph.edges[0].source, graph.edges[0].target) == (observations[0].id, plan.id)
        assert len(graph.nodes) == 5

        assert provider.calls[0].temperature == 0.4
        assert "up to 5 tasks" in provider.user_prompts[0]
        assert "task plan to guide my reasoning" in provider.user_prompts[1]
        assert graph.is_acyclic()

    def test_goal_binding(self, reasoner, provider):
        goal = {"id": "g1", "name": "Teach multiplication", "description": "Explain clearly",
                "objectives": [{"id": "o1", "description": "Give the product"}]}
        result = reasoner.reason(QUERY, {"stepCount": 1, "goal": goal, "enableTaskPlanning": True,
                                         "taskPlanningOptions": {"maxTasks": 2}})

        graph = result.graph
        assert graph.metadata["goal"]["name"] == "Teach multiplication"
        assert graph.metadata["goalProgress"]["goalId"] == "g1"
        assert graph.metadata["goalProgress"]["objectivesProgress"] == [
            {"id": "o1", "completed": False, "progress": 0}]
        assert "up to 2 tasks" in provider.user_prompts[0]
        assert "Give the product (NOT COMPLETED)" in provider.user_prompts[0]
        assert all("This is to achieve the goal: Teach multiplication" in p for p in provider.user_prompts[1:3])

    def test_goal_without_planning_records_no_progress(self, reasoner):
        result = reasoner.reason(QUERY, {"stepCount": 1, "goal": {"id": "g", "name": "n"}})
        assert "goal" in result.graph.metadata
        assert "goalProgress" not in result.graph.metadata


class TestMultipleChains:
    def test_selects_first_most_confident_chain(self, reasoner):
        confidences = [0.4, 0.9, 0.9]

        def fake_chain(graph, config, root, task_plan, chain_index):
            node = reasoner.add_node(graph, ReasoningNodeType.INFERENCE, f"answer {chain_index}",
                                     confidences[chain_index], {"chainIndex": chain_index})
            return ChainResult(f"answer {chain_index}", confidences[chain_index], node, chain_index)

        with patch.object(reasoner, "_generate_chain", side_effect=fake_chain):
            result = reasoner.reason(QUERY, {"multipleChains": True, "chainCount": 3})

        assert result.success is True
        assert result.conclusion == "answer 1"
        assert result.confidence == 0.9
        selected = result.graph.metadata["selectedChain"]
        assert selected["chainIndex"] == 1
        winner = result.graph.get_node(selected["nodeId"])
        assert winner.metadata["selected"] is True
        assert [n.metadata.get("selected", False) for n in result.graph.nodes].count(True) == 1

    def test_tie_break_on_parsed_conclusions(self, scripted, ids):
        conclusions = deque([
            "CONCLUSION: answer A\nCONFIDENCE: 0.4",
            "CONCLUSION: answer B\nCONFIDENCE: 0.9",
            "CONCLUSION: answer C\nCONFIDENCE: 0.9",
        ])

        def handler(params):
            if params.messages[-1].content.endswith("CONCLUSION:"):
                return conclusions.popleft()
            return "step"

        reasoner = ChainOfThoughtReasoner(scripted(handler=handler), id_generator=ids)
        # One worker runs the chains in submission order
        with patch("reason_forge.reasoning.chain_of_thought.ThreadPoolExecutor",
                   side_effect=lambda max_workers: ThreadPoolExecutor(max_workers=1)):
            result = reasoner.reason(QUERY, {"multipleChains": True, "chainCount": 3, "stepCount": 1,
                                             "includeVerification": False})

        assert result.success is True
        assert result.conclusion == "answer B"
        assert result.confidence == 0.9
        assert result.graph.metadata["selectedChain"]["chainIndex"] == 1
        finals = [n for n in result.graph.nodes if n.metadata.get("isFinalConclusion")]
        assert [(n.content, n.metadata["chainIndex"]) for n in finals] == [
            ("answer A", 0), ("answer B", 1), ("answer C", 2)]
        assert [n.metadata.get("selected", False) for n in finals] == [False, True, False]

    def test_every_chain_stays_in_graph(self, reasoner, provider):
        result = reasoner.reason(QUERY, {"multipleChains": True, "chainCount": 3, "stepCount": 2,
                                         "includeVerification": False})

        graph = result.graph
        assert len(graph.nodes) == 12
        assert len(graph.edges) == 9
        observations = [n for n in graph.nodes if n.type == ReasoningNodeType.OBSERVATION]
        assert sorted(n.metadata["chainIndex"] for n in observations) == [0, 1, 2]
        conclusions = [n for n in graph.nodes if n.metadata.get("isFinalConclusion")]
        assert len(conclusions) == 3
        assert graph.metadata["selectedChain"]["chainIndex"] == 0
        assert len({n.id for n in graph.nodes}) == 12
        assert graph.is_acyclic()
        assert len(provider.calls) == 9

    def test_chain_failure_fails_the_pass(self, scripted, ids):
        def handler(params):
            if params.messages[-1].content.endswith("CONCLUSION:"):
                raise ConnectionError("down")
            return "step"

        reasoner = ChainOfThoughtReasoner(scripted(handler=handler), id_generator=ids)
        result = reasoner.reason(QUERY, {"multipleChains": True, "chainCount": 2, "stepCount": 1})
        assert result.success is False
        assert "down" in result.error
        assert len(result.graph.nodes) == 4


class TestContinuation:
    def test_continues_numbering_from_latest_node(self, reasoner, provider):
        graph = reasoner.reason(QUERY, {"stepCount": 2, "includeVerification": False}).graph
        calls_before = len(provider.calls)

        result = reasoner.continue_reasoning(graph)

        assert result.success is True
        assert result.graph is graph
        new_nodes = graph.nodes[4:]
        assert [n.metadata.get("stepNumber") for n in new_nodes[:3]] == [4, 5, 6]
        assert [n.type for n in new_nodes[:3]] == [
            ReasoningNodeType.ANALYSIS, ReasoningNodeType.ANALYSIS, ReasoningNodeType.INFERENCE]
        assert new_nodes[3].metadata["isFinalConclusion"] is True
        assert new_nodes[4].type == ReasoningNodeType.REFLECTION
        assert len(graph.nodes) == 9
        assert result.step_count == 9
        assert graph.is_acyclic()

        prompts = provider.user_prompts[calls_before:]
        assert prompts[0].endswith("Continue the chain of thought with Step 4:")
        assert "Step 4: reasoning for step 4" in prompts[1]
        assert "Step 5: reasoning for step 5" in prompts[2]

    def test_first_new_step_links_to_latest_node(self, reasoner):
        graph = reasoner.reason(QUERY, {"stepCount": 1, "includeVerification": False}).graph
        latest = graph.latest_node()

        reasoner.continue_reasoning(graph, {"stepCount": 1, "includeVerification": False})

        new_edge = graph.edges[2]
        assert (new_edge.source, new_edge.label) == (latest.id, "next")

    def test_step_number_defaults_to_node_count(self, reasoner):
        graph = reasoner.create_graph(QUERY, ReasoningMethod.CHAIN_OF_THOUGHT)
        reasoner.add_node(graph, ReasoningNodeType.OBSERVATION, "imported note")
        reasoner.add_node(graph, ReasoningNodeType.OBSERVATION, "another note")

        reasoner.continue_reasoning(graph, {"stepCount": 1, "includeVerification": False})

        assert graph.nodes[2].metadata["stepNumber"] == 3

    def test_overwrites_conclusion(self, scripted, cot_responses, ids):
        provider = scripted(handler=cot_responses())
        reasoner = ChainOfThoughtReasoner(provider, id_generator=ids)
        graph = reasoner.reason(QUERY, {"stepCount": 1}).graph

        provider.handler = cot_responses(conclusion="CONCLUSION: 43\nCONFIDENCE: 0.6")
        result = reasoner.continue_reasoning(graph, {"stepCount": 1})

        assert graph.conclusion == "43"
        assert result.confidence == 0.6

    def test_empty_graph_reports_state_error(self, reasoner, provider):
        graph = reasoner.create_graph(QUERY, ReasoningMethod.CHAIN_OF_THOUGHT)
        result = reasoner.continue_reasoning(graph)

        assert result.success is False
        assert "StateError" in result.error
        assert result.conclusion == ""
        assert result.confidence == 0.0
        assert provider.calls == []
