import threading
from collections import deque

import pytest

from reason_forge.llm import CompletionParams, CompletionResponse, LLMProvider
from reason_forge.utils.ids import SequentialIdGenerator


class ScriptedProvider(LLMProvider):
    """Test provider answering from a queue of responses or from a handler function.

    Exceptions in the queue (or returned by the handler) are raised instead of returned.
    """

    def __init__(self, responses=None, handler=None, model_name="scripted", **kwargs):
        super().__init__(model_name=model_name, **kwargs)
        self.responses = deque(responses or [])
        self.handler = handler
        self.calls: list[CompletionParams] = []
        self._calls_lock = threading.Lock()

    def generate_completion(self, params: CompletionParams) -> CompletionResponse:
        with self._calls_lock:
            self.calls.append(params)
            result = None if self.handler else (self.responses.popleft() if self.responses else "ok")
        if self.handler:
            result = self.handler(params)
        if isinstance(result, Exception):
            raise result
        if isinstance(result, CompletionResponse):
            return result
        return CompletionResponse(content=result)

    @property
    def user_prompts(self) -> list[str]:
        return [p.messages[-1].content for p in self.calls]


@pytest.fixture
def scripted():
    """Factory for ScriptedProvider instances."""
    return ScriptedProvider


@pytest.fixture
def ids():
    return SequentialIdGenerator("n")


def cot_handler(conclusion="CONCLUSION: 42\nCONFIDENCE: 0.8", verification="The conclusion holds."):
    """Route Chain-of-Thought prompts to canned responses."""
    def handler(params):
        prompt = params.messages[-1].content
        if prompt.endswith("CONCLUSION:"):
            return conclusion
        if prompt.startswith("Please verify"):
            return verification
        if "create a task plan" in prompt:
            return "1. Understand the problem\n2. Solve it"
        step = prompt.rsplit("Step ", 1)[-1].rstrip(":")
        return f"reasoning for step {step}"
    return handler


@pytest.fixture
def cot_responses():
    return cot_handler
