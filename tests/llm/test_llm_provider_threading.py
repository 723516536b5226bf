import threading
import time
import unittest
from concurrent.futures import ThreadPoolExecutor

from reason_forge.llm import CompletionParams, CompletionResponse, LLMProvider, Message


def params_for(prompt: str) -> CompletionParams:
  return CompletionParams(messages=[Message("user", prompt)])


class TestLLMProviderThreading(unittest.TestCase):
  """Tests for the LLMProvider's thread-safety features."""

  def setUp(self):
    """Set up test fixtures."""
    class TestProvider(LLMProvider):
      def __init__(self, input_token_limit=None, output_token_limit=None):
        super().__init__(
            model_name="test-model",
            input_token_limit=input_token_limit,
            output_token_limit=output_token_limit
        )
        self.call_count = 0
        self._count_lock = threading.Lock()

      def generate_completion(self, params):
        prompt = params.messages[-1].content
        tokens = len(prompt.split())

        # Widen the window for races if accounting is not locked
        time.sleep(0.01)

        with self._count_lock:
          self.call_count += 1
        return CompletionResponse(
            content=f"Response with {tokens} tokens",
            usage={"input_tokens": tokens, "output_tokens": tokens},
        )

    self.TestProvider = TestProvider
    self.test_provider = self.TestProvider()

  def test_token_counting_in_multithreading(self):
    """Usage reported by concurrent responses is summed exactly."""
    prompts = [f"Prompt {i} with {i % 5 + 1} words" for i in range(50)]
    expected_tokens = sum(len(p.split()) for p in prompts)

    with ThreadPoolExecutor(max_workers=8) as executor:
      futures = [executor.submit(self.test_provider.generate, params_for(prompt))
                 for prompt in prompts]
      for future in futures:
        future.result()

    self.assertEqual(self.test_provider.input_tokens, expected_tokens)
    self.assertEqual(self.test_provider.output_tokens, expected_tokens)
    self.assertEqual(self.test_provider.call_count, len(prompts))

  def test_token_limit_enforcement_concurrent(self):
    """Once the output limit is spent, further requests are refused."""
    provider_with_limit = self.TestProvider(output_token_limit=100)
    prompts = ["word " * 10 for _ in range(20)]

    success_count = 0
    failure_count = 0
    lock = threading.Lock()

    def process_prompt(prompt):
      nonlocal success_count, failure_count
      try:
        provider_with_limit.generate(params_for(prompt))
        with lock:
          success_count += 1
      except ValueError:
        with lock:
          failure_count += 1

    with ThreadPoolExecutor(max_workers=5) as executor:
      futures = [executor.submit(process_prompt, prompt) for prompt in prompts]
      for future in futures:
        future.result()

    self.assertGreater(success_count, 0)
    self.assertGreater(failure_count, 0)
    self.assertEqual(success_count + failure_count, len(prompts))

    # Near-simultaneous requests at the limit may overshoot it slightly
    self.assertLessEqual(
        provider_with_limit.output_tokens,
        provider_with_limit.output_token_limit * 1.5
    )

  def test_update_token_usage_thread_safety(self):
    """update_token_usage gives exact totals under contention."""
    input_per_thread = 10
    output_per_thread = 5
    threads = 50

    with ThreadPoolExecutor(max_workers=threads) as executor:
      futures = [
          executor.submit(self.test_provider.update_token_usage, input_per_thread, output_per_thread)
          for _ in range(threads)
      ]
      for future in futures:
        future.result()

    self.assertEqual(self.test_provider.input_tokens, threads * input_per_thread)
    self.assertEqual(self.test_provider.output_tokens, threads * output_per_thread)


if __name__ == '__main__':
  unittest.main()
