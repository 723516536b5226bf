import unittest
from unittest.mock import MagicMock, patch

import pytest

pytest.importorskip("google.genai")
pytest.importorskip("google.api_core")

from reason_forge.llm import CompletionParams, GeminiLLMProvider, Message  # noqa: E402


def chat_params(**kwargs) -> CompletionParams:
    return CompletionParams(
        messages=[
            Message("system", "System instructions"),
            Message("user", "Test prompt"),
            Message("assistant", "Earlier answer"),
        ],
        **kwargs,
    )


@patch('google.genai.Client')
@patch('google.genai.types')
class TestGeminiLLMProvider(unittest.TestCase):
    """Test the Gemini LLM Provider implementation."""

    def test_initialization(self, mock_types, mock_client):
        provider = GeminiLLMProvider(api_key="fake_key", model_name="test-model")

        mock_client.assert_called_once_with(api_key="fake_key")
        self.assertEqual(provider.model_name, "test-model")
        self.assertEqual(provider.client, mock_client.return_value)
        self.assertEqual(provider.types, mock_types)

    def test_import_error_handling(self, mock_types, mock_client):
        with patch('builtins.__import__', side_effect=ImportError):
            with self.assertRaises(ImportError) as context:
                GeminiLLMProvider()
            self.assertIn("Install 'google-genai'", str(context.exception))

    def test_generate_call_structure(self, mock_types, mock_client):
        mock_response = MagicMock()
        mock_response.text = "Generated text"
        mock_response.usage_metadata.prompt_token_count = 12
        mock_response.usage_metadata.candidates_token_count = 4
        mock_client.return_value.models.generate_content.return_value = mock_response

        provider = GeminiLLMProvider(api_key="fake_key")
        result = provider.generate(chat_params(temperature=0.5, max_tokens=100))

        call_args = mock_client.return_value.models.generate_content.call_args
        self.assertEqual(call_args[1]['model'], "gemini-2.0-flash")
        self.assertEqual(len(call_args[1]['contents']), 2)
        self.assertEqual(result.text, "Generated text")
        self.assertEqual(provider.get_token_usage(), {"input_tokens": 12, "output_tokens": 4})

        config_args = mock_types.GenerateContentConfig.call_args[1]
        self.assertEqual(config_args['system_instruction'], "System instructions")
        self.assertEqual(config_args['temperature'], 0.5)
        self.assertEqual(config_args['max_output_tokens'], 100)

    def test_assistant_messages_use_model_role(self, mock_types, mock_client):
        provider = GeminiLLMProvider(api_key="fake_key")
        provider.build_contents(chat_params())

        roles = [call.kwargs["role"] for call in mock_types.Content.call_args_list]
        self.assertEqual(roles, ["user", "model"])

    def test_explicit_model_overrides_default(self, mock_types, mock_client):
        mock_client.return_value.models.generate_content.return_value = MagicMock(text="ok", usage_metadata=None)
        provider = GeminiLLMProvider(api_key="fake_key")
        provider.generate(chat_params(model="gemini-1.5-pro"))

        call_args = mock_client.return_value.models.generate_content.call_args
        self.assertEqual(call_args[1]['model'], "gemini-1.5-pro")


class TestRetryLogic(unittest.TestCase):
    """Test retry logic when Gemini reports rate limiting."""

    @patch('google.genai.Client')
    @patch('google.genai.types')
    def test_retry_on_resource_exhausted(self, mock_types, mock_client):
        from google.api_core.exceptions import ResourceExhausted

        mock_response = MagicMock(text="Success after retry", usage_metadata=None)
        mock_generate = mock_client.return_value.models.generate_content
        mock_generate.side_effect = [
            ResourceExhausted("Rate limit exceeded"),
            ResourceExhausted("Rate limit exceeded"),
            mock_response
        ]

        provider = GeminiLLMProvider(api_key="fake_key", max_retries=3, min_wait=0, max_wait=0.1)
        result = provider.generate(chat_params())

        self.assertEqual(mock_generate.call_count, 3)
        self.assertEqual(result.text, "Success after retry")

    @patch('google.genai.Client')
    @patch('google.genai.types')
    def test_no_retry_on_other_exceptions(self, mock_types, mock_client):
        mock_client.return_value.models.generate_content.side_effect = [
            ValueError("API Error"),
            MagicMock(text="unused", usage_metadata=None)
        ]

        provider = GeminiLLMProvider(api_key="fake_key", max_retries=3, min_wait=0, max_wait=0.1)
        with self.assertRaises(ValueError):
            provider.generate(chat_params())

        self.assertEqual(mock_client.return_value.models.generate_content.call_count, 1)
