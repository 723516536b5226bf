from .llm_provider import CompletionParams, CompletionResponse, LLMProvider


class GeminiLLMProvider(LLMProvider):
    """
    Gemini LLM provider implementation.
    """

    def __init__(self,
                 model_name: str = "gemini-2.0-flash",
                 api_key: str | None = None,
                 min_wait: float | None = None,
                 max_wait: float | None = None,
                 max_retries: int | None = None,
                 ):
        """
        Initialize a Gemini LLM provider instance.

        Args:
            model_name: Gemini model id. Defaults to "gemini-2.0-flash".
            api_key: API key for Gemini API. Defaults to None.
            min_wait: Minimum wait time between retries in seconds.
                Defaults to parent class default.
            max_wait: Maximum wait time between retries in seconds.
                Defaults to parent class default.
            max_retries: Maximum retries for failed requests.
                Defaults to parent class default.
        """

        try:
            from google import genai
            from google.api_core import exceptions
            from google.genai import types

            rate_limit_exceptions = (
                exceptions.TooManyRequests,
                exceptions.ResourceExhausted
            )

        except ImportError as err:
            raise ImportError(
                "Install 'google-genai' and 'google-api-core' packages to use Gemini LLM provider."
            ) from err

        retry_kwargs = {
            key: value for key, value in
            (("min_wait", min_wait), ("max_wait", max_wait), ("max_retries", max_retries))
            if value is not None
        }
        super().__init__(model_name=model_name,
                         rate_limit_exceptions=rate_limit_exceptions,
                         **retry_kwargs
                         )
        self.client = genai.Client(api_key=api_key)
        self.types = types

    def build_contents(self, params: CompletionParams) -> list:
        """Map chat messages onto Gemini contents (assistant turns become "model")."""
        contents = []
        for message in params.messages:
            if message.role == "system":
                continue
            role = "model" if message.role == "assistant" else "user"
            contents.append(
                self.types.Content(role=role, parts=[self.types.Part(text=message.content)])
            )
        return contents

    def generate_completion(self, params: CompletionParams) -> CompletionResponse:
        """
        Generate text using the Gemini LLM API.
        """
        config_data = {"system_instruction": params.system_prompt} if params.system_prompt else {}
        if params.temperature is not None:
            config_data["temperature"] = params.temperature
        config_data["max_output_tokens"] = params.max_tokens
        config_data.update(params.extra.get("llm_kwargs", {}))

        response = self.client.models.generate_content(
            model=self.resolve_model(params),
            config=self.types.GenerateContentConfig(**config_data),
            contents=self.build_contents(params)
        )

        usage = None
        usage_metadata = getattr(response, "usage_metadata", None)
        if usage_metadata is not None:
            usage = {
                "input_tokens": usage_metadata.prompt_token_count,
                "output_tokens": usage_metadata.candidates_token_count,
            }

        return CompletionResponse(content=response.text or "", usage=usage)
