"""LiteLLM client wrapper for plain-text completions."""

import litellm

from forq.config import ForqConfig


class LLMClient:
    """LiteLLM client for model communication.

    Tools are described in the system prompt and requested with tagged
    blocks in the reply text, so no native tool-calling API is used.
    """

    def __init__(self, config: ForqConfig) -> None:
        self.model = config.model
        self.api_base = config.api_base
        self.api_key = config.api_key
        self.temperature = config.temperature
        self.max_output_tokens = config.max_output_tokens

    def _handle_llm_error(self, error: Exception) -> None:
        """Convert exceptions from LiteLLM calls to ConnectionError with clear messages.

        Raises:
            ConnectionError: Always.
        """
        server = self.api_base or "provider default"
        if isinstance(error, litellm.AuthenticationError):
            raise ConnectionError(
                f"Authentication failed.\n\n"
                f"  Model: {self.model}\n"
                f"  Error: {error.message}\n\n"
                f"Check api_key in ~/.forq/config.yaml or the provider's environment variable."
            ) from None
        if isinstance(error, litellm.APIConnectionError):
            raise ConnectionError(
                f"Cannot connect to the model server.\n\n"
                f"  Server: {server}\n"
                f"  Error: {error.message}\n\n"
                f"Verify api_base in ~/.forq/config.yaml and your network settings."
            ) from None
        if isinstance(error, litellm.Timeout):
            raise ConnectionError(
                f"Request to the model server timed out.\n\n"
                f"  Server: {server}"
            ) from None
        if isinstance(error, litellm.BadRequestError):
            raise ConnectionError(
                f"Model rejected the request.\n\n"
                f"  Model: {self.model}\n"
                f"  Error: {error}"
            ) from None
        if isinstance(error, litellm.APIError):
            raise ConnectionError(
                f"Model request failed (status {error.status_code}).\n\n"
                f"  Server: {server}\n"
                f"  Error: {error.message}"
            ) from None
        raise ConnectionError(
            f"Unexpected error from LiteLLM.\n\n"
            f"  Server: {server}\n"
            f"  Error: {type(error).__name__}: {error}"
        ) from None

    def complete(self, messages: list[dict]) -> str:
        """Send the conversation and return the assistant's reply text.

        Raises:
            ConnectionError: With differentiated messages per failure kind.
        """
        try:
            response = litellm.completion(
                model=self.model,
                messages=messages,
                api_base=self.api_base,
                api_key=self.api_key,
                temperature=self.temperature,
                max_tokens=self.max_output_tokens,
                timeout=300,
            )
        except Exception as e:
            self._handle_llm_error(e)
        return response.choices[0].message.content or ""
