"""
Groq client for question generation (OpenAI-compatible chat completions over httpx).
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from src.core.config import settings
from src.core.error_handling import (
    GeneratorConfigurationError,
    GeneratorRequestError,
    MalformedOutputError,
    TransientGeneratorError,
)
from src.core.http_client import get_managed_client
from src.services.clients.base_client import BaseQuestionGenerator, GeneratorRequest

logger = logging.getLogger(__name__)


class GroqQuestionClient(BaseQuestionGenerator):
    """Client for generating questions with Groq-hosted models."""

    provider_name = "groq"

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        """
        Initialize Groq client.

        Args:
            api_key: Groq API key (uses settings if not provided)
            api_url: Chat completions URL (uses settings if not provided)
            model: Model name (uses settings if not provided)
            timeout: Request timeout in seconds (uses settings if not provided)
        """
        super().__init__(
            api_key=settings.GROQ_API_KEY if api_key is None else api_key,
            endpoint=api_url or settings.GROQ_API_URL,
            model=model or settings.GROQ_MODEL,
            timeout=timeout or settings.GENERATOR_TIMEOUT_SECONDS,
        )
        self.headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}"
        }

    def _validate_credentials(self) -> None:
        if not self.api_key:
            raise GeneratorConfigurationError(
                "Groq API key must be provided either via parameter or the GROQ_API_KEY environment variable"
            )

    def _build_payload(self, request: GeneratorRequest) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt_text})
        return {
            "model": self.model,
            "messages": messages,
            "temperature": request.temperature,
            "max_tokens": request.max_output_tokens,
        }

    def _raise_for_status(self, response: httpx.Response) -> None:
        """Map an error status onto the generator error taxonomy."""
        if response.status_code < 400:
            return
        body = response.text[:200]
        if response.status_code in (401, 403):
            raise GeneratorConfigurationError(f"Groq rejected the credentials ({response.status_code}): {body}")
        if response.status_code in settings.HTTP_RETRY_STATUSES:
            raise TransientGeneratorError(f"Groq API error ({response.status_code}): {body}")
        raise GeneratorRequestError(f"Groq API error ({response.status_code}): {body}")

    async def generate(self, request: GeneratorRequest) -> str:
        """
        Send one chat completion request.

        Returns:
            The content of the first choice

        Raises:
            GeneratorConfigurationError: On 401/403
            TransientGeneratorError: On timeouts, connection errors, 429 and 5xx
            GeneratorRequestError: On any other error status
            MalformedOutputError: If the response body has no message content
        """
        logger.debug(f"Groq request: model={self.model}, temperature={request.temperature}")
        try:
            async with get_managed_client(self._client, self.timeout) as client:
                response = await client.post(self.endpoint, headers=self.headers, json=self._build_payload(request))
        except httpx.TimeoutException as e:
            raise TransientGeneratorError(f"Groq request timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransientGeneratorError(f"Groq connection error: {e}") from e

        self._raise_for_status(response)

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise MalformedOutputError(f"unexpected Groq response body: {response.text[:200]}") from e
        if not content:
            raise MalformedOutputError("Groq returned an empty completion")
        return content

    async def health_check(self) -> bool:
        """
        Check if the Groq API is accessible.

        Returns:
            True if API is accessible, False otherwise
        """
        models_url = self.endpoint.rsplit("/chat/completions", 1)[0] + "/models"
        try:
            async with get_managed_client(self._client, 10.0) as client:
                response = await client.get(models_url, headers=self.headers)
                return response.status_code == 200
        except Exception as e:
            logger.warning(f"Health check failed: {e}")
            return False
