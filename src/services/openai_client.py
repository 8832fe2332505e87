"""
OpenAI client for question generation.
"""
import logging
from typing import Optional

import openai
from openai import AsyncOpenAI

from src.core.config import settings
from src.core.error_handling import (
    GeneratorConfigurationError,
    GeneratorRequestError,
    MalformedOutputError,
    TransientGeneratorError,
)
from src.services.clients.base_client import BaseQuestionGenerator, GeneratorRequest

logger = logging.getLogger(__name__)


class OpenAIQuestionClient(BaseQuestionGenerator):
    """Client for generating questions with the OpenAI chat completions API."""

    provider_name = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        """
        Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (uses settings if not provided)
            base_url: Alternative API base URL (uses settings if not provided)
            model: Model name (uses settings if not provided)
            timeout: Request timeout in seconds (uses settings if not provided)
        """
        super().__init__(
            api_key=settings.OPENAI_API_KEY if api_key is None else api_key,
            endpoint=base_url or settings.OPENAI_BASE_URL,
            model=model or settings.OPENAI_MODEL,
            timeout=timeout or settings.GENERATOR_TIMEOUT_SECONDS,
        )
        # SDK retries are disabled; transient retries happen in call_with_transient_retry
        self.client = AsyncOpenAI(
            api_key=self.api_key,
            base_url=self.endpoint,
            timeout=self.timeout,
            max_retries=0,
        )

    def _validate_credentials(self) -> None:
        if not self.api_key:
            raise GeneratorConfigurationError(
                "OpenAI API key must be provided either via parameter or the OPENAI_API_KEY environment variable"
            )

    async def close(self):
        await self.client.close()
        await super().close()

    async def generate(self, request: GeneratorRequest) -> str:
        """
        Send one chat completion request.

        Raises:
            GeneratorConfigurationError: On authentication/permission errors
            TransientGeneratorError: On timeouts, connection errors, 429 and 5xx
            GeneratorRequestError: On any other error status
            MalformedOutputError: If the completion has no content
        """
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt_text})

        logger.debug(f"OpenAI request: model={self.model}, temperature={request.temperature}")
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=request.temperature,
                max_tokens=request.max_output_tokens,
            )
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise GeneratorConfigurationError(f"OpenAI rejected the credentials: {e}") from e
        except (openai.APITimeoutError, openai.APIConnectionError, openai.RateLimitError) as e:
            raise TransientGeneratorError(f"OpenAI transient error: {e}") from e
        except openai.APIStatusError as e:
            if e.status_code in settings.HTTP_RETRY_STATUSES:
                raise TransientGeneratorError(f"OpenAI API error ({e.status_code}): {e}") from e
            raise GeneratorRequestError(f"OpenAI API error ({e.status_code}): {e}") from e

        if not response.choices or not response.choices[0].message.content:
            raise MalformedOutputError("OpenAI returned an empty completion")
        return response.choices[0].message.content

    async def health_check(self) -> bool:
        """Return True when the models endpoint answers."""
        try:
            await self.client.models.list()
            return True
        except Exception as e:
            logger.warning(f"Health check failed: {e}")
            return False
