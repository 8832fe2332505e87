"""
Base client for question generator APIs.

This module provides an abstract base class for all generator clients,
establishing a consistent interface and shared functionality.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
import httpx
import logging

from src.core.http_client import get_async_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratorRequest:
    """One call to the generator: prompt in, raw text out."""
    prompt_text: str
    temperature: float
    max_output_tokens: int
    system_prompt: Optional[str] = None


class BaseQuestionGenerator(ABC):
    """Abstract base class for all question generator clients.

    Provides common functionality for API clients including:
    - HTTP client management with connection pooling
    - Async context manager support
    - Credential validation

    Subclasses must implement:
    - _validate_credentials(): Validate API credentials
    - generate(): Return the raw text produced for one request
    - health_check(): Check if API is accessible

    Error contract for ``generate``:
    - GeneratorConfigurationError: bad or missing credentials, never retried
    - TransientGeneratorError: timeouts, rate limits, upstream 5xx
    """

    provider_name = "generator"

    def __init__(
        self,
        api_key: Optional[str],
        endpoint: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 60.0
    ):
        """Initialize the generator client.

        Args:
            api_key: API key for authentication (required)
            endpoint: API endpoint URL (optional, subclass may have default)
            model: Model identifier
            timeout: Request timeout in seconds (default: 60.0)

        Raises:
            GeneratorConfigurationError: If credentials are invalid
        """
        self.api_key = api_key
        self.endpoint = endpoint
        self.model = model
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

        # Validate credentials (implemented by subclass)
        self._validate_credentials()

        logger.info(f"Initialized {self.__class__.__name__} with model={model}, timeout={timeout}s")

    @abstractmethod
    def _validate_credentials(self) -> None:
        """Validate API credentials.

        Raises:
            GeneratorConfigurationError: If credentials are missing or invalid
        """
        pass

    async def __aenter__(self):
        """Async context manager entry.

        Example:
            async with GroqQuestionClient() as generator:
                text = await generator.generate(request)
        """
        self._client = get_async_client(timeout=self.timeout)
        logger.debug(f"{self.__class__.__name__} context manager entered")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit; closes the HTTP client even on errors."""
        await self.close()
        logger.debug(f"{self.__class__.__name__} context manager exited")

    async def close(self):
        """Close the HTTP client and release resources. Safe to call multiple times."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.debug(f"{self.__class__.__name__} HTTP client closed")

    @abstractmethod
    async def generate(self, request: GeneratorRequest) -> str:
        """Send one prompt and return the raw generated text.

        Args:
            request: Prompt, temperature and output budget

        Returns:
            Raw text produced by the model (expected to contain JSON)
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the API is accessible and responding.

        Note:
            Should not raise exceptions - return False on any error
        """
        pass

    def __repr__(self) -> str:
        """String representation of the client."""
        return (
            f"{self.__class__.__name__}("
            f"endpoint={self.endpoint}, "
            f"model={self.model}, "
            f"timeout={self.timeout}s"
            ")"
        )
