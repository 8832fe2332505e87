"""
Client factory for initializing question generator clients.

Centralizes client initialization and the generator-wide rate limiter.
"""
import logging
from typing import Dict, Optional

from src.core.config import settings
from src.core.error_handling import GeneratorConfigurationError
from src.core.http_client import RateLimiter
from src.services.clients.base_client import BaseQuestionGenerator
from src.services.groq_client import GroqQuestionClient
from src.services.openai_client import OpenAIQuestionClient

logger = logging.getLogger(__name__)

GENERATOR_CLASSES = {
    "groq": GroqQuestionClient,
    "openai": OpenAIQuestionClient,
}


class ClientFactory:
    """Factory for creating and managing generator clients."""

    def __init__(self):
        """Initialize the client factory."""
        self._generators: Dict[str, BaseQuestionGenerator] = {}
        self._rate_limiter: Optional[RateLimiter] = None

    @property
    def rate_limiter(self) -> RateLimiter:
        """Throttle shared by every caller of the upstream generator."""
        if self._rate_limiter is None:
            self._rate_limiter = RateLimiter(settings.GENERATOR_MIN_REQUEST_INTERVAL)
        return self._rate_limiter

    def get_generator(self, provider: Optional[str] = None) -> BaseQuestionGenerator:
        """
        Get or create the generator client for a provider.

        Args:
            provider: "groq" or "openai" (defaults to GENERATOR_PROVIDER)

        Returns:
            Generator client instance

        Raises:
            GeneratorConfigurationError: If the provider is unknown or not configured
        """
        name = (provider or settings.GENERATOR_PROVIDER).lower()
        if name not in GENERATOR_CLASSES:
            raise GeneratorConfigurationError(
                f"Unknown generator provider: {name}. Options: {', '.join(GENERATOR_CLASSES)}"
            )
        if name not in self._generators:
            self._generators[name] = GENERATOR_CLASSES[name]()
            logger.info(f"{name} generator client initialized")
        return self._generators[name]

    def configured_providers(self) -> Dict[str, bool]:
        """Which providers have credentials configured."""
        return {
            "groq": bool(settings.GROQ_API_KEY),
            "openai": bool(settings.OPENAI_API_KEY),
        }


# Global singleton instance
_client_factory: Optional[ClientFactory] = None


def get_client_factory() -> ClientFactory:
    """
    Get the global client factory instance.

    Returns:
        Singleton ClientFactory instance
    """
    global _client_factory
    if _client_factory is None:
        _client_factory = ClientFactory()
    return _client_factory
