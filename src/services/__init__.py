"""Services package for question generation, validation and repair."""

from src.services.clients import BaseQuestionGenerator, GeneratorRequest
from src.services.groq_client import GroqQuestionClient
from src.services.openai_client import OpenAIQuestionClient
from src.services.validation import QuestionValidationService, BatchValidation, DistributionRebalancer
from src.services.retry_orchestrator import RetryOrchestrator
from src.services.generation_service import QuestionGenerationService, TopicOutcome

__all__ = [
    'BaseQuestionGenerator',
    'GeneratorRequest',
    'GroqQuestionClient',
    'OpenAIQuestionClient',
    'QuestionValidationService',
    'BatchValidation',
    'DistributionRebalancer',
    'RetryOrchestrator',
    'QuestionGenerationService',
    'TopicOutcome',
]
