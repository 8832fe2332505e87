"""Data models: pipeline value objects and pydantic models for API and generator payloads."""

from .question_models import (
    CandidateItem,
    ValidationIssue,
    ValidationOutcome,
    BatchReport,
    RetryState,
    GenerationRequest,
    GenerationResult,
    Rotation,
    bucket_for
)
from .generator_models import (
    RawQuestionRecord,
    normalize_difficulty
)
from .api_models import (
    QuestionPayload,
    GenerateQuestionsRequest,
    GenerateQuestionsResponse,
    ValidateQuestionsRequest,
    ValidateQuestionsResponse,
    RotationPayload,
    DroppedPayload
)

__all__ = [
    "CandidateItem",
    "ValidationIssue",
    "ValidationOutcome",
    "BatchReport",
    "RetryState",
    "GenerationRequest",
    "GenerationResult",
    "Rotation",
    "bucket_for",
    "RawQuestionRecord",
    "normalize_difficulty",
    "QuestionPayload",
    "GenerateQuestionsRequest",
    "GenerateQuestionsResponse",
    "ValidateQuestionsRequest",
    "ValidateQuestionsResponse",
    "RotationPayload",
    "DroppedPayload"
]
