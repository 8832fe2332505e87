"""
Question generation and validation API endpoints.
"""
from fastapi import APIRouter, Depends
import logging
from datetime import datetime, timezone

from src.core.config import QAConfig
from src.core.security import verify_api_key
from src.core.error_handling import handle_generation_errors
from src.models.api_models import (
    DroppedPayload,
    GenerateQuestionsRequest,
    GenerateQuestionsResponse,
    QuestionPayload,
    RotationPayload,
    ValidateQuestionsRequest,
    ValidateQuestionsResponse,
)
from src.services.client_factory import get_client_factory
from src.services.interfaces import InMemoryQuestionStore
from src.services.generation_service import QuestionGenerationService
from src.services.validation import DistributionRebalancer, QuestionValidationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/questions", tags=["questions"])

# Process-local corpus; accepted batches feed later deduplication
_question_store = InMemoryQuestionStore()


def get_question_store() -> InMemoryQuestionStore:
    return _question_store


def get_qa_config() -> QAConfig:
    return QAConfig.from_settings()


def build_generation_service(store: InMemoryQuestionStore, config: QAConfig) -> QuestionGenerationService:
    """Resolved inside the endpoint so configuration errors go through the error handler."""
    factory = get_client_factory()
    return QuestionGenerationService(
        generator=factory.get_generator(),
        corpus_source=store,
        sink=store,
        config=config,
        rate_limiter=factory.rate_limiter,
    )


@router.post("/generate", response_model=GenerateQuestionsResponse, dependencies=[Depends(verify_api_key)])
@handle_generation_errors("Failed to generate questions")
async def generate_questions(
    request: GenerateQuestionsRequest,
    store: InMemoryQuestionStore = Depends(get_question_store),
    config: QAConfig = Depends(get_qa_config),
):
    """
    Generate one validated batch for a topic.

    Runs the bounded generate-validate-repair loop. Returns 422 with the
    full issue list when every attempt fails, 503 when the generator stays
    unavailable.
    """
    request_time = datetime.now(timezone.utc)
    logger.info(f"Generating questions for topic {request.topic_id}")

    service = build_generation_service(store, config)
    result = await service.generate_for_topic(request.to_generation_request())

    return GenerateQuestionsResponse(
        topic_id=request.topic_id,
        request_time=request_time,
        timestamp=datetime.now(timezone.utc),
        attempts=result.attempts,
        questions=[QuestionPayload.from_candidate(item) for item in result.items],
        rotations=[RotationPayload(**vars(rotation)) for rotation in result.rotations],
        mandatory_quotes=result.mandatory_quotes,
        report=result.report.to_dict(),
    )


@router.post("/validate", response_model=ValidateQuestionsResponse, dependencies=[Depends(verify_api_key)])
@handle_generation_errors("Failed to validate questions")
def validate_questions(
    request: ValidateQuestionsRequest,
    config: QAConfig = Depends(get_qa_config),
):
    """
    Run the QA pipeline over supplied questions without calling the generator.

    Repairs (quote prefix, fallback citation) are applied to the returned
    questions; rebalancing only happens when requested and every question
    passed.
    """
    service = QuestionValidationService(config)
    slots = [question.to_candidate(request.source_context) for question in request.questions]

    mandatory = request.mandatory_quotes
    if mandatory is None:
        mandatory = service.select_mandatory_quotes(request.source_context)

    batch = service.validate_batch(slots, request.corpus, mandatory)
    valid = service.is_acceptable(batch)
    items = batch.accepted_items()

    rotations = []
    if valid and request.rebalance:
        rebalanced = DistributionRebalancer(config).rebalance(items)
        items, rotations = rebalanced.items, rebalanced.rotations

    return ValidateQuestionsResponse(
        valid=valid,
        questions=[QuestionPayload.from_candidate(item) for item in items],
        rotations=[RotationPayload(**vars(rotation)) for rotation in rotations],
        dropped=[
            DroppedPayload(index=d.index, matched_text=d.matched_text, source=d.source, similarity=d.similarity)
            for d in batch.dedup.dropped
        ],
        report=batch.report.to_dict(),
        summary=batch.report.summary(),
    )
