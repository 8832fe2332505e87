"""
Outer driver: runs the retry loop for many topics, one after another.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from src.core.config import QAConfig, settings
from src.core.error_handling import GenerationExhaustedError, GeneratorRequestError, GeneratorUnavailableError
from src.core.http_client import RateLimiter
from src.models.question_models import GenerationRequest, GenerationResult, ValidationIssue
from src.services.clients.base_client import BaseQuestionGenerator
from src.services.interfaces import CorpusSource, QuestionSink
from src.services.retry_orchestrator import RetryOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class TopicOutcome:
    """What happened to one topic of a bulk run."""
    topic_id: str
    result: Optional[GenerationResult] = None
    error: Optional[str] = None
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.result is not None


class QuestionGenerationService:
    """Sequential multi-topic generation with a shared generator throttle."""

    def __init__(
        self,
        generator: BaseQuestionGenerator,
        corpus_source: CorpusSource,
        sink: QuestionSink,
        config: Optional[QAConfig] = None,
        rate_limiter: Optional[RateLimiter] = None,
        topic_delay: Optional[float] = None,
    ):
        self.generator = generator
        self.corpus_source = corpus_source
        self.sink = sink
        self.config = config or QAConfig.from_settings()
        self.rate_limiter = rate_limiter
        self.topic_delay = settings.TOPIC_DELAY_SECONDS if topic_delay is None else topic_delay

    def _orchestrator(self) -> RetryOrchestrator:
        return RetryOrchestrator(
            self.generator,
            config=self.config,
            sink=self.sink,
            rate_limiter=self.rate_limiter,
        )

    async def generate_for_topic(self, request: GenerationRequest) -> GenerationResult:
        """Look up the topic's corpus and run the retry loop once."""
        corpus = await self.corpus_source.existing_questions(request.topic_id)
        logger.info(f"Topic {request.topic_id}: {len(corpus)} existing questions in corpus")
        return await self._orchestrator().run(request, corpus)

    async def generate_for_topics(self, requests: Sequence[GenerationRequest]) -> List[TopicOutcome]:
        """
        Process topics sequentially with a pause between them.

        A topic whose attempts are exhausted, whose generator stays
        unavailable, or whose request the generator rejects is recorded as
        failed and the run continues.
        Configuration errors abort the run.
        """
        outcomes: List[TopicOutcome] = []
        for position, request in enumerate(requests):
            if position and self.topic_delay:
                await asyncio.sleep(self.topic_delay)
            try:
                result = await self.generate_for_topic(request)
                outcomes.append(TopicOutcome(request.topic_id, result=result))
            except GenerationExhaustedError as e:
                logger.error(f"Topic {request.topic_id} failed: {e}")
                outcomes.append(TopicOutcome(request.topic_id, error=str(e), issues=e.issues))
            except (GeneratorUnavailableError, GeneratorRequestError) as e:
                logger.error(f"Topic {request.topic_id} failed: {e}")
                outcomes.append(TopicOutcome(request.topic_id, error=str(e)))

        succeeded = sum(1 for o in outcomes if o.succeeded)
        logger.info(
            f"Bulk generation finished: {succeeded}/{len(outcomes)} topics succeeded",
            extra={"extra_fields": {"succeeded": succeeded, "failed": len(outcomes) - succeeded}},
        )
        return outcomes
