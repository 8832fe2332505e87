"""
Generate-validate-repair loop against the external generator.

Idle -> Requesting -> Validating -> Success | Retrying -> Requesting | Failed

Each attempt works on its own freshly returned batch and an immutable
RetryState; a batch is accepted only when every required item passes.
"""
import logging
from typing import List, Optional, Sequence

from src.core.config import QAConfig, settings
from src.core.constants import BATCH_LEVEL, GENERATOR_UNAVAILABLE, MALFORMED_OUTPUT
from src.core.error_handling import (
    GenerationExhaustedError,
    GeneratorUnavailableError,
    MalformedOutputError,
)
from src.core.http_client import RateLimiter, call_with_transient_retry
from src.models.question_models import (
    BatchReport,
    GenerationRequest,
    GenerationResult,
    RetryState,
    ValidationIssue,
)
from src.services.clients.base_client import BaseQuestionGenerator, GeneratorRequest
from src.services.interfaces import QuestionSink
from src.services.prompt_builder import PromptBuilder
from src.services.response_parser import decode_payload, parse_candidates
from src.services.validation import (
    BatchValidation,
    DistributionRebalancer,
    QuestionValidationService,
    feedback_lines,
)

logger = logging.getLogger(__name__)


def _failure_issues(report: BatchReport) -> List[ValidationIssue]:
    """Errors of the attempt; items that failed only on score contribute their warnings."""
    issues = report.all_issues
    for outcome in report.outcomes:
        if not outcome.valid and not outcome.issues:
            issues.extend(outcome.warnings)
    return issues


class RetryOrchestrator:
    """Drives one topic through bounded generation attempts."""

    def __init__(
        self,
        generator: BaseQuestionGenerator,
        config: Optional[QAConfig] = None,
        validation_service: Optional[QuestionValidationService] = None,
        rebalancer: Optional[DistributionRebalancer] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        sink: Optional[QuestionSink] = None,
        rate_limiter: Optional[RateLimiter] = None,
        transient_attempts: Optional[int] = None,
        call_timeout: Optional[float] = None,
        backoff_base: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            generator: Generator client
            config: QA thresholds (defaults to QAConfig.from_settings())
            validation_service: Validation pipeline (created from config if not provided)
            rebalancer: Distribution rebalancer (created from config if not provided)
            prompt_builder: Prompt builder (uses settings prompts if not provided)
            sink: Receives accepted batches (optional)
            rate_limiter: Throttle shared with other callers of the generator (optional)
            transient_attempts: Transport retry budget per attempt
            call_timeout: Per-call timeout in seconds
            backoff_base: Base delay for exponential backoff
            max_output_tokens: Output budget sent to the generator
        """
        self.generator = generator
        self.config = config or QAConfig.from_settings()
        self.validation = validation_service or QuestionValidationService(self.config)
        self.rebalancer = rebalancer or DistributionRebalancer(self.config)
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.sink = sink
        self.rate_limiter = rate_limiter
        self.transient_attempts = transient_attempts or settings.GENERATOR_TRANSIENT_ATTEMPTS
        self.call_timeout = call_timeout or settings.GENERATOR_TIMEOUT_SECONDS
        self.backoff_base = settings.GENERATOR_BACKOFF_SECONDS if backoff_base is None else backoff_base
        self.max_output_tokens = max_output_tokens or settings.GENERATOR_MAX_OUTPUT_TOKENS

    async def _request(self, request: GeneratorRequest) -> str:
        """One generator call with timeout and transient retries."""
        async def call() -> str:
            if self.rate_limiter is not None:
                await self.rate_limiter.wait_if_needed()
            return await self.generator.generate(request)

        return await call_with_transient_retry(
            call,
            timeout=self.call_timeout,
            max_attempts=self.transient_attempts,
            backoff_base=self.backoff_base,
            description=f"{self.generator.provider_name} generation",
        )

    async def _accept(
        self,
        request: GenerationRequest,
        batch: BatchValidation,
        target: int,
        state: RetryState,
        mandatory: List[str],
    ) -> GenerationResult:
        rebalanced = self.rebalancer.rebalance(batch.accepted_items(target))
        remaining = self.rebalancer.find_violations([item.correct_letter for item in rebalanced.items])
        if remaining:
            logger.warning(f"Accepted batch for {request.topic_id} still has distribution problems: {remaining}")

        result = GenerationResult(
            items=rebalanced.items,
            report=batch.report,
            attempts=state.attempt,
            rotations=rebalanced.rotations,
            mandatory_quotes=mandatory,
        )
        if self.sink is not None:
            await self.sink.save(request.topic_id, result.items)

        logger.info(
            f"Topic {request.topic_id}: accepted {len(result.items)} questions on attempt "
            f"{state.attempt}/{state.max_attempts}",
            extra={"extra_fields": {"topic_id": request.topic_id, "attempt": state.attempt, "outcome": "success"}},
        )
        return result

    async def run(self, request: GenerationRequest, corpus: Sequence[str] = ()) -> GenerationResult:
        """
        Generate one validated, rebalanced batch for a topic.

        Args:
            request: Topic, source content and target count
            corpus: Existing question texts for deduplication

        Returns:
            GenerationResult with the accepted items

        Raises:
            GenerationExhaustedError: All attempts failed; carries every issue of every attempt
            GeneratorConfigurationError: Generator misconfigured (never retried)
        """
        target = request.count or self.config.batch_size
        known = list(corpus) + list(request.existing_questions)
        mandatory = self.validation.select_mandatory_quotes(request.source_context)
        state = RetryState.initial(self.config)
        all_issues: List[ValidationIssue] = []

        while True:
            extra = {"topic_id": request.topic_id, "attempt": state.attempt, "temperature": state.temperature}
            logger.info(
                f"Topic {request.topic_id}: attempt {state.attempt}/{state.max_attempts} "
                f"(temperature {state.temperature})",
                extra={"extra_fields": extra},
            )
            generator_request = GeneratorRequest(
                prompt_text=self.prompt_builder.build_prompt(request, mandatory, target, state, known),
                temperature=state.temperature,
                max_output_tokens=self.max_output_tokens,
                system_prompt=self.prompt_builder.system_prompt,
            )

            try:
                raw = await self._request(generator_request)
                payload = decode_payload(raw)
            except GeneratorUnavailableError as e:
                issues = [ValidationIssue(BATCH_LEVEL, GENERATOR_UNAVAILABLE, str(e))]
                lines: List[str] = []
            except MalformedOutputError as e:
                logger.warning(f"Topic {request.topic_id}: malformed output on attempt {state.attempt}: {e}")
                issues = [ValidationIssue(BATCH_LEVEL, MALFORMED_OUTPUT, str(e))]
                lines = [settings.MALFORMED_OUTPUT_FEEDBACK]
            else:
                slots = parse_candidates(payload.records, request.source_context)
                # The synthesized citation is a last resort: final attempt only
                batch = self.validation.validate_batch(
                    slots, known, mandatory, target, allow_fallback=state.attempt >= state.max_attempts
                )
                if self.validation.is_acceptable(batch, target):
                    return await self._accept(request, batch, target, state, mandatory)
                issues = _failure_issues(batch.report)
                lines = feedback_lines(batch.report, self.config.max_feedback_issues)
                logger.info(
                    f"Topic {request.topic_id}: attempt {state.attempt} rejected "
                    f"({batch.report.passed}/{batch.report.total} valid)",
                    extra={"extra_fields": {**extra, "outcome": "rejected", "issues": len(issues)}},
                )

            all_issues.extend(issues)
            if state.attempt >= state.max_attempts:
                logger.error(
                    f"Topic {request.topic_id}: generation failed after {state.attempt} attempts "
                    f"({len(all_issues)} issues)",
                    extra={"extra_fields": {**extra, "outcome": "failed"}},
                )
                raise GenerationExhaustedError(all_issues, state.attempt)
            state = state.advance(self.config, lines, issues)
