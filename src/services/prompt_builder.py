"""
Prompt construction for question generation.
"""
import logging
from typing import Optional, Sequence

from src.core.config import Settings, settings
from src.core.constants import MAX_EXISTING_QUESTIONS_IN_PROMPT, MAX_SOURCE_EXCERPT_CHARS
from src.models.question_models import GenerationRequest, RetryState

logger = logging.getLogger(__name__)


class PromptBuilder:
    """Builds the base prompt and appends corrective feedback on retries."""

    def __init__(self, prompt_settings: Optional[Settings] = None):
        self.settings = prompt_settings or settings

    @property
    def system_prompt(self) -> str:
        return self.settings.QUESTION_SYSTEM_PROMPT

    def _mandatory_quotes_section(self, mandatory: Sequence[str]) -> str:
        if not mandatory:
            return ""
        lines = "\n".join(f'{i}. "{quote}"' for i, quote in enumerate(mandatory, 1))
        return (
            "\nMANDATORY QUOTES (every explanation must reproduce at least one of these "
            f"literally, between double quotes):\n{lines}\n"
        )

    def _existing_questions_section(self, existing: Sequence[str]) -> str:
        if not existing:
            return ""
        shown = list(existing)[-MAX_EXISTING_QUESTIONS_IN_PROMPT:]
        lines = "\n".join(f"- {text}" for text in shown)
        return f"\nQUESTIONS THAT ALREADY EXIST (do not repeat or paraphrase them):\n{lines}\n"

    def build_base_prompt(
        self,
        request: GenerationRequest,
        mandatory: Sequence[str],
        count: int,
        existing: Sequence[str] = (),
    ) -> str:
        excerpt = request.source_context[:MAX_SOURCE_EXCERPT_CHARS]
        if len(request.source_context) > MAX_SOURCE_EXCERPT_CHARS:
            logger.debug(f"Source content truncated to {MAX_SOURCE_EXCERPT_CHARS} characters for {request.topic_id}")
        return self.settings.QUESTION_USER_PROMPT_TEMPLATE.format(
            count=count,
            topic_title=request.topic_title,
            topic_description=request.description,
            source_excerpt=excerpt,
            mandatory_quotes_section=self._mandatory_quotes_section(mandatory),
            existing_questions_section=self._existing_questions_section(existing),
        )

    def feedback_block(self, state: RetryState, count: int) -> str:
        if not state.accumulated_feedback:
            return ""
        return (
            f"\n\nCORRECTIONS REQUIRED (attempt {state.attempt} of {state.max_attempts}). "
            "Your previous answer was rejected for these reasons:\n"
            f"{state.accumulated_feedback}\n"
            f"Fix every issue and answer again with the complete set of {count} questions."
        )

    def build_prompt(
        self,
        request: GenerationRequest,
        mandatory: Sequence[str],
        count: int,
        state: RetryState,
        existing: Sequence[str] = (),
    ) -> str:
        """Base prompt plus the accumulated corrective feedback, if any."""
        return self.build_base_prompt(request, mandatory, count, existing) + self.feedback_block(state, count)
