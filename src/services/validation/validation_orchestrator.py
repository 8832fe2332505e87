"""
Validation orchestration for generated question batches.

Coordinates normalization, deduplication, quote grounding, citation and
structural checks, and scoring.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

from src.core.config import QAConfig
from src.core.constants import BATCH_LEVEL, BATCH_TOO_SMALL, DUPLICATE
from src.models.question_models import BatchReport, CandidateItem, ValidationIssue, ValidationOutcome

from .citation_validator import CitationValidator
from .content_normalizer import ContentNormalizer
from .deduplicator import DeduplicationResult, Deduplicator, DroppedItem
from .problem_detector import ProblemDetector
from .quote_grounding import QuoteGroundingValidator
from .validation_report import build_outcome, build_report

logger = logging.getLogger(__name__)

# One parsed generator record: a candidate, or the issue explaining why it is malformed
Slot = Union[CandidateItem, ValidationIssue]


@dataclass
class BatchValidation:
    """Validated batch: repaired items aligned with the input slots."""
    items: List[Optional[CandidateItem]]
    report: BatchReport
    dedup: DeduplicationResult = field(default_factory=DeduplicationResult)

    def accepted_items(self, target: Optional[int] = None) -> List[CandidateItem]:
        """The first ``target`` items (all items when target is None)."""
        chosen = self.items if target is None else self.items[:target]
        return [item for item in chosen if item is not None]


class QuestionValidationService:
    """Deterministic QA for one batch of candidate questions."""

    def __init__(self, config: QAConfig, normalizer: Optional[ContentNormalizer] = None):
        """
        Initialize validation service.

        Args:
            config: QA thresholds shared by every component
            normalizer: Text normalizer (optional, a default one is created)
        """
        self.config = config
        self.normalizer = normalizer or ContentNormalizer()
        self.deduplicator = Deduplicator(config, self.normalizer)
        self.grounding = QuoteGroundingValidator(config, self.normalizer)
        self.citations = CitationValidator(config, self.normalizer)
        self.problem_detector = ProblemDetector(config)

    # ============================================================================
    # DELEGATED METHODS (delegate to specialized components)
    # ============================================================================

    def select_mandatory_quotes(self, source: str) -> List[str]:
        """Delegate to quote grounding validator."""
        return self.grounding.select_mandatory_quotes(source)

    def deduplicate(self, items: Sequence[CandidateItem], corpus: Sequence[str] = ()) -> DeduplicationResult:
        """Delegate to deduplicator."""
        return self.deduplicator.filter_batch(items, corpus)

    # ============================================================================
    # VALIDATION
    # ============================================================================

    def validate_item(
        self,
        item: CandidateItem,
        index: int,
        mandatory: Sequence[str] = (),
        duplicate: Optional[DroppedItem] = None,
        allow_fallback: bool = True,
    ) -> Tuple[CandidateItem, ValidationOutcome]:
        """
        Validate one item, applying the allowed repairs first.

        Order: quote grounding (and its repair), citation fallback, citation
        checks, structural checks. The citation fallback runs only when
        ``allow_fallback`` is set and enabled in the config. Returns the
        possibly repaired item and its outcome.
        """
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []

        if duplicate is not None:
            errors.append(ValidationIssue(
                index, DUPLICATE,
                f"question is too similar ({duplicate.similarity:.0%}) to an existing {duplicate.source} "
                f'question: "{duplicate.matched_text[:80]}"',
            ))

        item, grounding_errors, grounding_warnings = self.grounding.validate(item, index, mandatory)
        errors.extend(grounding_errors)
        warnings.extend(grounding_warnings)

        fallback = self.citations.synthesize_fallback(item, index) if allow_fallback else None
        if fallback is not None:
            item, fallback_warning = fallback
            warnings.append(fallback_warning)

        citation_errors, citation_warnings = self.citations.check(item, index)
        errors.extend(citation_errors)
        warnings.extend(citation_warnings)

        structural_errors, structural_warnings = self.problem_detector.detect_all_problems(item, index)
        errors.extend(structural_errors)
        warnings.extend(structural_warnings)

        return item, build_outcome(index, errors, warnings, self.config)

    def validate_batch(
        self,
        slots: Sequence[Slot],
        corpus: Sequence[str] = (),
        mandatory: Sequence[str] = (),
        target: Optional[int] = None,
        allow_fallback: bool = True,
    ) -> BatchValidation:
        """
        Validate a whole batch, one outcome per slot in input order.

        Args:
            slots: Parsed records; malformed ones arrive as ValidationIssue
            corpus: Existing question texts for the topic
            mandatory: Mandatory quotes handed to the generator
            target: Required number of items, if any
            allow_fallback: Whether the citation fallback may repair items

        Returns:
            BatchValidation with repaired items and the report
        """
        candidate_positions = [i for i, slot in enumerate(slots) if isinstance(slot, CandidateItem)]
        dedup = self.deduplicator.filter_batch(
            [slots[i] for i in candidate_positions], corpus, candidate_positions
        )
        duplicates: Dict[int, DroppedItem] = {d.index: d for d in dedup.dropped}

        items: List[Optional[CandidateItem]] = []
        outcomes: List[ValidationOutcome] = []
        for index, slot in enumerate(slots):
            if isinstance(slot, ValidationIssue):
                items.append(None)
                outcomes.append(ValidationOutcome(item_index=index, valid=False, score=0, issues=(slot,)))
                continue
            repaired, outcome = self.validate_item(slot, index, mandatory, duplicates.get(index), allow_fallback)
            items.append(repaired)
            outcomes.append(outcome)

        batch_issues: List[ValidationIssue] = []
        if target is not None and len(slots) < target:
            batch_issues.append(ValidationIssue(
                BATCH_LEVEL, BATCH_TOO_SMALL,
                f"expected {target} questions but received {len(slots)}",
            ))

        report = build_report(outcomes, batch_issues, target)
        return BatchValidation(items=items, report=report, dedup=dedup)

    def is_acceptable(self, batch: BatchValidation, target: Optional[int] = None) -> bool:
        """
        A batch passes only when every required item is valid.

        With a target, at least ``target`` records must be present and the
        first ``target`` must all pass; extra records are ignored.
        """
        outcomes = batch.report.outcomes
        if target is None:
            return bool(outcomes) and all(o.valid for o in outcomes)
        if len(outcomes) < target:
            return False
        if len(outcomes) > target:
            logger.info(f"Ignoring {len(outcomes) - target} question(s) beyond the requested {target}")
        return all(o.valid for o in outcomes[:target])
