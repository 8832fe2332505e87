"""
Scoring and aggregation of per-item validation results.
"""
import logging
from typing import Dict, List, Optional, Sequence

from src.core.config import QAConfig
from src.core.constants import ISSUE_PENALTIES
from src.models.question_models import BatchReport, ValidationIssue, ValidationOutcome, bucket_for

logger = logging.getLogger(__name__)

DEFAULT_PENALTY = 10

__all__ = ["score_issues", "bucket_for", "build_outcome", "build_report", "feedback_lines"]


def score_issues(issues: Sequence[ValidationIssue], penalties: Optional[Dict[str, int]] = None) -> int:
    """Start at 100, subtract the penalty of every issue, clamp to [0, 100]."""
    table = ISSUE_PENALTIES if penalties is None else penalties
    score = 100 - sum(table.get(issue.code, DEFAULT_PENALTY) for issue in issues)
    return max(0, min(100, score))


def build_outcome(
    index: int,
    errors: Sequence[ValidationIssue],
    warnings: Sequence[ValidationIssue],
    config: QAConfig,
) -> ValidationOutcome:
    """An item is valid when it has no errors and scores at least ``min_score``."""
    score = score_issues(list(errors) + list(warnings))
    valid = not errors and score >= config.min_score
    return ValidationOutcome(
        item_index=index,
        valid=valid,
        score=score,
        issues=tuple(errors),
        warnings=tuple(warnings),
    )


def build_report(
    outcomes: Sequence[ValidationOutcome],
    batch_issues: Sequence[ValidationIssue] = (),
    target_count: Optional[int] = None,
) -> BatchReport:
    report = BatchReport(
        outcomes=tuple(outcomes),
        batch_issues=tuple(batch_issues),
        target_count=target_count,
    )
    logger.info(
        f"Validation: {report.passed}/{report.total} valid, mean score {report.mean_score:.1f}",
        extra={"extra_fields": {"buckets": report.buckets, "passed": report.passed, "total": report.total}},
    )
    return report


def feedback_lines(report: BatchReport, limit: int) -> List[str]:
    """
    Corrective instructions for the next attempt.

    Batch-level problems first, then item errors in item order; an item
    that failed only on score contributes a line as well.
    """
    lines = [issue.describe() for issue in report.all_issues]
    for outcome in report.outcomes:
        if not outcome.valid and not outcome.issues:
            lines.append(
                f"Question {outcome.item_index + 1}: quality score {outcome.score}/100 is too low "
                f"({', '.join(w.message for w in outcome.warnings)})"
            )
    return lines[:limit]
