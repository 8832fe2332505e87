"""
Validation package for generated question quality assurance.

- content_normalizer.py: Text canonicalization shared by every check
- deduplicator.py: Jaccard near-duplicate detection
- quote_grounding.py: Quote extraction, verification, selection and repair
- citation_validator.py: Article / instrument / option-justification checks
- problem_detector.py: Structural checks on a single question
- distribution_rebalancer.py: Correct-letter run and diversity repair
- validation_report.py: Scoring, buckets and feedback lines
- validation_orchestrator.py: QuestionValidationService orchestration
"""
from .validation_orchestrator import QuestionValidationService, BatchValidation
from .content_normalizer import ContentNormalizer, normalize, normalize_for_match
from .deduplicator import Deduplicator, DeduplicationResult, DroppedItem
from .quote_grounding import QuoteGroundingValidator, GroundingResult
from .citation_validator import CitationValidator
from .problem_detector import ProblemDetector
from .distribution_rebalancer import DistributionRebalancer, RebalanceResult
from .validation_report import build_outcome, build_report, feedback_lines, score_issues

__all__ = [
    'QuestionValidationService',
    'BatchValidation',
    'ContentNormalizer',
    'normalize',
    'normalize_for_match',
    'Deduplicator',
    'DeduplicationResult',
    'DroppedItem',
    'QuoteGroundingValidator',
    'GroundingResult',
    'CitationValidator',
    'ProblemDetector',
    'DistributionRebalancer',
    'RebalanceResult',
    'build_outcome',
    'build_report',
    'feedback_lines',
    'score_issues',
]
