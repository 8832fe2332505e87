"""
Structural problem detection for generated questions.

Detects 7 types of issues in a single item:
1. Short stem (error)
2. Short explanation (error)
3. Empty option (error)
4. Duplicate options (error)
5. Unbalanced option lengths (warning)
6. Negatively-phrased stem (warning)
7. Stem without a question mark (warning)
"""
import re
import logging
from typing import List, Tuple

from src.core.config import QAConfig
from src.core.constants import (
    DUPLICATE_OPTIONS,
    EMPTY_OPTION,
    LETTERS,
    MISSING_QUESTION_MARK,
    NEGATIVE_PHRASING,
    SHORT_EXPLANATION,
    SHORT_PROMPT,
    UNBALANCED_OPTIONS,
)
from src.models.question_models import CandidateItem, ValidationIssue

logger = logging.getLogger(__name__)


class ProblemDetector:
    """Detects structural quality issues in one candidate item."""

    # Stems phrased in the negative are harder to read
    NEGATIVE_PATTERN = re.compile(
        r"\b(?:no es|no son|no corresponde|no se|cu[áa]l no|is not|are not|does not|do not|except)\b",
        re.IGNORECASE,
    )

    # An option whose length deviates from the mean by more than this share is unbalanced
    OPTION_LENGTH_DEVIATION = 0.8

    def __init__(self, config: QAConfig):
        self.config = config

    def _detect_short_prompt(self, item: CandidateItem, index: int) -> List[ValidationIssue]:
        length = len(item.prompt_text.strip())
        if length < self.config.min_prompt_length:
            return [ValidationIssue(
                index, SHORT_PROMPT,
                f"question text is too short ({length} < {self.config.min_prompt_length} characters)",
            )]
        return []

    def _detect_short_explanation(self, item: CandidateItem, index: int) -> List[ValidationIssue]:
        length = len(item.explanation.strip())
        if length < self.config.min_explanation_length:
            return [ValidationIssue(
                index, SHORT_EXPLANATION,
                f"explanation is too short ({length} < {self.config.min_explanation_length} characters)",
            )]
        return []

    def _detect_empty_options(self, item: CandidateItem, index: int) -> List[ValidationIssue]:
        return [
            ValidationIssue(index, EMPTY_OPTION, f"option {letter} is empty")
            for letter, option in zip(LETTERS, item.options)
            if not option.strip()
        ]

    def _detect_duplicate_options(self, item: CandidateItem, index: int) -> List[ValidationIssue]:
        keys = [option.strip().casefold() for option in item.options if option.strip()]
        if len(set(keys)) < len(keys):
            return [ValidationIssue(index, DUPLICATE_OPTIONS, "two or more options are identical")]
        return []

    def _detect_unbalanced_options(self, item: CandidateItem, index: int) -> List[ValidationIssue]:
        """
        Warn when one option is much longer or shorter than the others;
        a visibly different option gives the answer away.
        """
        lengths = [len(option) for option in item.options]
        mean = sum(lengths) / len(lengths)
        if mean and max(abs(length - mean) for length in lengths) > mean * self.OPTION_LENGTH_DEVIATION:
            return [ValidationIssue(index, UNBALANCED_OPTIONS, "option lengths are very uneven")]
        return []

    def _detect_negative_phrasing(self, item: CandidateItem, index: int) -> List[ValidationIssue]:
        if self.NEGATIVE_PATTERN.search(item.prompt_text):
            return [ValidationIssue(index, NEGATIVE_PHRASING, "question is phrased in the negative")]
        return []

    def _detect_missing_question_mark(self, item: CandidateItem, index: int) -> List[ValidationIssue]:
        if not item.prompt_text.strip().endswith("?"):
            return [ValidationIssue(index, MISSING_QUESTION_MARK, "question does not end with '?'")]
        return []

    def detect_all_problems(self, item: CandidateItem, index: int) -> Tuple[List[ValidationIssue], List[ValidationIssue]]:
        """
        Run every structural check.

        Returns:
            (errors, warnings)
        """
        errors = (
            self._detect_short_prompt(item, index)
            + self._detect_short_explanation(item, index)
            + self._detect_empty_options(item, index)
            + self._detect_duplicate_options(item, index)
        )
        warnings = (
            self._detect_unbalanced_options(item, index)
            + self._detect_negative_phrasing(item, index)
            + self._detect_missing_question_mark(item, index)
        )
        if errors:
            logger.debug(f"Question {index + 1}: {len(errors)} structural error(s)")
        return errors, warnings
