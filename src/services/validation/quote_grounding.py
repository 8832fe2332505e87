"""
Quote grounding: quoted spans in an explanation must appear verbatim
(after normalization) in the source content the item was generated from.
"""
import re
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from src.core.config import QAConfig
from src.core.constants import (
    MANDATORY_QUOTE_MISSING,
    QUOTE_REPAIRED,
    QUOTED_SOURCE_PREFIX,
    UNGROUNDED_QUOTE,
)
from src.models.question_models import CandidateItem, ValidationIssue
from .citation_validator import ARTICLE_RE
from .content_normalizer import ContentNormalizer

logger = logging.getLogger(__name__)

# Guillemets and curly quotes are straight quotes once normalized
_QUOTED_SPAN_RE = re.compile(r'"([^"]*)"')
_FRAGMENT_SPLIT_RE = re.compile(r"(?<=[.;:!?])\s+|\n+")

FRAGMENT_MIN_LENGTH = 25
FRAGMENT_MAX_LENGTH = 260
FRAGMENT_MIN_LETTERS = 12
FALLBACK_MIN_LENGTH = 60
FALLBACK_MAX_LENGTH = 180


@dataclass(frozen=True)
class GroundingResult:
    grounded: bool
    spans: List[str] = field(default_factory=list)
    grounded_spans: List[str] = field(default_factory=list)
    mandatory_hit: bool = False


class QuoteGroundingValidator:
    """Extract, verify, select and repair quotes of source content."""

    def __init__(self, config: QAConfig, normalizer: Optional[ContentNormalizer] = None):
        self.config = config
        self.normalizer = normalizer or ContentNormalizer()

    def extract_quotes(self, explanation: str) -> List[str]:
        """
        Quoted spans of acceptable length, in order.

        Shorter spans are not meaningful legal quotes; longer ones are
        treated as paraphrase wrapped in quotes.
        """
        spans = []
        for match in _QUOTED_SPAN_RE.finditer(self.normalizer.normalize(explanation)):
            span = match.group(1).strip()
            if self.config.quote_min_length <= len(span) <= self.config.quote_max_length:
                spans.append(span)
        return spans

    def check(self, explanation: str, source: str, mandatory: Sequence[str] = ()) -> GroundingResult:
        """
        Verify that at least one quoted span is a substring of the source.

        With mandatory quotes, one span must also equal one of them.
        """
        spans = self.extract_quotes(explanation)
        source_key = self.normalizer.normalize_for_match(source)
        grounded_spans = [
            span for span in spans
            if source_key and self.normalizer.normalize_for_match(span) in source_key
        ]

        mandatory_keys = {self.normalizer.normalize_for_match(q) for q in mandatory if q}
        mandatory_hit = any(self.normalizer.normalize_for_match(s) in mandatory_keys for s in spans)

        grounded = bool(grounded_spans) and (mandatory_hit or not mandatory_keys)
        return GroundingResult(grounded, spans, grounded_spans, mandatory_hit)

    def select_mandatory_quotes(self, source: str, limit: Optional[int] = None) -> List[str]:
        """
        Pick verbatim fragments of the source for the generator to reuse.

        Fragments citing an article come first, then any fragment with
        enough letters. Falls back to the opening of the source trimmed to a
        word boundary.
        """
        limit = self.config.mandatory_quotes if limit is None else limit
        if not source or not source.strip() or limit <= 0:
            return []

        with_article: List[str] = []
        others: List[str] = []
        for raw in _FRAGMENT_SPLIT_RE.split(source):
            fragment = self.normalizer.normalize(raw)
            if not FRAGMENT_MIN_LENGTH <= len(fragment) <= FRAGMENT_MAX_LENGTH or '"' in fragment:
                continue
            if ARTICLE_RE.search(fragment):
                with_article.append(fragment)
            elif sum(1 for c in fragment if c.isalpha()) >= FRAGMENT_MIN_LETTERS:
                others.append(fragment)

        selected: List[str] = []
        seen = set()
        for fragment in with_article + others:
            key = self.normalizer.normalize_for_match(fragment)
            if key in seen:
                continue
            seen.add(key)
            selected.append(fragment)
            if len(selected) >= limit:
                break

        if not selected:
            fallback = self._fallback_fragment(source)
            # A quote shorter than the extraction minimum could never be matched
            if len(fallback) >= self.config.quote_min_length:
                selected.append(fallback)
            else:
                logger.info(f"Source too short for a mandatory quote ({len(fallback)} characters)")
        return selected

    def _fallback_fragment(self, source: str) -> str:
        text = self.normalizer.normalize(source).split('"', 1)[0]
        if len(text) <= FALLBACK_MAX_LENGTH:
            return text.strip()
        head = text[:FALLBACK_MAX_LENGTH]
        cut = head.rfind(" ")
        if cut >= FALLBACK_MIN_LENGTH:
            head = head[:cut]
        return head.strip()

    def repair(self, item: CandidateItem, index: int, mandatory: Sequence[str]) -> CandidateItem:
        """
        Prepend a grounded quote line; options and correct letter are untouched.

        Mandatory quotes are round-robined by item index.
        """
        quote = mandatory[index % len(mandatory)]
        return item.with_explanation(f'{QUOTED_SOURCE_PREFIX} "{quote}"\n{item.explanation}')

    def validate(
        self, item: CandidateItem, index: int, mandatory: Sequence[str] = ()
    ) -> Tuple[CandidateItem, List[ValidationIssue], List[ValidationIssue]]:
        """
        Check grounding and repair when possible.

        Returns:
            (item, errors, warnings); ``item`` is the repaired copy when a
            repair was applied.
        """
        result = self.check(item.explanation, item.source_context, mandatory)
        if result.grounded:
            return item, [], []

        if mandatory:
            repaired = self.repair(item, index, mandatory)
            if self.check(repaired.explanation, repaired.source_context, mandatory).grounded:
                logger.info(
                    f"Repaired ungrounded quote in question {index + 1}",
                    extra={"extra_fields": {"item_index": index, "repair": QUOTE_REPAIRED}},
                )
                warning = ValidationIssue(
                    index, QUOTE_REPAIRED,
                    "explanation had no grounded quote; a source quote was prepended",
                )
                return repaired, [], [warning]

        if result.grounded_spans:
            error = ValidationIssue(
                index, MANDATORY_QUOTE_MISSING,
                "explanation does not reuse any of the mandatory source quotes",
            )
        elif result.spans:
            error = ValidationIssue(
                index, UNGROUNDED_QUOTE,
                f'quoted text "{result.spans[0][:60]}" does not appear in the source content',
            )
        else:
            error = ValidationIssue(
                index, UNGROUNDED_QUOTE,
                "explanation contains no literal quote of the source content",
            )
        return item, [error], []
