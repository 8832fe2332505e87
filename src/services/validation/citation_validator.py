"""
Citation checks for question explanations.

An acceptable explanation cites an article and the governing instrument
(a numbered law/decree or one of the named codes) and says why the
incorrect options are wrong. All checks are regex heuristics.
"""
import re
import logging
from typing import List, Optional, Set, Tuple

from src.core.config import QAConfig
from src.core.constants import (
    CITATION_SYNTHESIZED,
    LEGAL_BASIS_PREFIX,
    MISSING_ARTICLE,
    MISSING_INSTRUMENT,
    UNJUSTIFIED_OPTIONS,
)
from src.models.question_models import CandidateItem, ValidationIssue
from .content_normalizer import ContentNormalizer

logger = logging.getLogger(__name__)

# "Article 14", "Art. 14.2", "Arts. 3", "artículo 21"
ARTICLE_RE = re.compile(
    r"\b(?:art[íi]culos?|articles?|arts?\.?)\s*(\d+(?:\.\d+)?)",
    re.IGNORECASE,
)

# Longer kinds first so "Royal Legislative Decree" wins over "Decree"
_INSTRUMENT_KINDS = (
    r"royal\s+legislative\s+decree",
    r"royal\s+decree(?:[\s-]+law)?",
    r"legislative\s+decree",
    r"decree(?:[\s-]+law)?",
    r"organic\s+law",
    r"law",
    r"real\s+decreto(?:\s+legislativo|[\s-]+ley)?",
    r"decreto(?:\s+legislativo|[\s-]+ley)?",
    r"ley\s+org[áa]nica",
    r"ley",
    r"orden",
    r"order",
    r"regulation",
    r"directive",
    r"rdleg",
    r"rdl",
    r"rd",
    r"lo",
)

# "Law 39/2015", "Real Decreto Legislativo 8/2015", "RDL 2/15"
INSTRUMENT_RE = re.compile(
    r"\b(?:" + "|".join(_INSTRUMENT_KINDS) + r")\.?\s+(\d+/\d{2,4})\b",
    re.IGNORECASE,
)

NAMED_INSTRUMENT_RE = re.compile(
    r"\b(?:constituci[óo]n\s+espa[ñn]ola|spanish\s+constitution"
    r"|estatuto\s+de\s+los\s+trabajadores|workers'?\s+statute)\b",
    re.IGNORECASE,
)

# "option B", "options B, C and D", "respuestas A y C". Keywords match in any case,
# letters only in upper case so "la respuesta a la pregunta" names no option.
_OPTION_REFERENCE_RE = re.compile(
    r"\b(?i:options?|opci[oó]n(?:es)?|answers?|respuestas?|letters?|letras?)\s+"
    r"([A-D](?:\s*(?:,|(?i:and|y|or|o)|&|/)\s*[A-D])*)\b"
)
_LETTER_RE = re.compile(r"\b([A-D])\b")


class CitationValidator:
    """Pattern checks over a (possibly repaired) explanation."""

    def __init__(self, config: QAConfig, normalizer: Optional[ContentNormalizer] = None):
        self.config = config
        self.normalizer = normalizer or ContentNormalizer()

    def find_articles(self, text: str) -> List[str]:
        """Article numbers cited in ``text``, in order of appearance."""
        return ARTICLE_RE.findall(self.normalizer.normalize(text))

    def find_instruments(self, text: str) -> List[str]:
        """Governing instruments cited in ``text`` (numbered first, then named)."""
        normalized = self.normalizer.normalize(text)
        found = [m.group(0) for m in INSTRUMENT_RE.finditer(normalized)]
        found.extend(m.group(0) for m in NAMED_INSTRUMENT_RE.finditer(normalized))
        return found

    def referenced_letters(self, explanation: str) -> Set[str]:
        """Option letters the explanation refers to explicitly."""
        letters: Set[str] = set()
        for match in _OPTION_REFERENCE_RE.finditer(self.normalizer.normalize(explanation)):
            letters.update(_LETTER_RE.findall(match.group(1)))
        return letters

    def check(self, item: CandidateItem, index: int) -> Tuple[List[ValidationIssue], List[ValidationIssue]]:
        """
        Run the citation checks on one item.

        Returns:
            (errors, warnings). Option justification is a warning unless
            ``strict_option_justification`` is set.
        """
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []

        if not self.find_articles(item.explanation):
            errors.append(ValidationIssue(
                index, MISSING_ARTICLE,
                'explanation does not cite an article (e.g. "Article 14")',
            ))
        if not self.find_instruments(item.explanation):
            errors.append(ValidationIssue(
                index, MISSING_INSTRUMENT,
                'explanation does not cite the governing law with its number (e.g. "Law 39/2015")',
            ))

        justified = self.referenced_letters(item.explanation) & set(item.incorrect_letters)
        if len(justified) < self.config.min_justified_options:
            issue = ValidationIssue(
                index, UNJUSTIFIED_OPTIONS,
                f"explanation justifies {len(justified)} of 3 incorrect options "
                f"(at least {self.config.min_justified_options} required)",
            )
            (errors if self.config.strict_option_justification else warnings).append(issue)

        return errors, warnings

    def synthesize_fallback(
        self, item: CandidateItem, index: int
    ) -> Optional[Tuple[CandidateItem, ValidationIssue]]:
        """
        Last-resort repair for a missing article or instrument.

        Prepends ``Legal basis: ...`` built from the first article and
        instrument found in the item's source content. Returns None when
        nothing is missing, the fallback is disabled, or the source does not
        provide every missing piece.
        """
        if not self.config.allow_citation_fallback:
            return None

        missing_article = not self.find_articles(item.explanation)
        missing_instrument = not self.find_instruments(item.explanation)
        if not (missing_article or missing_instrument):
            return None

        source_articles = self.find_articles(item.source_context)
        source_instruments = self.find_instruments(item.source_context)
        if (missing_article and not source_articles) or (missing_instrument and not source_instruments):
            return None

        if missing_article and missing_instrument:
            basis = f"Article {source_articles[0]} of {source_instruments[0]}"
        elif missing_article:
            basis = f"Article {source_articles[0]}"
        else:
            basis = source_instruments[0]

        repaired = item.with_explanation(f"{LEGAL_BASIS_PREFIX} {basis}.\n{item.explanation}")
        logger.warning(
            f"Synthesized fallback citation for question {index + 1}: {basis}",
            extra={"extra_fields": {"item_index": index, "repair": CITATION_SYNTHESIZED}},
        )
        warning = ValidationIssue(
            index, CITATION_SYNTHESIZED,
            f"citation synthesized from source content ({basis}); review manually",
        )
        return repaired, warning
