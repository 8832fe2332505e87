"""
Text normalization utilities for content comparison.
"""
import re
import logging
from typing import Set

logger = logging.getLogger(__name__)

# Curly, low-9 and angled quotes all collapse onto the ASCII forms
_DOUBLE_QUOTES = "“”„‟«»″"
_SINGLE_QUOTES = "‘’‚‛‹›"
_QUOTE_TABLE = str.maketrans(
    {**{c: '"' for c in _DOUBLE_QUOTES}, **{c: "'" for c in _SINGLE_QUOTES}}
)

_WHITESPACE_RE = re.compile(r"\s+")
_TOKEN_RE = re.compile(r"\w+")
_OPTION_PREFIX_RE = re.compile(r"^[A-Da-d]\s*[\)\.\-:：]\s*")


class ContentNormalizer:
    """Canonicalize text before any comparison."""

    def normalize(self, text: str) -> str:
        """
        Collapse whitespace runs to one space, trim, and unify quote characters.

        Idempotent: ``normalize(normalize(x)) == normalize(x)``.

        Args:
            text: Text to normalize

        Returns:
            Normalized text
        """
        if not text:
            return ""
        return _WHITESPACE_RE.sub(" ", text.translate(_QUOTE_TABLE)).strip()

    def normalize_for_match(self, text: str) -> str:
        """Normalized text, case-folded. Used for every substring/equality check."""
        return self.normalize(text).casefold()

    def tokenize(self, text: str) -> Set[str]:
        """
        Set of word tokens of the match form.

        Punctuation is not part of any token, so "plazo?" and "plazo" match.
        """
        return set(_TOKEN_RE.findall(self.normalize_for_match(text)))

    def strip_option_prefix(self, option: str) -> str:
        """Remove a leading "A) ", "b. ", "C- " style label from an option."""
        return _OPTION_PREFIX_RE.sub("", self.normalize(option))


_default = ContentNormalizer()


def normalize(text: str) -> str:
    return _default.normalize(text)


def normalize_for_match(text: str) -> str:
    return _default.normalize_for_match(text)
