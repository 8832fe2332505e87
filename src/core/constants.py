"""
Shared constants for question QA.

This module consolidates constants used across the codebase to ensure
consistency and make it easier to modify common values.
"""

# Answer letters
LETTERS = ("A", "B", "C", "D")
DIFFICULTIES = ("easy", "medium", "hard")

# Issue index for problems that belong to the whole batch rather than one item
BATCH_LEVEL = -1

# Issue codes
MALFORMED_STRUCTURE = "malformed_structure"
MALFORMED_OUTPUT = "malformed_output"
BATCH_TOO_SMALL = "batch_too_small"
GENERATOR_UNAVAILABLE = "generator_unavailable"
DUPLICATE = "duplicate"
UNGROUNDED_QUOTE = "ungrounded_quote"
MANDATORY_QUOTE_MISSING = "mandatory_quote_missing"
QUOTE_REPAIRED = "quote_repaired"
MISSING_ARTICLE = "missing_article"
MISSING_INSTRUMENT = "missing_instrument"
UNJUSTIFIED_OPTIONS = "unjustified_options"
CITATION_SYNTHESIZED = "citation_synthesized"
SHORT_PROMPT = "short_prompt"
SHORT_EXPLANATION = "short_explanation"
EMPTY_OPTION = "empty_option"
DUPLICATE_OPTIONS = "duplicate_options"
UNBALANCED_OPTIONS = "unbalanced_options"
NEGATIVE_PHRASING = "negative_phrasing"
MISSING_QUESTION_MARK = "missing_question_mark"

# Score penalties per issue code (score starts at 100, clamped to [0, 100])
ISSUE_PENALTIES = {
    MALFORMED_STRUCTURE: 100,
    DUPLICATE: 100,
    UNGROUNDED_QUOTE: 30,
    MANDATORY_QUOTE_MISSING: 20,
    MISSING_ARTICLE: 25,
    MISSING_INSTRUMENT: 25,
    SHORT_PROMPT: 30,
    SHORT_EXPLANATION: 30,
    EMPTY_OPTION: 15,
    DUPLICATE_OPTIONS: 20,
    UNJUSTIFIED_OPTIONS: 10,
    CITATION_SYNTHESIZED: 10,
    QUOTE_REPAIRED: 5,
    UNBALANCED_OPTIONS: 5,
    NEGATIVE_PHRASING: 5,
    MISSING_QUESTION_MARK: 2,
}

# Score buckets (lower bound inclusive)
BUCKET_GOOD = 80
BUCKET_FAIR = 60
BUCKET_POOR = 40

# Prompt shaping
MAX_EXISTING_QUESTIONS_IN_PROMPT = 50
MAX_SOURCE_EXCERPT_CHARS = 8000
FEEDBACK_PREVIEW_ISSUES = 5  # Issues shown in "generation failed: ..." messages

# Line prepended by the quote repair step
QUOTED_SOURCE_PREFIX = "Quoted source:"
LEGAL_BASIS_PREFIX = "Legal basis:"
