"""
Value objects for the question QA pipeline.

Everything here is immutable: validators and the retry loop build new
instances instead of mutating shared ones.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from src.core.constants import (
    BATCH_LEVEL,
    BUCKET_FAIR,
    BUCKET_GOOD,
    BUCKET_POOR,
    DIFFICULTIES,
    LETTERS,
)


@dataclass(frozen=True)
class CandidateItem:
    """One generated multiple-choice question under review."""

    prompt_text: str
    """Question stem."""

    options: Tuple[str, str, str, str]
    """Exactly four answer options, in display order A-D."""

    correct_letter: str
    """Letter of the correct option (A, B, C or D)."""

    explanation: str
    """Explanation shown after answering; carries citations and quotes."""

    difficulty: str = "medium"
    """One of easy, medium, hard."""

    source_context: str = ""
    """Grounding content the item was generated from."""

    def __post_init__(self):
        """Enforce item invariants."""
        options = tuple(self.options)
        object.__setattr__(self, "options", options)
        if len(options) != 4:
            raise ValueError(f"Expected exactly 4 options, got {len(options)}")
        if self.correct_letter not in LETTERS:
            raise ValueError(f"Invalid correct letter: {self.correct_letter!r}")
        if not self.explanation or not self.explanation.strip():
            raise ValueError("Explanation must not be empty")
        if self.difficulty not in DIFFICULTIES:
            raise ValueError(f"Invalid difficulty: {self.difficulty!r}")

    @property
    def correct_index(self) -> int:
        return LETTERS.index(self.correct_letter)

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_index]

    @property
    def incorrect_letters(self) -> Tuple[str, ...]:
        return tuple(letter for letter in LETTERS if letter != self.correct_letter)

    def with_explanation(self, explanation: str) -> "CandidateItem":
        return replace(self, explanation=explanation)

    def rotated(self, shift: int) -> "CandidateItem":
        """
        Cyclically rotate the options by ``shift`` positions.

        The option at position ``i`` moves to ``(i + shift) % 4`` and the
        correct letter follows the originally-correct option text.
        """
        shift %= 4
        if shift == 0:
            return self
        new_options = [""] * 4
        for i, option in enumerate(self.options):
            new_options[(i + shift) % 4] = option
        new_letter = LETTERS[(self.correct_index + shift) % 4]
        return replace(self, options=tuple(new_options), correct_letter=new_letter)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prompt_text": self.prompt_text,
            "options": list(self.options),
            "correct_letter": self.correct_letter,
            "explanation": self.explanation,
            "difficulty": self.difficulty,
        }


@dataclass(frozen=True)
class ValidationIssue:
    """A single problem found by a validator. Never silently dropped."""
    item_index: int
    code: str
    message: str

    @property
    def is_batch_level(self) -> bool:
        return self.item_index == BATCH_LEVEL

    def describe(self) -> str:
        """Human-readable form used in feedback and error messages."""
        if self.is_batch_level:
            return f"Batch: {self.message}"
        return f"Question {self.item_index + 1}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {"item_index": self.item_index, "code": self.code, "message": self.message}


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of validating one item after all validators ran."""
    item_index: int
    valid: bool
    score: int
    issues: Tuple[ValidationIssue, ...] = ()
    warnings: Tuple[ValidationIssue, ...] = ()

    @property
    def bucket(self) -> str:
        return bucket_for(self.score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_index": self.item_index,
            "valid": self.valid,
            "score": self.score,
            "bucket": self.bucket,
            "issues": [i.to_dict() for i in self.issues],
            "warnings": [w.to_dict() for w in self.warnings],
        }


def bucket_for(score: int) -> str:
    """Bucket a 0-100 score: critical <40, poor 40-59, fair 60-79, good >=80."""
    if score >= BUCKET_GOOD:
        return "good"
    if score >= BUCKET_FAIR:
        return "fair"
    if score >= BUCKET_POOR:
        return "poor"
    return "critical"


@dataclass(frozen=True)
class BatchReport:
    """Aggregated outcomes for one batch attempt. Read model only."""
    outcomes: Tuple[ValidationOutcome, ...]
    batch_issues: Tuple[ValidationIssue, ...] = ()
    target_count: Optional[int] = None

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def passed(self) -> int:
        return sum(1 for o in self.outcomes if o.valid)

    @property
    def failed(self) -> int:
        return self.total - self.passed

    @property
    def mean_score(self) -> float:
        if not self.outcomes:
            return 0.0
        return sum(o.score for o in self.outcomes) / len(self.outcomes)

    @property
    def buckets(self) -> Dict[str, int]:
        counts = {"critical": 0, "poor": 0, "fair": 0, "good": 0}
        for outcome in self.outcomes:
            counts[outcome.bucket] += 1
        return counts

    @property
    def all_issues(self) -> List[ValidationIssue]:
        """Batch-level issues first, then item errors in item order."""
        issues = list(self.batch_issues)
        for outcome in self.outcomes:
            issues.extend(outcome.issues)
        return issues

    @property
    def all_warnings(self) -> List[ValidationIssue]:
        warnings: List[ValidationIssue] = []
        for outcome in self.outcomes:
            warnings.extend(outcome.warnings)
        return warnings

    def summary(self) -> str:
        """Operator-facing text summary."""
        lines = [
            "VALIDATION REPORT",
            "=================",
            f"Total questions: {self.total}",
            f"Valid: {self.passed}" + (f" ({round(self.passed / self.total * 100)}%)" if self.total else ""),
            f"Invalid: {self.failed}",
            f"Mean score: {round(self.mean_score)}/100",
            "Buckets: " + ", ".join(f"{name}={count}" for name, count in self.buckets.items()),
        ]
        for issue in self.batch_issues:
            lines.append(f"  - {issue.describe()}")
        for outcome in self.outcomes:
            if not outcome.valid:
                errors = ", ".join(i.message for i in outcome.issues) or "score below threshold"
                lines.append(f"  - Question {outcome.item_index + 1}: score {outcome.score}/100 ({errors})")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "mean_score": round(self.mean_score, 2),
            "buckets": self.buckets,
            "batch_issues": [i.to_dict() for i in self.batch_issues],
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


@dataclass(frozen=True)
class RetryState:
    """
    Per-attempt state of the retry loop.

    Each failed attempt produces a new RetryState via ``advance``; feedback
    never leaks through shared mutable buffers.
    """
    attempt: int
    max_attempts: int
    temperature: float
    accumulated_feedback: str = ""
    feedback_lines: Tuple[str, ...] = ()
    history: Tuple[ValidationIssue, ...] = ()

    @classmethod
    def initial(cls, config) -> "RetryState":
        return cls(
            attempt=1,
            max_attempts=config.max_attempts,
            temperature=config.temperature_for(1),
        )

    @property
    def exhausted(self) -> bool:
        return self.attempt > self.max_attempts

    def advance(self, config, new_lines: List[str], issues: List[ValidationIssue]) -> "RetryState":
        """
        State for the next attempt.

        The newest feedback lines come first; lines from earlier attempts are
        kept after them when not repeated, and the total is capped so prompts
        stay bounded.
        """
        merged: List[str] = []
        for line in list(new_lines) + list(self.feedback_lines):
            if line not in merged:
                merged.append(line)
        merged = merged[:config.max_feedback_issues]

        next_attempt = self.attempt + 1
        return replace(
            self,
            attempt=next_attempt,
            temperature=config.temperature_for(next_attempt),
            accumulated_feedback="\n".join(f"- {line}" for line in merged),
            feedback_lines=tuple(merged),
            history=self.history + tuple(issues),
        )


@dataclass(frozen=True)
class GenerationRequest:
    """One topic to generate a batch for."""
    topic_id: str
    topic_title: str
    source_context: str
    existing_questions: Tuple[str, ...] = ()
    count: Optional[int] = None
    description: str = ""


@dataclass(frozen=True)
class Rotation:
    """Record of one correctness-preserving relabel performed by the rebalancer."""
    index: int
    from_letter: str
    to_letter: str
    shift: int


@dataclass
class GenerationResult:
    """Accepted, rebalanced batch returned by the retry loop."""
    items: List[CandidateItem]
    report: BatchReport
    attempts: int
    rotations: List[Rotation] = field(default_factory=list)
    mandatory_quotes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "attempts": self.attempts,
            "rotations": [vars(r) for r in self.rotations],
            "mandatory_quotes": list(self.mandatory_quotes),
            "report": self.report.to_dict(),
        }
