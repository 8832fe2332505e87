"""
Pydantic models for raw question records returned by the generator.

Generators are inconsistent about key names, option labels and answer
formats; these models absorb that variance before validation.
"""
import re
from typing import Any, List, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from src.core.constants import LETTERS
from src.models.question_models import CandidateItem

_OPTION_PREFIX_RE = re.compile(r"^\s*[A-Da-d]\s*[\)\.\-:：]\s*")
_LETTER_ANSWER_RE = re.compile(r"^([A-Da-d])(?:\s*[\)\.\-:：].*)?$", re.DOTALL)

_EASY_LABELS = {"easy", "facil", "fácil", "baja", "bajo", "low", "basic"}
_HARD_LABELS = {"hard", "dificil", "difícil", "alta", "alto", "high", "advanced"}


def normalize_difficulty(label: Optional[str]) -> str:
    """Map a free-form difficulty label onto easy / medium / hard."""
    key = (label or "").strip().lower()
    if key in _EASY_LABELS:
        return "easy"
    if key in _HARD_LABELS:
        return "hard"
    return "medium"


def _match_key(text: str) -> str:
    return " ".join(_OPTION_PREFIX_RE.sub("", text).split()).casefold()


class RawQuestionRecord(BaseModel):
    """One record as emitted by the generator, with tolerated key aliases."""

    question: str = Field(
        ...,
        validation_alias=AliasChoices("question", "pregunta", "questionText", "text"),
        description="Question stem",
    )
    options: List[str] = Field(
        ...,
        validation_alias=AliasChoices("options", "opciones", "choices"),
        description="Exactly four answer options",
    )
    correct_answer: Union[str, int] = Field(
        ...,
        validation_alias=AliasChoices(
            "correctAnswer", "respuestaCorrecta", "correctIndex", "correctLetter", "correct", "answer"
        ),
        description="Letter, 0-based index or text of the correct option",
    )
    explanation: str = Field(
        ...,
        validation_alias=AliasChoices("explanation", "explicacion", "explicación", "explanationText"),
        description="Explanation with citations and quotes",
    )
    difficulty: str = Field(
        default="medium",
        validation_alias=AliasChoices("difficulty", "dificultad", "difficultyLabel"),
        description="Difficulty label in any tolerated spelling",
    )

    model_config = {"extra": "ignore"}

    @field_validator("question", "explanation")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("options", mode="before")
    @classmethod
    def coerce_options(cls, v: Any) -> Any:
        """Accept {"A": ..., "B": ...} objects as well as arrays."""
        if isinstance(v, dict):
            return [v[key] for key in sorted(v, key=lambda k: str(k).upper())]
        return v

    @field_validator("options")
    @classmethod
    def validate_options(cls, v: List[str]) -> List[str]:
        """Exactly four options, label prefixes such as "A) " removed."""
        if len(v) != 4:
            raise ValueError(f"expected exactly 4 options, got {len(v)}")
        return [_OPTION_PREFIX_RE.sub("", option).strip() for option in v]

    @field_validator("correct_answer", mode="before")
    @classmethod
    def coerce_correct_answer(cls, v: Any) -> Union[str, int]:
        """Map a 0-based index or a letter ("b", "B)") onto A-D."""
        if isinstance(v, bool):
            raise ValueError("correct answer must be a letter or an index")
        if isinstance(v, int):
            if 0 <= v < len(LETTERS):
                return LETTERS[v]
            raise ValueError(f"correct answer index out of range: {v}")
        if isinstance(v, str):
            text = v.strip()
            if text.isdigit():
                return cls.coerce_correct_answer(int(text))
            match = _LETTER_ANSWER_RE.match(text)
            if match:
                return match.group(1).upper()
            if text:
                return text  # option text; resolved once options are known
        raise ValueError("correct answer is missing")

    @field_validator("difficulty", mode="before")
    @classmethod
    def coerce_difficulty(cls, v: Any) -> str:
        return normalize_difficulty(v if isinstance(v, str) else None)

    @model_validator(mode="after")
    def resolve_answer_text(self) -> "RawQuestionRecord":
        """A correct answer given as option text becomes that option's letter."""
        if self.correct_answer in LETTERS:
            return self
        key = _match_key(str(self.correct_answer))
        for letter, option in zip(LETTERS, self.options):
            if _match_key(option) == key:
                self.correct_answer = letter
                return self
        raise ValueError(f"correct answer {self.correct_answer!r} does not match any option")

    def to_candidate(self, source_context: str) -> CandidateItem:
        return CandidateItem(
            prompt_text=self.question,
            options=tuple(self.options),
            correct_letter=str(self.correct_answer),
            explanation=self.explanation,
            difficulty=self.difficulty,
            source_context=source_context,
        )
