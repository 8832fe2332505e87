"""
Pydantic models for API request and response structures.
"""
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Dict, Any
from datetime import datetime

from src.core.constants import DIFFICULTIES, LETTERS
from src.models.question_models import CandidateItem, GenerationRequest


class QuestionPayload(BaseModel):
    """A multiple-choice question as exchanged over the API."""

    prompt_text: str = Field(..., description="Question stem")
    options: List[str] = Field(..., min_length=4, max_length=4, description="Exactly four options, A-D")
    correct_letter: str = Field(..., description="Letter of the correct option (A, B, C or D)")
    explanation: str = Field(..., description="Explanation citing article, instrument and a literal quote")
    difficulty: str = Field(default="medium", description="easy, medium or hard")
    source_context: Optional[str] = Field(
        default=None,
        description="Source content for grounding. Falls back to the request-level source_context."
    )

    @field_validator('correct_letter')
    @classmethod
    def validate_correct_letter(cls, v: str) -> str:
        """Validate correct letter is one of A-D."""
        letter = v.strip().upper()
        if letter not in LETTERS:
            raise ValueError(f"correct_letter must be one of: {', '.join(LETTERS)}")
        return letter

    @field_validator('explanation')
    @classmethod
    def validate_explanation(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("explanation cannot be empty")
        return v

    @field_validator('difficulty')
    @classmethod
    def validate_difficulty(cls, v: str) -> str:
        if v.lower() not in DIFFICULTIES:
            raise ValueError(f"difficulty must be one of: {', '.join(DIFFICULTIES)}")
        return v.lower()

    def to_candidate(self, default_source: str = "") -> CandidateItem:
        return CandidateItem(
            prompt_text=self.prompt_text,
            options=tuple(self.options),
            correct_letter=self.correct_letter,
            explanation=self.explanation,
            difficulty=self.difficulty,
            source_context=self.source_context if self.source_context is not None else default_source,
        )

    @classmethod
    def from_candidate(cls, item: CandidateItem) -> "QuestionPayload":
        return cls(
            prompt_text=item.prompt_text,
            options=list(item.options),
            correct_letter=item.correct_letter,
            explanation=item.explanation,
            difficulty=item.difficulty,
        )


class GenerateQuestionsRequest(BaseModel):
    """Request model for generating one validated batch for a topic."""

    topic_id: str = Field(..., description="Topic/category identifier used for the corpus lookup")
    topic_title: str = Field(..., description="Human-readable topic title")
    source_context: str = Field(..., description="Base content the questions must be grounded in")
    description: str = Field(default="", description="Optional topic description")
    existing_questions: List[str] = Field(
        default_factory=list,
        description="Known question texts to avoid, in addition to the stored corpus"
    )
    count: Optional[int] = Field(
        default=None, ge=1, le=50,
        description="Number of questions required. Defaults to QA_BATCH_SIZE."
    )

    @field_validator('source_context')
    @classmethod
    def validate_source_context(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("source_context cannot be empty")
        return v

    def to_generation_request(self) -> GenerationRequest:
        return GenerationRequest(
            topic_id=self.topic_id,
            topic_title=self.topic_title,
            source_context=self.source_context,
            existing_questions=tuple(self.existing_questions),
            count=self.count,
            description=self.description,
        )

    model_config = {
        "json_schema_extra": {
            "example": {
                "topic_id": "tema-12",
                "topic_title": "Procedimiento administrativo común",
                "source_context": "Artículo 21. Obligación de resolver. 1. La Administración está obligada a dictar resolución expresa...",
                "description": "Ley 39/2015, de 1 de octubre",
                "count": 15
            }
        }
    }


class RotationPayload(BaseModel):
    index: int
    from_letter: str
    to_letter: str
    shift: int


class GenerateQuestionsResponse(BaseModel):
    """Response model for an accepted, rebalanced batch."""

    topic_id: str = Field(..., description="Topic identifier from the request")
    request_time: datetime = Field(..., description="When the request was received")
    timestamp: datetime = Field(..., description="When processing completed")
    attempts: int = Field(..., description="Generator attempts used")
    questions: List[QuestionPayload] = Field(..., description="Accepted questions in batch order")
    rotations: List[RotationPayload] = Field(default_factory=list, description="Relabels applied by the rebalancer")
    mandatory_quotes: List[str] = Field(default_factory=list, description="Quotes selected from the source content")
    report: Dict[str, Any] = Field(..., description="Validation report of the accepted attempt")


class ValidateQuestionsRequest(BaseModel):
    """Request model for batch QA over existing questions."""

    questions: List[QuestionPayload] = Field(..., min_length=1, description="Questions to validate")
    source_context: str = Field(default="", description="Default grounding content for every question")
    corpus: List[str] = Field(default_factory=list, description="Existing question texts for deduplication")
    mandatory_quotes: Optional[List[str]] = Field(
        default=None,
        description="Mandatory quotes. None selects them from source_context; [] disables the requirement."
    )
    rebalance: bool = Field(default=False, description="Rebalance correct letters when the batch passes")


class DroppedPayload(BaseModel):
    index: int
    matched_text: str
    source: str
    similarity: float


class ValidateQuestionsResponse(BaseModel):
    """Response model for batch QA."""

    valid: bool = Field(..., description="True when every question passed")
    questions: List[QuestionPayload] = Field(..., description="Questions after repairs (and rebalancing, if requested)")
    rotations: List[RotationPayload] = Field(default_factory=list)
    dropped: List[DroppedPayload] = Field(default_factory=list, description="Near-duplicates found")
    report: Dict[str, Any] = Field(..., description="Per-question outcomes, buckets and totals")
    summary: str = Field(..., description="Operator-facing text summary")
