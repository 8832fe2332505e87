"""
Configuration settings for the application.
"""
from dataclasses import dataclass
from pydantic_settings import BaseSettings
from typing import Optional, List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Key Authentication
    API_KEY: Optional[str] = None  # Required for production - set in environment or .env file
    REQUIRE_API_KEY: bool = True  # Set to False to disable API key authentication (not recommended for production)

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # Options: "text", "json"
    LOG_INCLUDE_REQUEST_ID: bool = True  # Include X-Request-ID in logs

    # HTTP Client Configuration
    HTTP_CLIENT_TIMEOUT: float = 120.0  # Default timeout for HTTP clients (seconds)
    HTTP_MAX_KEEPALIVE_CONNECTIONS: int = 10
    HTTP_MAX_CONNECTIONS: int = 20
    HTTP_RETRY_STATUSES: tuple[int, ...] = (429, 500, 502, 503, 504)

    # Performance Monitoring
    RESPONSE_TIME_WARNING_THRESHOLD_MS: int = 120000  # Generation runs are slow; warn above 2 minutes

    # Generator Configuration
    # Options: "groq" (OpenAI-compatible REST over httpx), "openai" (official SDK)
    GENERATOR_PROVIDER: str = "groq"
    GROQ_API_KEY: Optional[str] = None
    GROQ_API_URL: str = "https://api.groq.com/openai/v1/chat/completions"
    GROQ_MODEL: str = "llama-3.3-70b-versatile"
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: Optional[str] = None  # Leave unset for api.openai.com
    OPENAI_MODEL: str = "gpt-4o-mini"

    # Transport-level retries (independent of the semantic retry loop)
    GENERATOR_TIMEOUT_SECONDS: float = 60.0  # A call running longer is cancelled and treated as transient
    GENERATOR_TRANSIENT_ATTEMPTS: int = 3
    GENERATOR_BACKOFF_SECONDS: float = 2.0  # Base for exponential backoff
    GENERATOR_MAX_OUTPUT_TOKENS: int = 8000
    GENERATOR_MIN_REQUEST_INTERVAL: float = 1.0  # Minimum seconds between generator calls
    TOPIC_DELAY_SECONDS: float = 2.0  # Pause between topics in bulk runs

    # Question QA thresholds
    QA_BATCH_SIZE: int = 15
    QA_MAX_ATTEMPTS: int = 3
    QA_TEMPERATURE_SCHEDULE: str = "0.7,0.5,0.3"  # Attempt 1 warmer, later attempts cooler
    QA_SIMILARITY_THRESHOLD: float = 0.70  # Token Jaccard at or above this = duplicate
    QA_MAX_RUN: int = 2  # Longest allowed run of the same correct letter
    QA_MIN_DISTINCT_LETTERS: int = 3
    QA_MIN_SCORE: int = 60
    QA_QUOTE_MIN_LENGTH: int = 15
    QA_QUOTE_MAX_LENGTH: int = 400
    QA_MANDATORY_QUOTES: int = 3
    QA_MIN_JUSTIFIED_OPTIONS: int = 2  # Out of the three incorrect options
    QA_STRICT_OPTION_JUSTIFICATION: bool = False  # True turns the option check into a hard failure
    QA_ALLOW_CITATION_FALLBACK: bool = False  # Synthesized citations on the final attempt only
    QA_MAX_FEEDBACK_ISSUES: int = 20
    QA_MIN_PROMPT_LENGTH: int = 20
    QA_MIN_EXPLANATION_LENGTH: int = 100
    QA_MAX_REBALANCE_ITERATIONS: int = 100

    @property
    def temperature_schedule(self) -> List[float]:
        """Parse comma-separated temperature schedule into list."""
        return [float(t.strip()) for t in self.QA_TEMPERATURE_SCHEDULE.split(',') if t.strip()]

    # Prompts sent to the generator
    QUESTION_SYSTEM_PROMPT: str = """You are an expert author of official civil-service exam questions. Your questions are rigorous, professional and strictly based on the legal source material you are given. Always answer with valid, well-formed JSON and nothing else."""

    QUESTION_USER_PROMPT_TEMPLATE: str = """Generate exactly {count} multiple-choice questions for the following topic.

TOPIC: {topic_title}
{topic_description}

SOURCE MATERIAL (the only source you may use):
{source_excerpt}

MANDATORY REQUIREMENTS:
1. Exactly 4 options per question and exactly one correct option.
2. Every explanation must cite the article ("Article X" or "Article X.Y") AND the governing instrument with its number (e.g. "Law 39/2015", "Royal Legislative Decree 8/2015").
3. Every explanation must include at least one literal quotation of the source material between double quotes. Copy the words exactly; never invent legal text.
4. Every explanation must say why the correct option is right and why each of the other options (e.g. "Option B is incorrect because...") is wrong.
5. Vary the position of the correct answer; never use the same letter more than twice in a row.
6. Difficulty distribution: 40% easy, 40% medium, 20% hard.
{mandatory_quotes_section}{existing_questions_section}
Answer ONLY with a JSON array of this exact shape:
[
  {{
    "question": "Question text ending with a question mark?",
    "options": ["Option A", "Option B", "Option C", "Option D"],
    "correctAnswer": "A",
    "explanation": "Article X of Law N/YYYY states: \\"literal quote\\". Option A is correct because... Option B is incorrect because... Option C is incorrect because... Option D is incorrect because...",
    "difficulty": "medium"
  }}
]"""

    MALFORMED_OUTPUT_FEEDBACK: str = """Your previous answer could not be parsed. Answer ONLY with a JSON array of objects, each with exactly the keys "question", "options" (array of 4 strings), "correctAnswer" ("A", "B", "C" or "D"), "explanation" and "difficulty" ("easy", "medium" or "hard"). Do not add any text before or after the JSON."""

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Allow extra fields in .env for backward compatibility


settings = Settings()


@dataclass(frozen=True)
class QAConfig:
    """Thresholds for the question QA pipeline.

    Passed explicitly to every validator so tests can vary them without
    touching the process-wide settings.
    """
    batch_size: int = 15
    max_attempts: int = 3
    temperature_schedule: tuple[float, ...] = (0.7, 0.5, 0.3)
    similarity_threshold: float = 0.70
    max_run: int = 2
    min_distinct_letters: int = 3
    min_score: int = 60
    quote_min_length: int = 15
    quote_max_length: int = 400
    mandatory_quotes: int = 3
    min_justified_options: int = 2
    strict_option_justification: bool = False
    allow_citation_fallback: bool = False
    max_feedback_issues: int = 20
    min_prompt_length: int = 20
    min_explanation_length: int = 100
    max_rebalance_iterations: int = 100

    def temperature_for(self, attempt: int) -> float:
        """Temperature for a 1-based attempt; the last entry repeats."""
        if not self.temperature_schedule:
            return 0.7
        index = min(max(attempt, 1), len(self.temperature_schedule)) - 1
        return self.temperature_schedule[index]

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> "QAConfig":
        source = source or settings
        return cls(
            batch_size=source.QA_BATCH_SIZE,
            max_attempts=source.QA_MAX_ATTEMPTS,
            temperature_schedule=tuple(source.temperature_schedule),
            similarity_threshold=source.QA_SIMILARITY_THRESHOLD,
            max_run=source.QA_MAX_RUN,
            min_distinct_letters=source.QA_MIN_DISTINCT_LETTERS,
            min_score=source.QA_MIN_SCORE,
            quote_min_length=source.QA_QUOTE_MIN_LENGTH,
            quote_max_length=source.QA_QUOTE_MAX_LENGTH,
            mandatory_quotes=source.QA_MANDATORY_QUOTES,
            min_justified_options=source.QA_MIN_JUSTIFIED_OPTIONS,
            strict_option_justification=source.QA_STRICT_OPTION_JUSTIFICATION,
            allow_citation_fallback=source.QA_ALLOW_CITATION_FALLBACK,
            max_feedback_issues=source.QA_MAX_FEEDBACK_ISSUES,
            min_prompt_length=source.QA_MIN_PROMPT_LENGTH,
            min_explanation_length=source.QA_MIN_EXPLANATION_LENGTH,
            max_rebalance_iterations=source.QA_MAX_REBALANCE_ITERATIONS,
        )
