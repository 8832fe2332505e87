"""
Shared fixtures for the question pipeline tests.
"""
import json
from typing import List, Optional, Sequence

from src.core.config import QAConfig
from src.models.question_models import CandidateItem
from src.services.clients.base_client import BaseQuestionGenerator, GeneratorRequest

QUOTE = (
    "La Administración está obligada a dictar resolución expresa y a notificarla "
    "en todos los procedimientos cualquiera que sea su forma de iniciación."
)

SOURCE = (
    "Artículo 21. Obligación de resolver.\n"
    f"1. {QUOTE}\n"
    "2. El plazo máximo en el que debe notificarse la resolución expresa será el fijado "
    "por la norma reguladora del correspondiente procedimiento.\n"
    "Este plazo no podrá exceder de seis meses salvo que una norma con rango de Ley establezca uno mayor.\n"
    "Ley 39/2015, de 1 de octubre, del Procedimiento Administrativo Común de las Administraciones Públicas."
)

# Same rules without any article or numbered instrument
SOURCE_WITHOUT_CITATIONS = (
    f"{QUOTE}\n"
    "El plazo máximo en el que debe notificarse la resolución expresa será el fijado "
    "por la norma reguladora del correspondiente procedimiento."
)

STEMS = [
    "What obligation does Article 21 impose on the public administration?",
    "Which document establishes the maximum period for notifying a resolution?",
    "How long may the maximum resolution period last by default?",
    "Under which rank of norm can a longer deadline be established?",
    "When must the administration issue an express resolution?",
    "Who is obliged to notify express resolutions to interested parties?",
    "Which law regulates the common administrative procedure?",
    "On what date was Law 39/2015 approved?",
    "What happens regardless of how the procedure was initiated?",
    "Which regulation fixes the deadline for each specific procedure?",
    "What upper limit applies to notification periods in general?",
    "Which public bodies fall within the scope of this law?",
    "What kind of resolution must the administration dictate?",
    "In which procedures does the duty to resolve apply?",
    "What exception allows exceeding the six month limit?",
]

OPTIONS_JUSTIFICATION = (
    "Options A, B, C and D were compared with the text: the incorrect options "
    "change the subject, the deadline or the duty."
)

GOOD_EXPLANATION = f'Article 21 of Law 39/2015 states: "{QUOTE}". {OPTIONS_JUSTIFICATION}'
UNCITED_EXPLANATION = f'The source states: "{QUOTE}". {OPTIONS_JUSTIFICATION}'


def make_options(n: int) -> tuple:
    return (
        f"First answer for question {n}",
        f"Second answer for question {n}",
        f"Third answer for question {n}",
        f"Fourth answer for question {n}",
    )


def make_item(
    n: int = 0,
    letter: str = "A",
    explanation: str = GOOD_EXPLANATION,
    source: str = SOURCE,
    prompt: Optional[str] = None,
    options: Optional[Sequence[str]] = None,
) -> CandidateItem:
    return CandidateItem(
        prompt_text=prompt if prompt is not None else STEMS[n % len(STEMS)],
        options=tuple(options) if options is not None else make_options(n),
        correct_letter=letter,
        explanation=explanation,
        difficulty="medium",
        source_context=source,
    )


def make_batch(letters: str, explanation: str = GOOD_EXPLANATION, source: str = SOURCE) -> List[CandidateItem]:
    return [make_item(i, letter, explanation, source) for i, letter in enumerate(letters)]


def to_record(item: CandidateItem) -> dict:
    """The item as a generator would emit it."""
    return {
        "question": item.prompt_text,
        "options": list(item.options),
        "correctAnswer": item.correct_letter,
        "explanation": item.explanation,
        "difficulty": item.difficulty,
    }


def batch_json(letters: str, explanation: str = GOOD_EXPLANATION) -> str:
    return json.dumps([to_record(item) for item in make_batch(letters, explanation)], ensure_ascii=False)


def qa_config(**overrides) -> QAConfig:
    return QAConfig(**overrides)


class FakeGenerator(BaseQuestionGenerator):
    """Replays scripted responses; an Exception instance in the script is raised."""

    provider_name = "fake"

    def __init__(self, responses: Sequence):
        super().__init__(api_key="test-key", model="fake-model")
        self.responses = list(responses)
        self.requests: List[GeneratorRequest] = []

    def _validate_credentials(self) -> None:
        pass

    async def generate(self, request: GeneratorRequest) -> str:
        self.requests.append(request)
        response = self.responses[min(len(self.requests), len(self.responses)) - 1]
        if isinstance(response, Exception):
            raise response
        return response

    async def health_check(self) -> bool:
        return True


def letters_of(items: Sequence[CandidateItem]) -> str:
    return "".join(item.correct_letter for item in items)

