"""
External collaborators of the pipeline: where existing questions come from
and where accepted questions go.
"""
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Sequence, Union

from src.models.question_models import CandidateItem

logger = logging.getLogger(__name__)


class CorpusSource(ABC):
    """Existing question texts per topic, used for deduplication."""

    @abstractmethod
    async def existing_questions(self, topic_id: str) -> List[str]:
        pass


class QuestionSink(ABC):
    """Accepts fully validated, rebalanced batches only."""

    @abstractmethod
    async def save(self, topic_id: str, items: Sequence[CandidateItem]) -> None:
        pass


class InMemoryQuestionStore(CorpusSource, QuestionSink):
    """Corpus and sink in one; questions saved for a topic join its corpus."""

    def __init__(self, initial: Dict[str, List[str]] = None):
        self._corpus: Dict[str, List[str]] = {k: list(v) for k, v in (initial or {}).items()}
        self.saved: Dict[str, List[CandidateItem]] = {}

    async def existing_questions(self, topic_id: str) -> List[str]:
        return list(self._corpus.get(topic_id, []))

    async def save(self, topic_id: str, items: Sequence[CandidateItem]) -> None:
        self.saved.setdefault(topic_id, []).extend(items)
        self._corpus.setdefault(topic_id, []).extend(item.prompt_text for item in items)
        logger.info(f"Stored {len(items)} questions for topic {topic_id}")


class JsonFileQuestionStore(InMemoryQuestionStore):
    """
    InMemoryQuestionStore persisted to a JSON file of the form
    ``{"<topic_id>": [<question dict>, ...]}``.
    """

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)
        self._stored: Dict[str, List[dict]] = {}
        if self.path.exists():
            self._stored = json.loads(self.path.read_text(encoding="utf-8"))
            for topic_id, questions in self._stored.items():
                self._corpus[topic_id] = [q["prompt_text"] for q in questions if q.get("prompt_text")]
            logger.info(f"Loaded corpus for {len(self._stored)} topic(s) from {self.path}")

    async def save(self, topic_id: str, items: Sequence[CandidateItem]) -> None:
        await super().save(topic_id, items)
        self._stored.setdefault(topic_id, []).extend(item.to_dict() for item in items)
        payload = json.dumps(self._stored, ensure_ascii=False, indent=2)
        await asyncio.to_thread(self.path.write_text, payload, encoding="utf-8")
