"""
Near-duplicate detection for generated questions.

Token-set Jaccard similarity against the existing corpus of the topic and
against the items already kept from the same batch.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set

from src.core.config import QAConfig
from src.models.question_models import CandidateItem
from .content_normalizer import ContentNormalizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DroppedItem:
    """Audit record for one dropped candidate."""
    index: int
    item: CandidateItem
    matched_text: str
    source: str  # "corpus" or "batch"
    similarity: float


@dataclass
class DeduplicationResult:
    kept: List[CandidateItem] = field(default_factory=list)
    kept_indices: List[int] = field(default_factory=list)
    dropped: List[DroppedItem] = field(default_factory=list)

    @property
    def dropped_indices(self) -> Set[int]:
        return {d.index for d in self.dropped}


class Deduplicator:
    """Drop candidates whose stem is too similar to a known question."""

    def __init__(self, config: QAConfig, normalizer: Optional[ContentNormalizer] = None):
        self.config = config
        self.normalizer = normalizer or ContentNormalizer()

    @staticmethod
    def jaccard(tokens1: Set[str], tokens2: Set[str]) -> float:
        """
        |A & B| / |A | B|.

        Empty token sets never count as similar to anything.
        """
        if not tokens1 or not tokens2:
            return 0.0
        return len(tokens1 & tokens2) / len(tokens1 | tokens2)

    def similarity(self, text1: str, text2: str) -> float:
        """Jaccard over word tokens; an exact normalized match scores 1.0."""
        match1 = self.normalizer.normalize_for_match(text1)
        match2 = self.normalizer.normalize_for_match(text2)
        if match1 and match1 == match2:
            return 1.0
        return self.jaccard(self.normalizer.tokenize(text1), self.normalizer.tokenize(text2))

    def is_duplicate(self, similarity: float) -> bool:
        return similarity >= self.config.similarity_threshold

    def _best_match(self, text: str, candidates: Sequence[str]):
        """First candidate at or above the threshold, with its score."""
        for other in candidates:
            score = self.similarity(text, other)
            if self.is_duplicate(score):
                return other, score
        return None, 0.0

    def filter_batch(
        self,
        items: Sequence[CandidateItem],
        corpus: Sequence[str] = (),
        indices: Optional[Sequence[int]] = None,
    ) -> DeduplicationResult:
        """
        Split a batch into kept and dropped items.

        Each candidate is compared with the corpus first, then with the
        earlier kept items of the same batch. First seen wins, so of two
        similar batch items the later one is dropped.

        Args:
            items: Candidates in batch order
            corpus: Existing question texts for the topic
            indices: Batch positions of ``items`` (defaults to 0..n-1)

        Returns:
            DeduplicationResult with kept items in original order
        """
        positions = list(indices) if indices is not None else list(range(len(items)))
        corpus_list = [text for text in corpus if text]
        result = DeduplicationResult()

        for position, item in zip(positions, items):
            matched, score = self._best_match(item.prompt_text, corpus_list)
            source = "corpus"
            if matched is None:
                matched, score = self._best_match(item.prompt_text, [k.prompt_text for k in result.kept])
                source = "batch"

            if matched is not None:
                result.dropped.append(DroppedItem(position, item, matched, source, score))
                logger.info(
                    f"Dropped duplicate question {position + 1} ({source}, similarity {score:.2f})",
                    extra={"extra_fields": {"item_index": position, "dedup_source": source}},
                )
                continue

            result.kept.append(item)
            result.kept_indices.append(position)

        if result.dropped:
            logger.info(f"Deduplication kept {len(result.kept)}/{len(positions)} questions")
        return result
