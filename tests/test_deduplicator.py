"""
Unit tests for near-duplicate detection.
"""
import unittest

from src.core.config import QAConfig
from src.services.validation.deduplicator import Deduplicator
from tests.support import make_item


def words(start: int, stop: int) -> str:
    return " ".join(f"word{i}" for i in range(start, stop))


class TestSimilarity(unittest.TestCase):
    """Test cases for the similarity measure."""

    def setUp(self):
        """Set up test fixtures."""
        self.dedup = Deduplicator(QAConfig())

    def test_jaccard(self):
        self.assertAlmostEqual(self.dedup.jaccard({"a", "b", "c"}, {"b", "c", "d"}), 0.5)

    def test_empty_token_sets_are_never_similar(self):
        self.assertEqual(self.dedup.jaccard(set(), set()), 0.0)
        self.assertEqual(self.dedup.similarity("", ""), 0.0)
        self.assertEqual(self.dedup.similarity("?!", "¿?"), 0.0)

    def test_exact_normalized_match_is_one(self):
        self.assertEqual(self.dedup.similarity("¿Cuál es el plazo?", "  ¿CUÁL es   el plazo? "), 1.0)

    def test_similarity_is_symmetric(self):
        a = "What is the maximum period for notifying"
        b = "What is the period for resolving"
        self.assertEqual(self.dedup.similarity(a, b), self.dedup.similarity(b, a))


class TestFilterBatch(unittest.TestCase):
    """Test cases for Deduplicator.filter_batch."""

    def setUp(self):
        """Set up test fixtures."""
        self.dedup = Deduplicator(QAConfig())

    def test_threshold_is_inclusive(self):
        """Similarity exactly 0.70 (7 shared of 10) drops the second item."""
        first = make_item(0, prompt=words(0, 10))
        second = make_item(1, prompt=words(0, 7))
        self.assertAlmostEqual(self.dedup.similarity(first.prompt_text, second.prompt_text), 0.70)

        result = self.dedup.filter_batch([first, second])

        self.assertEqual(result.kept, [first])
        self.assertEqual(len(result.dropped), 1)
        self.assertEqual(result.dropped[0].index, 1)
        self.assertEqual(result.dropped[0].source, "batch")

    def test_below_threshold_keeps_both(self):
        """Similarity 0.69 (69 shared of 100) keeps both items."""
        first = make_item(0, prompt=words(0, 100))
        second = make_item(1, prompt=words(0, 69))
        self.assertAlmostEqual(self.dedup.similarity(first.prompt_text, second.prompt_text), 0.69)

        result = self.dedup.filter_batch([first, second])

        self.assertEqual(result.kept, [first, second])
        self.assertEqual(result.dropped, [])

    def test_corpus_match_is_reported_with_source(self):
        item = make_item(0, prompt="¿Cuál es el plazo máximo para resolver?")
        corpus = ["Otra pregunta distinta", "¿cuál es el plazo máximo para resolver?"]

        result = self.dedup.filter_batch([item], corpus)

        self.assertEqual(result.kept, [])
        dropped = result.dropped[0]
        self.assertEqual(dropped.source, "corpus")
        self.assertEqual(dropped.similarity, 1.0)
        self.assertEqual(dropped.matched_text, corpus[1])

    def test_first_seen_wins_within_batch(self):
        a = make_item(0, prompt="Which body must notify the express resolution?")
        b = make_item(1, prompt="What is the six month limit?")
        c = make_item(2, prompt="Which body must notify the express resolution")

        result = self.dedup.filter_batch([a, b, c])

        self.assertEqual(result.kept, [a, b])
        self.assertEqual(result.kept_indices, [0, 1])
        self.assertEqual(result.dropped_indices, {2})

    def test_dropped_items_are_not_compared_against(self):
        """Only kept items count as earlier batch members."""
        corpus = [words(0, 10)]
        dropped_by_corpus = make_item(0, prompt=words(0, 12))
        # 10/14 against the dropped item, 8/14 against the corpus
        similar_to_dropped = make_item(1, prompt=words(2, 14))

        result = self.dedup.filter_batch([dropped_by_corpus, similar_to_dropped], corpus)

        self.assertEqual(result.dropped_indices, {0})
        self.assertEqual(result.kept, [similar_to_dropped])

    def test_custom_threshold(self):
        dedup = Deduplicator(QAConfig(similarity_threshold=0.5))
        first = make_item(0, prompt=words(0, 10))
        second = make_item(1, prompt=words(0, 5))

        result = dedup.filter_batch([first, second])

        self.assertEqual(result.dropped_indices, {1})

    def test_explicit_indices(self):
        items = [make_item(0, prompt=words(0, 4)), make_item(1, prompt=words(0, 4))]
        result = self.dedup.filter_batch(items, indices=[3, 7])
        self.assertEqual(result.kept_indices, [3])
        self.assertEqual(result.dropped[0].index, 7)


if __name__ == "__main__":
    unittest.main()
