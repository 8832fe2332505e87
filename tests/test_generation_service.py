"""
Tests for multi-topic generation and the question stores.
"""
import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from src.core.error_handling import GeneratorConfigurationError, GeneratorRequestError
from src.models.question_models import GenerationRequest
from src.services.generation_service import QuestionGenerationService
from src.services.interfaces import InMemoryQuestionStore, JsonFileQuestionStore
from tests.support import (
    SOURCE,
    SOURCE_WITHOUT_CITATIONS,
    STEMS,
    UNCITED_EXPLANATION,
    FakeGenerator,
    batch_json,
    make_batch,
    qa_config,
)


def topic(topic_id, source=SOURCE):
    return GenerationRequest(topic_id=topic_id, topic_title=topic_id, source_context=source)


class TestQuestionGenerationService(unittest.IsolatedAsyncioTestCase):
    """Test cases for QuestionGenerationService."""

    def service(self, generator, store, **kwargs):
        return QuestionGenerationService(generator, store, store, config=qa_config(), topic_delay=0, **kwargs)

    async def test_generate_for_topic_uses_stored_corpus(self):
        store = InMemoryQuestionStore({"tema-1": [STEMS[0]]})
        generator = FakeGenerator([batch_json("ABCDABCDABCDABC")])

        with patch("src.services.retry_orchestrator.RetryOrchestrator.run") as mock_run:
            mock_run.return_value = "result"
            result = await self.service(generator, store).generate_for_topic(topic("tema-1"))

        self.assertEqual(result, "result")
        self.assertEqual(mock_run.call_args.args[1], [STEMS[0]])

    async def test_failed_topic_does_not_stop_the_run(self):
        store = InMemoryQuestionStore()
        uncited = batch_json("ABCDABCDABCDABC", UNCITED_EXPLANATION)
        generator = FakeGenerator([uncited, uncited, uncited, batch_json("ABCDABCDABCDABC")])

        outcomes = await self.service(generator, store).generate_for_topics([
            topic("uncited", SOURCE_WITHOUT_CITATIONS),
            topic("cited"),
        ])

        self.assertEqual([o.topic_id for o in outcomes], ["uncited", "cited"])
        self.assertFalse(outcomes[0].succeeded)
        self.assertTrue(outcomes[0].error.startswith("generation failed:"))
        self.assertEqual(len(outcomes[0].issues), 90)
        self.assertEqual(len(generator.requests), 4)
        self.assertTrue(outcomes[1].succeeded)
        self.assertEqual(list(store.saved), ["cited"])

    async def test_rejected_request_fails_only_its_topic(self):
        store = InMemoryQuestionStore()
        generator = FakeGenerator([
            GeneratorRequestError("Groq API error (400): context length exceeded"),
            batch_json("ABCDABCDABCDABC"),
        ])

        outcomes = await self.service(generator, store).generate_for_topics([topic("long"), topic("short")])

        self.assertFalse(outcomes[0].succeeded)
        self.assertIn("context length exceeded", outcomes[0].error)
        self.assertEqual(outcomes[0].issues, [])
        self.assertTrue(outcomes[1].succeeded)
        self.assertEqual(len(generator.requests), 2)

    async def test_topics_are_separated_by_delay(self):
        store = InMemoryQuestionStore()
        generator = FakeGenerator([batch_json("ABCDABCDABCDABC")])
        service = QuestionGenerationService(generator, store, store, config=qa_config(), topic_delay=0.5)

        with patch("src.services.generation_service.asyncio.sleep") as mock_sleep:
            mock_sleep.return_value = None
            outcomes = await service.generate_for_topics([topic("a"), topic("b"), topic("c")])

        self.assertEqual(mock_sleep.call_count, 2)
        self.assertEqual(mock_sleep.call_args.args[0], 0.5)
        self.assertEqual([o.succeeded for o in outcomes], [True, True, True])
        self.assertEqual(list(store.saved), ["a", "b", "c"])

    async def test_configuration_errors_abort_the_run(self):
        store = InMemoryQuestionStore()
        generator = FakeGenerator([GeneratorConfigurationError("no key")])

        with self.assertRaises(GeneratorConfigurationError):
            await self.service(generator, store).generate_for_topics([topic("a"), topic("b")])

        self.assertEqual(len(generator.requests), 1)


class TestQuestionStores(unittest.IsolatedAsyncioTestCase):
    """Test cases for the corpus/sink implementations."""

    async def test_in_memory_store(self):
        store = InMemoryQuestionStore({"t": ["Existing question?"]})
        items = make_batch("AB")

        await store.save("t", items)

        self.assertEqual(store.saved["t"], items)
        self.assertEqual(await store.existing_questions("t"), ["Existing question?", STEMS[0], STEMS[1]])
        self.assertEqual(await store.existing_questions("other"), [])

    async def test_json_file_store_round_trip(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "questions.json"
            store = JsonFileQuestionStore(path)
            await store.save("tema-21", make_batch("ABC"))

            stored = json.loads(path.read_text(encoding="utf-8"))
            self.assertEqual([q["prompt_text"] for q in stored["tema-21"]], STEMS[:3])
            self.assertEqual(stored["tema-21"][0]["correct_letter"], "A")

            reloaded = JsonFileQuestionStore(path)
            self.assertEqual(await reloaded.existing_questions("tema-21"), STEMS[:3])


if __name__ == "__main__":
    unittest.main()
