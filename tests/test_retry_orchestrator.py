"""
Tests for the generate-validate-repair loop.
"""
import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock

from src.core.constants import GENERATOR_UNAVAILABLE, MALFORMED_OUTPUT, MISSING_ARTICLE, MISSING_INSTRUMENT
from src.core.error_handling import (
    GenerationExhaustedError,
    GeneratorConfigurationError,
    TransientGeneratorError,
)
from src.core.http_client import RateLimiter
from src.models.question_models import GenerationRequest
from src.services.interfaces import InMemoryQuestionStore
from src.services.retry_orchestrator import RetryOrchestrator
from tests.support import (
    QUOTE,
    SOURCE,
    SOURCE_WITHOUT_CITATIONS,
    STEMS,
    UNCITED_EXPLANATION,
    FakeGenerator,
    batch_json,
    letters_of,
    qa_config,
)


def make_request(source=SOURCE, **kwargs):
    return GenerationRequest(
        topic_id="tema-21",
        topic_title="Obligación de resolver",
        source_context=source,
        **kwargs,
    )


class SlowFirstCallGenerator(FakeGenerator):
    """Hangs on the first call, then replays the script."""

    async def generate(self, request):
        if not self.requests:
            self.requests.append(request)
            await asyncio.sleep(5)
        return await super().generate(request)


class TestRetryOrchestrator(unittest.IsolatedAsyncioTestCase):
    """Test cases for RetryOrchestrator.run."""

    def orchestrator(self, generator, **kwargs):
        kwargs.setdefault("config", qa_config())
        kwargs.setdefault("backoff_base", 0)
        kwargs.setdefault("transient_attempts", 1)
        kwargs.setdefault("call_timeout", 5)
        return RetryOrchestrator(generator, **kwargs)

    async def test_accepted_batch_is_rebalanced_and_saved(self):
        generator = FakeGenerator([batch_json("AAAAABCDBCDBCDB")])
        sink = InMemoryQuestionStore()

        result = await self.orchestrator(generator, sink=sink).run(make_request())

        self.assertEqual(result.attempts, 1)
        self.assertEqual(len(result.items), 15)
        self.assertEqual(letters_of(result.items), "AACDCBCDBCDBCDB")
        self.assertEqual([r.index for r in result.rotations], [2, 3, 4])
        self.assertEqual(result.mandatory_quotes[0], QUOTE)
        self.assertEqual(result.report.passed, 15)
        self.assertEqual(sink.saved["tema-21"], result.items)
        self.assertEqual(await sink.existing_questions("tema-21"), STEMS)

    async def test_first_request_carries_prompt_and_temperature(self):
        generator = FakeGenerator([batch_json("ABCDABCDABCDABC")])

        await self.orchestrator(generator).run(make_request())

        request = generator.requests[0]
        self.assertEqual(request.temperature, 0.7)
        self.assertIn("Generate exactly 15 multiple-choice questions", request.prompt_text)
        self.assertIn("MANDATORY QUOTES", request.prompt_text)
        self.assertIn(QUOTE, request.prompt_text)
        self.assertNotIn("CORRECTIONS REQUIRED", request.prompt_text)
        self.assertTrue(request.system_prompt)

    async def test_retry_terminates_with_itemized_issues(self):
        """Three uncited batches: exactly three calls, then failure naming every item."""
        generator = FakeGenerator([batch_json("ABCDABCDABCDABC", UNCITED_EXPLANATION)])
        sink = InMemoryQuestionStore()

        with self.assertRaises(GenerationExhaustedError) as ctx:
            await self.orchestrator(generator, sink=sink).run(make_request(SOURCE_WITHOUT_CITATIONS))

        error = ctx.exception
        self.assertEqual(len(generator.requests), 3)
        self.assertEqual(error.attempts, 3)
        self.assertTrue(str(error).startswith("generation failed: Question 1:"))
        article_indices = {i.item_index for i in error.issues if i.code == MISSING_ARTICLE}
        self.assertEqual(article_indices, set(range(15)))
        self.assertEqual(len([i for i in error.issues if i.code == MISSING_INSTRUMENT]), 45)
        self.assertEqual(sink.saved, {})

    async def test_uncited_batches_fail_even_when_the_source_has_citations(self):
        generator = FakeGenerator([batch_json("ABCDABCDABCDABC", UNCITED_EXPLANATION)])

        with self.assertRaises(GenerationExhaustedError) as ctx:
            await self.orchestrator(generator).run(make_request(SOURCE))

        self.assertEqual(len(generator.requests), 3)
        for code in (MISSING_ARTICLE, MISSING_INSTRUMENT):
            indices = [i.item_index for i in ctx.exception.issues if i.code == code]
            self.assertEqual(sorted(indices), sorted(list(range(15)) * 3))
        self.assertIn("does not cite an article", generator.requests[1].prompt_text)

    async def test_enabled_fallback_only_repairs_the_final_attempt(self):
        generator = FakeGenerator([batch_json("ABCDABCDABCDABC", UNCITED_EXPLANATION)])
        config = qa_config(allow_citation_fallback=True)

        result = await self.orchestrator(generator, config=config).run(make_request(SOURCE))

        self.assertEqual(result.attempts, 3)
        self.assertEqual(len(generator.requests), 3)
        self.assertTrue(result.items[0].explanation.startswith("Legal basis: Article 21 of Ley 39/2015.\n"))
        self.assertIn("citation_synthesized", [w.code for w in result.report.all_warnings])

    async def test_temperature_schedule_and_feedback(self):
        generator = FakeGenerator([batch_json("ABCDABCDABCDABC", UNCITED_EXPLANATION)])

        with self.assertRaises(GenerationExhaustedError):
            await self.orchestrator(generator).run(make_request(SOURCE_WITHOUT_CITATIONS))

        self.assertEqual([r.temperature for r in generator.requests], [0.7, 0.5, 0.3])
        second = generator.requests[1].prompt_text
        self.assertIn("CORRECTIONS REQUIRED (attempt 2 of 3)", second)
        self.assertIn("- Question 1: explanation does not cite an article", second)
        self.assertIn("CORRECTIONS REQUIRED (attempt 3 of 3)", generator.requests[2].prompt_text)

    async def test_malformed_output_then_success(self):
        generator = FakeGenerator(["Sorry, I cannot help with that.", batch_json("ABCDABCDABCDABC")])

        result = await self.orchestrator(generator).run(make_request())

        self.assertEqual(result.attempts, 2)
        self.assertIn("could not be parsed", generator.requests[1].prompt_text)

    async def test_malformed_output_every_time(self):
        generator = FakeGenerator(['{"message": "no questions today"}'])

        with self.assertRaises(GenerationExhaustedError) as ctx:
            await self.orchestrator(generator).run(make_request())

        self.assertEqual([i.code for i in ctx.exception.issues], [MALFORMED_OUTPUT] * 3)

    async def test_short_batch_is_retried(self):
        generator = FakeGenerator([batch_json("ABCDABCDAB"), batch_json("ABCDABCDABCDABC")])

        result = await self.orchestrator(generator).run(make_request())

        self.assertEqual(result.attempts, 2)
        self.assertIn("Batch: expected 15 questions but received 10", generator.requests[1].prompt_text)

    async def test_request_count_overrides_batch_size(self):
        generator = FakeGenerator([batch_json("ABCDAB")])
        result = await self.orchestrator(generator).run(make_request(count=5))
        self.assertEqual(len(result.items), 5)
        self.assertIn("Generate exactly 5 multiple-choice questions", generator.requests[0].prompt_text)

    async def test_transient_failures_exhaust_into_failed_attempts(self):
        generator = FakeGenerator([TransientGeneratorError("HTTP 503")])

        with self.assertRaises(GenerationExhaustedError) as ctx:
            await self.orchestrator(generator, transient_attempts=2).run(make_request())

        self.assertEqual(len(generator.requests), 6)
        self.assertEqual([i.code for i in ctx.exception.issues], [GENERATOR_UNAVAILABLE] * 3)

    async def test_transient_failure_recovers_within_attempt(self):
        generator = FakeGenerator([TransientGeneratorError("HTTP 429"), batch_json("ABCDABCDABCDABC")])

        result = await self.orchestrator(generator, transient_attempts=2).run(make_request())

        self.assertEqual(result.attempts, 1)
        self.assertEqual(len(generator.requests), 2)

    async def test_timeout_counts_as_transient(self):
        generator = SlowFirstCallGenerator([batch_json("ABCDABCDABCDABC")])

        result = await self.orchestrator(generator, call_timeout=0.05).run(make_request())

        self.assertEqual(result.attempts, 2)
        self.assertEqual(len(generator.requests), 2)

    async def test_configuration_error_is_never_retried(self):
        generator = FakeGenerator([GeneratorConfigurationError("GROQ_API_KEY is not set")])

        with self.assertRaises(GeneratorConfigurationError):
            await self.orchestrator(generator, transient_attempts=3).run(make_request())

        self.assertEqual(len(generator.requests), 1)

    async def test_corpus_questions_are_shown_and_deduplicated(self):
        generator = FakeGenerator([batch_json("ABCDABCDABCDABC")])

        with self.assertRaises(GenerationExhaustedError) as ctx:
            await self.orchestrator(generator).run(make_request(), corpus=[STEMS[4]])

        self.assertIn(f"- {STEMS[4]}", generator.requests[0].prompt_text)
        self.assertEqual({i.item_index for i in ctx.exception.issues}, {4})

    async def test_rate_limiter_is_awaited_per_call(self):
        limiter = MagicMock(spec=RateLimiter)
        limiter.wait_if_needed = AsyncMock()
        generator = FakeGenerator(["not json", batch_json("ABCDABCDABCDABC")])

        await self.orchestrator(generator, rate_limiter=limiter).run(make_request())

        self.assertEqual(limiter.wait_if_needed.await_count, 2)

    async def test_custom_attempt_budget(self):
        generator = FakeGenerator(["not json"])

        with self.assertRaises(GenerationExhaustedError):
            await self.orchestrator(generator, config=qa_config(max_attempts=2)).run(make_request())

        self.assertEqual(len(generator.requests), 2)


if __name__ == "__main__":
    unittest.main()
