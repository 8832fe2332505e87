"""
Generate validated question batches for a list of topics.

Topics are read from a JSON file:
    [{"topic_id": "tema-12", "topic_title": "...", "source_context": "...",
      "description": "...", "count": 15}, ...]
"source_file" may replace "source_context" (path relative to the topics file).

Accepted questions are appended to the output JSON file, which also serves
as the corpus for deduplication on later runs.

Usage:
    python scripts/generate_questions.py --topics topics.json --output questions.json
    python scripts/generate_questions.py --topics topics.json --output questions.json --provider openai
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from src.core.config import QAConfig
from src.core.error_handling import GeneratorConfigurationError
from src.core.logging import setup_logging
from src.models.question_models import GenerationRequest
from src.services.client_factory import get_client_factory
from src.services.generation_service import QuestionGenerationService
from src.services.interfaces import JsonFileQuestionStore

logger = logging.getLogger(__name__)


def load_topics(path: Path) -> List[GenerationRequest]:
    """Read the topics file into generation requests."""
    entries = json.loads(path.read_text(encoding="utf-8"))
    requests = []
    for entry in entries:
        source = entry.get("source_context")
        if source is None and entry.get("source_file"):
            source = (path.parent / entry["source_file"]).read_text(encoding="utf-8")
        if not source:
            logger.warning(f"Skipping topic {entry.get('topic_id')}: no source content")
            continue
        requests.append(GenerationRequest(
            topic_id=str(entry["topic_id"]),
            topic_title=entry.get("topic_title", str(entry["topic_id"])),
            source_context=source,
            description=entry.get("description", ""),
            count=entry.get("count"),
        ))
    return requests


async def main():
    parser = argparse.ArgumentParser(description="Generate validated exam questions for a list of topics")
    parser.add_argument("--topics", required=True, help="JSON file with the topics to process")
    parser.add_argument("--output", required=True, help="JSON file accepted questions are written to")
    parser.add_argument("--provider", default=None, help="Generator provider: groq or openai (default: GENERATOR_PROVIDER)")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")

    args = parser.parse_args()
    setup_logging(args.log_level)

    topics_path = Path(args.topics)
    if not topics_path.exists():
        logger.error(f"Topics file does not exist: {topics_path}")
        return 1

    requests = load_topics(topics_path)
    if not requests:
        logger.warning(f"No topics to process in {topics_path}")
        return 0
    logger.info(f"Loaded {len(requests)} topic(s) from {topics_path}")

    factory = get_client_factory()
    try:
        generator = factory.get_generator(args.provider)
    except GeneratorConfigurationError as e:
        logger.error(str(e))
        return 2

    store = JsonFileQuestionStore(args.output)
    service = QuestionGenerationService(
        generator=generator,
        corpus_source=store,
        sink=store,
        config=QAConfig.from_settings(),
        rate_limiter=factory.rate_limiter,
    )

    async with generator:
        outcomes = await service.generate_for_topics(requests)

    for outcome in outcomes:
        if outcome.succeeded:
            logger.info(f"{outcome.topic_id}: {len(outcome.result.items)} questions in {outcome.result.attempts} attempt(s)")
        else:
            logger.error(f"{outcome.topic_id}: {outcome.error}")

    failed = sum(1 for o in outcomes if not o.succeeded)
    logger.info(f"Processing complete. {len(outcomes) - failed}/{len(outcomes)} topics succeeded.")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
