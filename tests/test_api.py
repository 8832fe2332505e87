"""
Tests for the HTTP API: authentication, generation, validation and health.
"""
import unittest
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from main import app
from src.api.routes.questions import get_qa_config, get_question_store
from src.core.error_handling import GeneratorConfigurationError
from src.models.api_models import QuestionPayload
from src.services.interfaces import InMemoryQuestionStore
from tests.support import (
    SOURCE,
    SOURCE_WITHOUT_CITATIONS,
    UNCITED_EXPLANATION,
    FakeGenerator,
    batch_json,
    make_batch,
    make_item,
    qa_config,
)

TOPIC = {"topic_id": "tema-21", "topic_title": "Obligación de resolver", "source_context": SOURCE}


def payloads(items):
    return [QuestionPayload.from_candidate(item).model_dump(exclude_none=True) for item in items]


def fake_factory(generator=None, error=None):
    factory = MagicMock()
    if error is not None:
        factory.get_generator.side_effect = error
    else:
        factory.get_generator.return_value = generator
    factory.rate_limiter = None
    return factory


class ApiTestCase(unittest.TestCase):
    """Client with authentication disabled and a fresh store."""

    def setUp(self):
        """Set up test fixtures."""
        self.store = InMemoryQuestionStore()
        app.dependency_overrides[get_question_store] = lambda: self.store
        app.dependency_overrides[get_qa_config] = lambda: qa_config()
        security_patch = patch("src.core.security.settings")
        self.security_settings = security_patch.start()
        self.security_settings.REQUIRE_API_KEY = False
        self.addCleanup(security_patch.stop)
        self.client = TestClient(app)

    def tearDown(self):
        """Clean up after tests."""
        app.dependency_overrides.clear()


class TestApiKeyAuth(ApiTestCase):
    """Bearer token checks on the question endpoints."""

    def setUp(self):
        """Set up test fixtures."""
        super().setUp()
        self.security_settings.REQUIRE_API_KEY = True
        self.security_settings.API_KEY = "test_key_12345"
        self.body = {"questions": payloads(make_batch("ABC")), "source_context": SOURCE}

    def test_no_bearer_token(self):
        response = self.client.post("/questions/validate", json=self.body)
        self.assertEqual(response.status_code, 401)
        self.assertIn("Bearer", response.json()["detail"])

    def test_invalid_bearer_token(self):
        response = self.client.post(
            "/questions/validate", json=self.body, headers={"Authorization": "Bearer wrong_key"}
        )
        self.assertEqual(response.status_code, 403)

    def test_valid_bearer_token(self):
        response = self.client.post(
            "/questions/validate", json=self.body, headers={"Authorization": "Bearer test_key_12345"}
        )
        self.assertEqual(response.status_code, 200)

    def test_key_not_configured(self):
        self.security_settings.API_KEY = None
        response = self.client.post(
            "/questions/validate", json=self.body, headers={"Authorization": "Bearer anything"}
        )
        self.assertEqual(response.status_code, 500)

    def test_health_is_public(self):
        self.assertEqual(self.client.get("/").status_code, 200)


class TestGenerateEndpoint(ApiTestCase):
    """Test cases for POST /questions/generate."""

    def test_accepted_batch(self):
        generator = FakeGenerator([batch_json("AAAAABCDBCDBCDB")])
        with patch("src.api.routes.questions.get_client_factory", return_value=fake_factory(generator)):
            response = self.client.post("/questions/generate", json=TOPIC)

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["attempts"], 1)
        self.assertEqual(len(data["questions"]), 15)
        self.assertEqual("".join(q["correct_letter"] for q in data["questions"]), "AACDCBCDBCDBCDB")
        self.assertEqual([r["index"] for r in data["rotations"]], [2, 3, 4])
        self.assertEqual(data["report"]["passed"], 15)
        self.assertEqual(len(self.store.saved["tema-21"]), 15)
        self.assertIn("X-Request-ID", response.headers)

    def test_exhausted_attempts_return_422_with_issues(self):
        generator = FakeGenerator([batch_json("ABCDABCDABCDABC", UNCITED_EXPLANATION)])
        body = dict(TOPIC, source_context=SOURCE_WITHOUT_CITATIONS)
        with patch("src.api.routes.questions.get_client_factory", return_value=fake_factory(generator)):
            response = self.client.post("/questions/generate", json=body)

        self.assertEqual(response.status_code, 422)
        detail = response.json()["detail"]
        self.assertEqual(detail["attempts"], 3)
        self.assertTrue(detail["message"].startswith("generation failed:"))
        self.assertEqual(len(detail["issues"]), 90)
        self.assertEqual(self.store.saved, {})

    def test_configuration_error_returns_500(self):
        factory = fake_factory(error=GeneratorConfigurationError("GROQ_API_KEY is not set"))
        with patch("src.api.routes.questions.get_client_factory", return_value=factory):
            response = self.client.post("/questions/generate", json=TOPIC)

        self.assertEqual(response.status_code, 500)
        self.assertIn("GROQ_API_KEY", response.json()["detail"])

    def test_request_validation(self):
        response = self.client.post("/questions/generate", json=dict(TOPIC, source_context="  "))
        self.assertEqual(response.status_code, 422)

    def test_stored_questions_are_deduplicated_on_the_next_run(self):
        generator = FakeGenerator([batch_json("ABCDABCDABCDABC")])
        with patch("src.api.routes.questions.get_client_factory", return_value=fake_factory(generator)):
            first = self.client.post("/questions/generate", json=TOPIC)
            second = self.client.post("/questions/generate", json=TOPIC)

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 422)
        codes = {issue["code"] for issue in second.json()["detail"]["issues"]}
        self.assertEqual(codes, {"duplicate"})


class TestValidateEndpoint(ApiTestCase):
    """Test cases for POST /questions/validate."""

    def test_valid_batch(self):
        body = {"questions": payloads(make_batch("ABCDABCD")), "source_context": SOURCE}

        response = self.client.post("/questions/validate", json=body)

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data["valid"])
        self.assertEqual(len(data["questions"]), 8)
        self.assertEqual(data["rotations"], [])
        self.assertIn("VALIDATION REPORT", data["summary"])

    def test_rebalance_on_request(self):
        body = {"questions": payloads(make_batch("AAAAA")), "source_context": SOURCE, "rebalance": True}

        data = self.client.post("/questions/validate", json=body).json()

        self.assertTrue(data["valid"])
        self.assertEqual("".join(q["correct_letter"] for q in data["questions"]), "AABCD")
        self.assertEqual(len(data["rotations"]), 3)

    def test_invalid_item_and_duplicates_are_reported(self):
        items = make_batch("ABC")
        items.append(make_item(3, "D", explanation=UNCITED_EXPLANATION, source=SOURCE_WITHOUT_CITATIONS))
        questions = payloads(items)
        questions[3]["source_context"] = SOURCE_WITHOUT_CITATIONS
        body = {
            "questions": questions,
            "source_context": SOURCE,
            "corpus": [items[0].prompt_text],
            "mandatory_quotes": [],
        }

        data = self.client.post("/questions/validate", json=body).json()

        self.assertFalse(data["valid"])
        self.assertEqual(data["dropped"][0]["index"], 0)
        self.assertEqual(data["dropped"][0]["source"], "corpus")
        outcomes = data["report"]["outcomes"]
        self.assertFalse(outcomes[0]["valid"])
        self.assertTrue(outcomes[1]["valid"])
        self.assertEqual(
            [issue["code"] for issue in outcomes[3]["issues"]],
            ["missing_article", "missing_instrument"],
        )

    def test_payload_validation(self):
        question = payloads([make_item(0)])[0]
        question["correct_letter"] = "E"
        response = self.client.post("/questions/validate", json={"questions": [question]})
        self.assertEqual(response.status_code, 422)


class TestHealthEndpoint(ApiTestCase):
    """Test cases for the health endpoints."""

    def test_root(self):
        self.assertEqual(self.client.get("/").json()["status"], "healthy")

    @patch("src.api.routes.health.get_client_factory")
    def test_health_reports_provider_configuration(self, mock_factory):
        mock_factory.return_value.configured_providers.return_value = {"groq": False, "openai": False}
        data = self.client.get("/health").json()
        self.assertEqual(data["status"], "degraded")
        self.assertIn("not configured", data["warning"])
        self.assertIn("qa", data)

    @patch("src.api.routes.health.get_client_factory")
    def test_health_when_configured(self, mock_factory):
        mock_factory.return_value.configured_providers.return_value = {"groq": True, "openai": True}
        data = self.client.get("/health").json()
        self.assertEqual(data["status"], "healthy")
        self.assertTrue(data["groq_configured"])


if __name__ == "__main__":
    unittest.main()
