"""
Unit tests for the embedding client and its retry policy.
"""

import pytest

from config.settings import RetryConfig
from docqa.embeddings import EMBEDDING_SERVICE, EmbeddingClient
from docqa.errors import ExternalServiceError, ValidationError
from docqa.retry import call_with_retry

from conftest import FakeEmbeddingsAPI, FakeOpenAIClient


def make_client(embeddings, retry_config=None, sleeps=None):
    recorded = sleeps if sleeps is not None else []
    return EmbeddingClient(
        client=FakeOpenAIClient(embeddings=embeddings),
        deployment="test-embedding",
        retry_config=retry_config or RetryConfig(max_attempts=3, base_delay=1.0, max_delay=8.0),
        sleep=recorded.append,
    )


class TestEmbeddingClient:

    def test_embed(self, embedding_client):
        result = embedding_client.embed("vacation days")

        assert result.embedding[:2] == [1.0, 1.0]
        assert result.dimension == 8
        assert result.token_count == 2

    def test_embed_batch_one_request_per_text(self, embedding_client, openai_client):
        results = embedding_client.embed_batch(["refund policy", "remote office", "python"])

        assert [r.text for r in results] == ["refund policy", "remote office", "python"]
        assert openai_client.embeddings.calls == ["refund policy", "remote office", "python"]

    def test_retries_then_succeeds(self):
        embeddings = FakeEmbeddingsAPI(failures=2)
        sleeps = []
        client = make_client(embeddings, sleeps=sleeps)

        result = client.embed("salary")

        assert result.embedding[6] == 1.0
        assert len(embeddings.calls) == 3
        assert sleeps == [1.0, 2.0]

    def test_gives_up_after_max_attempts(self):
        embeddings = FakeEmbeddingsAPI(fail_always=True)
        client = make_client(embeddings)

        with pytest.raises(ExternalServiceError) as exc_info:
            client.embed("salary")

        assert len(embeddings.calls) == 3
        assert exc_info.value.service == EMBEDDING_SERVICE
        assert isinstance(exc_info.value.cause, ConnectionError)
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_backoff_is_capped(self):
        sleeps = []
        client = make_client(
            FakeEmbeddingsAPI(fail_always=True),
            retry_config=RetryConfig(max_attempts=6, base_delay=1.0, max_delay=8.0),
            sleeps=sleeps,
        )

        with pytest.raises(ExternalServiceError):
            client.embed("salary")

        assert sleeps == [1.0, 2.0, 4.0, 8.0, 8.0]

    def test_health_ok(self, embedding_client):
        health = embedding_client.check_health()
        assert health.ok is True

    def test_health_failure_is_reported_not_raised(self):
        embeddings = FakeEmbeddingsAPI(fail_always=True)
        health = make_client(embeddings).check_health()

        assert health.ok is False
        assert "unreachable" in health.error
        # health checks are a single attempt
        assert len(embeddings.calls) == 1


class TestCallWithRetry:

    def test_app_errors_are_not_retried(self):
        calls = []

        def fail():
            calls.append(1)
            raise ValidationError("bad request")

        with pytest.raises(ValidationError):
            call_with_retry(
                fail,
                RetryConfig(max_attempts=3, base_delay=0.0, max_delay=0.0),
                service="Test service",
                operation="test",
                sleep=lambda seconds: None,
            )

        assert len(calls) == 1

    def test_returns_value(self):
        result = call_with_retry(
            lambda: 42,
            RetryConfig(),
            service="Test service",
            operation="test",
        )
        assert result == 42
