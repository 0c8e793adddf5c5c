"""Pytest configuration and fixtures.

The remote model services are replaced with small fakes exposing the same
attributes the OpenAI SDK client does (`embeddings.create`,
`chat.completions.create`), and the store runs on an in-memory SQLite
database, so the suite needs no network and no credentials.
"""
from types import SimpleNamespace
from typing import List

import pytest

from config.settings import (
    AzureOpenAIConfig,
    DatabaseConfig,
    RetryConfig,
    Settings,
)
from docqa.embeddings import EmbeddingClient
from docqa.generator import Generator
from docqa.rag_pipeline import RAGPipeline
from docqa.store import DocumentStore


# Each vocabulary word is one embedding dimension
VOCABULARY = ["vacation", "days", "refund", "policy", "remote", "office", "salary", "python"]


def keyword_vector(text: str) -> List[float]:
    """Bag-of-keywords embedding; text without any keyword maps to the zero vector."""
    words = [w.strip(".,?!:;\"'").lower() for w in text.split()]
    return [float(words.count(term)) for term in VOCABULARY]


class FakeEmbeddingsAPI:
    """Stands in for client.embeddings; fails the first `failures` calls."""

    def __init__(self, failures: int = 0, fail_always: bool = False):
        self.failures = failures
        self.fail_always = fail_always
        self.calls = []

    def create(self, input, model):
        self.calls.append(input)
        if self.fail_always or self.failures > 0:
            self.failures -= 1
            raise ConnectionError("embedding endpoint unreachable")
        return SimpleNamespace(
            data=[SimpleNamespace(embedding=keyword_vector(input))],
            usage=SimpleNamespace(total_tokens=len(input.split())),
        )


class FakeCompletionsAPI:
    """Stands in for client.chat.completions."""

    def __init__(self, answer: str = "Employees get 25 vacation days.", failures: int = 0):
        self.answer = answer
        self.failures = failures
        self.calls = []

    def create(self, model, messages, max_tokens, temperature):
        self.calls.append({"model": model, "messages": messages})
        if self.failures > 0:
            self.failures -= 1
            raise TimeoutError("chat endpoint timed out")
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=self.answer))],
            usage=SimpleNamespace(prompt_tokens=120, completion_tokens=8, total_tokens=128),
        )


class FakeOpenAIClient:
    def __init__(self, embeddings=None, completions=None):
        self.embeddings = embeddings or FakeEmbeddingsAPI()
        self.chat = SimpleNamespace(completions=completions or FakeCompletionsAPI())


@pytest.fixture
def settings() -> Settings:
    """Offline settings: no credentials, no backoff delay, in-memory database."""
    return Settings(
        azure=AzureOpenAIConfig(endpoint=None, api_key=None),
        retry=RetryConfig(max_attempts=3, base_delay=0.0, max_delay=0.0),
        database=DatabaseConfig(path=":memory:"),
    )


@pytest.fixture
def store():
    document_store = DocumentStore(":memory:")
    yield document_store
    document_store.close()


@pytest.fixture
def openai_client() -> FakeOpenAIClient:
    return FakeOpenAIClient()


@pytest.fixture
def embedding_client(settings, openai_client) -> EmbeddingClient:
    return EmbeddingClient(
        client=openai_client,
        retry_config=settings.retry,
        sleep=lambda seconds: None,
    )


@pytest.fixture
def generator(settings, openai_client) -> Generator:
    return Generator(
        client=openai_client,
        retry_config=settings.retry,
        sleep=lambda seconds: None,
    )


@pytest.fixture
def pipeline(settings, store, embedding_client, generator) -> RAGPipeline:
    return RAGPipeline(
        store=store,
        embedding_client=embedding_client,
        generator=generator,
        settings=settings,
    )


@pytest.fixture
def handbook_text() -> str:
    return (
        "Vacation policy\n\n"
        "Every employee receives 25 vacation days per year. Unused vacation days "
        "carry over until the end of March.\n\n"
        "Remote work\n\n"
        "Staff may work remote up to three days a week. The office is open from "
        "eight to six."
    )
