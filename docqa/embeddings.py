"""
Embeddings Module

WHAT ARE EMBEDDINGS:
Embeddings convert text into vectors (lists of numbers) that capture meaning.
Similar texts have similar vectors, so related passages can be found with
cosine similarity (see docqa.similarity) instead of keyword matching.

EXAMPLE:
"How do I return a product?"  ->  [0.023, -0.041, 0.089, ..., 0.012]
"What's your return policy?"  ->  [0.025, -0.038, 0.091, ..., 0.010]

REQUEST POLICY:
- One request per text. Batches are embedded one after another so a large
  upload never bursts past the provider's rate limit.
- Every request is retried with exponential backoff (docqa.retry). When all
  attempts fail an ExternalServiceError is raised.
- Every vector from one deployment has the same dimensionality; the ranker
  rejects mixed lengths.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional

import structlog
from openai import AzureOpenAI

from config.settings import RetryConfig, get_settings
from docqa.health import HealthCheck, run_check
from docqa.retry import call_with_retry

logger = structlog.get_logger()

EMBEDDING_SERVICE = "Embedding service"


def create_azure_client(
    endpoint: Optional[str] = None,
    api_key: Optional[str] = None,
    api_version: Optional[str] = None,
) -> AzureOpenAI:
    """Build an AzureOpenAI client, filling missing arguments from settings."""
    azure = get_settings().azure
    if not (endpoint and api_key):
        default_endpoint, default_key = azure.require_credentials()
        endpoint = endpoint or default_endpoint
        api_key = api_key or default_key

    return AzureOpenAI(
        azure_endpoint=endpoint,
        api_key=api_key,
        api_version=api_version or azure.api_version,
    )


@dataclass
class EmbeddingResult:
    """
    Result of embedding a piece of text.
    """
    text: str
    embedding: List[float]
    model: str
    token_count: int

    @property
    def dimension(self) -> int:
        """Get the embedding dimension."""
        return len(self.embedding)


class EmbeddingClient:
    """
    Client for generating embeddings using Azure OpenAI.

    A pre-built client object exposing `embeddings.create` can be passed
    in, which is how the tests avoid the network.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        deployment: Optional[str] = None,
        api_version: Optional[str] = None,
        retry_config: Optional[RetryConfig] = None,
        client=None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Initialize the embedding client.

        Args:
            endpoint: Azure OpenAI endpoint (defaults to settings)
            api_key: API key (defaults to settings)
            deployment: Deployment name (defaults to settings)
            api_version: API version (defaults to settings)
            retry_config: Backoff policy (defaults to settings)
            client: Ready-made OpenAI-compatible client
            sleep: Override for the backoff sleep
        """
        settings = get_settings()

        self.deployment = deployment or settings.azure.embedding_deployment
        self.retry_config = retry_config or settings.retry
        self._sleep = sleep

        self.client = client or create_azure_client(endpoint, api_key, api_version)

    def _request(self, text: str) -> EmbeddingResult:
        response = self.client.embeddings.create(
            input=text,
            model=self.deployment,  # In Azure, this is the deployment name
        )
        return EmbeddingResult(
            text=text,
            embedding=list(response.data[0].embedding),
            model=self.deployment,
            token_count=response.usage.total_tokens,
        )

    def embed(self, text: str) -> EmbeddingResult:
        """
        Generate the embedding for a single text.

        Raises:
            ExternalServiceError: when every retry attempt failed
        """
        return call_with_retry(
            lambda: self._request(text),
            retry_config=self.retry_config,
            service=EMBEDDING_SERVICE,
            operation="embedding",
            sleep=self._sleep,
        )

    def embed_batch(self, texts: List[str]) -> List[EmbeddingResult]:
        """
        Generate embeddings for multiple texts, strictly one request at a time.

        Returns:
            One EmbeddingResult per input text, in input order
        """
        results = [self.embed(text) for text in texts]

        logger.info(
            "embeddings_generated",
            count=len(results),
            model=self.deployment,
            tokens=sum(r.token_count for r in results),
        )
        return results

    def check_health(self) -> HealthCheck:
        """Check the service is reachable by embedding a tiny string."""
        return run_check(lambda: self._request("health check").dimension > 0)
