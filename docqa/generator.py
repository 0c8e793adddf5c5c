"""
Generator Module

Takes a user question plus the ranked chunks and asks the chat model for an
answer grounded in those chunks. This is the "G" in RAG.

PROMPT LAYOUT:

┌─────────────────────────────────────────────────┐
│ SYSTEM MESSAGE                                  │
│ - answer ONLY from the provided context         │
│ - name the source documents used                │
│ - say so when the context is not enough         │
└─────────────────────────────────────────────────┘
                    +
┌─────────────────────────────────────────────────┐
│ USER MESSAGE                                    │
│ [Source 1 - "handbook.txt"]                     │
│ chunk text                                      │
│ ---                                             │
│ [Source 2 - "faq.md"]                           │
│ chunk text                                      │
│                                                 │
│ Question: ...                                   │
└─────────────────────────────────────────────────┘
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

import structlog

from config.settings import RetryConfig, get_settings
from docqa.embeddings import create_azure_client
from docqa.retry import call_with_retry
from docqa.similarity import RankedChunk

logger = structlog.get_logger()

ANSWER_SERVICE = "Answer service"

CONTEXT_SEPARATOR = "\n\n---\n\n"

DEFAULT_SYSTEM_PROMPT = """You are a helpful assistant that answers questions based ONLY on the provided context from the user's documents. If the context doesn't contain enough information to answer the question, say so clearly.

When answering:
- Be accurate and concise
- Reference which source(s) you're drawing from by mentioning the document name
- If the answer comes from multiple sources, mention all of them
- Do not make up information not present in the context"""


@dataclass
class GenerationResult:
    """
    Result of generating an answer.

    - answer: What we show the user
    - sources: Citation dicts for the chunks used (RankedChunk.to_dict)
    - model: Deployment that produced the answer
    - usage: Token consumption
    - prompt: The user message sent, when requested for debugging
    """
    answer: str
    sources: List[Dict[str, Any]]
    model: str
    usage: Dict[str, int] = field(
        default_factory=lambda: {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}
    )
    prompt: Optional[str] = None


def build_context(chunks: Sequence[RankedChunk]) -> str:
    """
    Render ranked chunks as numbered, named sources.

    FORMAT:
    [Source 1 - "file.pdf"]
    chunk text

    ---

    [Source 2 - "notes.md"]
    chunk text
    """
    return CONTEXT_SEPARATOR.join(
        f'[Source {i} - "{chunk.document_name}"]\n{chunk.content}'
        for i, chunk in enumerate(chunks, 1)
    )


def build_user_message(question: str, context: str) -> str:
    """Context first, then the question."""
    return f"""Context from uploaded documents:
{context}

Question: {question}

Answer:"""


class Generator:
    """
    Generate answers using Azure OpenAI chat completions.

    RESPONSIBILITIES:
    1. Construct the prompt from ranked chunks
    2. Call the chat model (with retry)
    3. Report sources and token usage
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        deployment: Optional[str] = None,
        api_version: Optional[str] = None,
        system_prompt: Optional[str] = None,
        retry_config: Optional[RetryConfig] = None,
        client=None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Initialize the generator.

        Args:
            endpoint: Azure endpoint (defaults to settings)
            api_key: API key (defaults to settings)
            deployment: Model deployment name (defaults to settings)
            system_prompt: Custom system prompt (defaults to DEFAULT_SYSTEM_PROMPT)
            retry_config: Backoff policy (defaults to settings)
            client: Ready-made OpenAI-compatible client
            sleep: Override for the backoff sleep
        """
        settings = get_settings()

        self.deployment = deployment or settings.azure.chat_deployment
        self.system_prompt = system_prompt or DEFAULT_SYSTEM_PROMPT
        self.retry_config = retry_config or settings.retry
        self._sleep = sleep
        self.client = client or create_azure_client(endpoint, api_key, api_version)

    def generate(
        self,
        question: str,
        context_chunks: Sequence[RankedChunk],
        max_tokens: int = 1000,
        temperature: float = 0.3,
        include_prompt_in_result: bool = False,
    ) -> GenerationResult:
        """
        Generate an answer based on ranked context chunks.

        Args:
            question: The user's question (already sanitized)
            context_chunks: Relevant chunks, best first
            max_tokens: Maximum tokens in the response
            temperature: Sampling temperature, kept low for factual answers
            include_prompt_in_result: Whether to include the prompt for debugging

        Raises:
            ExternalServiceError: when every retry attempt failed
        """
        user_message = build_user_message(question, build_context(context_chunks))

        def _request():
            return self.client.chat.completions.create(
                model=self.deployment,
                messages=[
                    {"role": "system", "content": self.system_prompt},
                    {"role": "user", "content": user_message},
                ],
                max_tokens=max_tokens,
                temperature=temperature,
            )

        response = call_with_retry(
            _request,
            retry_config=self.retry_config,
            service=ANSWER_SERVICE,
            operation="generation",
            sleep=self._sleep,
        )

        answer = response.choices[0].message.content or ""
        usage = {
            "prompt_tokens": response.usage.prompt_tokens,
            "completion_tokens": response.usage.completion_tokens,
            "total_tokens": response.usage.total_tokens,
        }

        logger.info(
            "answer_generated",
            model=self.deployment,
            context_chunks=len(context_chunks),
            answer_length=len(answer),
            total_tokens=usage["total_tokens"],
        )

        return GenerationResult(
            answer=answer,
            sources=[chunk.to_dict() for chunk in context_chunks],
            model=self.deployment,
            usage=usage,
            prompt=user_message if include_prompt_in_result else None,
        )
