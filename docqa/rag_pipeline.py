"""
RAG Pipeline - The Complete System

Orchestrates the components into a working document Q&A service:

INDEXING PHASE (once per uploaded document):
┌──────────┐    ┌──────────┐    ┌──────────┐    ┌──────────┐
│  Upload  │───▶│ Chunking │───▶│Embedding │───▶│  SQLite  │
│(txt, pdf)│    │ (split)  │    │(1 by 1)  │    │  store   │
└──────────┘    └──────────┘    └──────────┘    └──────────┘

QUERY PHASE (for each question):
┌──────────┐    ┌──────────┐    ┌──────────────┐    ┌──────────┐
│ Question │───▶│Embedding │───▶│ Rank all     │───▶│ Chat     │
│          │    │          │    │ chunk vectors│    │ model    │
└──────────┘    └──────────┘    └──────────────┘    └──────────┘

The chunker and the ranker are pure functions; this module owns the order
of calls, input validation, and what happens when a stage has nothing to
work with.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from config.settings import Settings, get_settings
from docqa.chunking import DocumentLoader, ParagraphChunker
from docqa.embeddings import EmbeddingClient
from docqa.errors import NotFoundError, ValidationError
from docqa.generator import GenerationResult, Generator
from docqa.sanitize import sanitize_filename, sanitize_input
from docqa.similarity import RankedChunk, filter_relevant, find_top_k
from docqa.store import DocumentRecord, DocumentStore

logger = structlog.get_logger()

NO_RELEVANT_ANSWER = (
    "I couldn't find relevant information in the uploaded documents to answer "
    "your question. Try rephrasing your question or upload more relevant documents."
)


@dataclass
class QueryResult:
    """
    Result of a RAG query.

    - answer: What we tell the user
    - sources: Citation dicts for the chunks used
    - retrieved_chunks: The ranked chunks that passed the similarity threshold
    - generation_result: Model output and usage (None when nothing was relevant)
    - timing: Milliseconds per stage
    """
    question: str
    answer: str
    sources: List[Dict[str, Any]]
    retrieved_chunks: List[RankedChunk]
    generation_result: Optional[GenerationResult] = None
    timing: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"answer": self.answer, "sources": self.sources}


class RAGPipeline:
    """
    Complete RAG system that handles both indexing and querying.

    USAGE:
        rag = RAGPipeline()

        # Index documents
        with open("handbook.pdf", "rb") as f:
            rag.upload_document("handbook.pdf", f.read())

        # Ask questions
        result = rag.ask("What is the return policy?")
        print(result.answer)

    COMPONENTS:
    - ParagraphChunker: splits text into overlapping chunks
    - EmbeddingClient: converts text to vectors
    - DocumentStore: persists documents, chunks and vectors
    - Generator: writes answers from ranked context
    Every component can be injected, which is how tests run offline.
    """

    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        embedding_client: Optional[EmbeddingClient] = None,
        generator: Optional[Generator] = None,
        chunker: Optional[ParagraphChunker] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()

        self.store = store or DocumentStore(self.settings.database.path)
        self.embedding_client = embedding_client or EmbeddingClient()
        self.generator = generator or Generator()
        self.chunker = chunker or ParagraphChunker(
            max_chunk_size=self.settings.chunking.max_chunk_size,
            overlap=self.settings.chunking.overlap,
            min_chunk_length=self.settings.chunking.min_chunk_length,
        )

        self.top_k = self.settings.retrieval.top_k
        self.min_similarity = self.settings.retrieval.min_similarity

    # Indexing

    def _validate_upload(self, filename: str, data: bytes, content_type: Optional[str]):
        upload = self.settings.upload

        if not filename:
            raise ValidationError("No file provided")

        suffix = Path(filename).suffix.lower()
        if content_type not in upload.valid_mime_types and suffix not in upload.valid_extensions:
            raise ValidationError("Only .txt, .md, and .pdf files are supported")

        if len(data) > upload.max_file_size:
            raise ValidationError(
                f"File size must be less than {upload.max_file_size // (1024 * 1024)}MB"
            )

    def upload_document(
        self,
        filename: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> DocumentRecord:
        """
        Validate, extract, chunk, embed and store an uploaded file.

        Args:
            filename: Name of the uploaded file
            data: Raw file bytes
            content_type: MIME type reported by the client, if any

        Returns:
            The stored DocumentRecord

        Raises:
            ValidationError: unsupported type, too large, or no text
            ExternalServiceError: the embedding service failed
        """
        self._validate_upload(filename, data, content_type)

        name = sanitize_filename(filename)
        text, _ = DocumentLoader.load_bytes(name, data, content_type)

        if not text.strip():
            raise ValidationError("File is empty or contains no extractable text")

        return self.index_text(text, name)

    def index_text(self, text: str, name: str = "manual_input") -> DocumentRecord:
        """
        Index raw text directly.

        Every chunk is embedded before anything is written, so a failing
        embedding request leaves no half-indexed document behind.
        """
        start_time = time.time()

        chunks = self.chunker.chunk_text(text, source=name)
        contents = [chunk.content for chunk in chunks]

        embedding_results = self.embedding_client.embed_batch(contents)
        embeddings = [result.embedding for result in embedding_results]

        record = self.store.add_document(name, text, contents, embeddings)

        logger.info(
            "document_indexed",
            document_id=record.id,
            name=name,
            chunks_created=len(chunks),
            tokens_used=sum(result.token_count for result in embedding_results),
            time_seconds=round(time.time() - start_time, 3),
        )
        return record

    def list_documents(self) -> List[DocumentRecord]:
        return self.store.list_documents()

    def delete_document(self, document_id: str) -> None:
        """
        Delete a document and its chunks.

        Raises:
            ValidationError: empty id
            NotFoundError: no such document
        """
        if not document_id:
            raise ValidationError("Document ID is required")

        if not self.store.delete_document(document_id):
            raise NotFoundError("Document")

    # Querying

    def _validate_question(self, question: Any) -> str:
        cleaned = sanitize_input(question)
        if cleaned is None:
            raise ValidationError("Please provide a non-empty question")

        max_length = self.settings.upload.max_question_length
        if len(cleaned) > max_length:
            raise ValidationError(f"Question must be less than {max_length} characters")

        if self.store.count_documents() == 0:
            raise ValidationError(
                "No documents uploaded yet. Please upload some documents first."
            )
        if self.store.count_embedded_chunks() == 0:
            raise ValidationError(
                "Documents are still being processed. Please try again shortly."
            )
        return cleaned

    def ask(self, question: Any) -> QueryResult:
        """
        Answer a question from the indexed documents.

        WHAT HAPPENS:
        1. Validate and sanitize the question
        2. Embed it
        3. Rank every stored chunk against it and keep the top k
        4. Drop chunks at or below the similarity threshold
        5. Generate an answer from what is left (or say nothing matched)

        Raises:
            ValidationError: bad question or empty knowledge base
            ExternalServiceError: embedding or answer service failed
        """
        question = self._validate_question(question)
        timing = {}

        start = time.time()
        question_embedding = self.embedding_client.embed(question).embedding
        timing["embedding_ms"] = (time.time() - start) * 1000

        start = time.time()
        candidates = self.store.load_chunks_with_embeddings()
        ranked = find_top_k(question_embedding, candidates, self.top_k)
        relevant = filter_relevant(ranked, self.min_similarity)
        timing["search_ms"] = (time.time() - start) * 1000

        logger.info(
            "retrieval_completed",
            question_length=len(question),
            candidates=len(candidates),
            ranked=len(ranked),
            relevant=len(relevant),
            top_similarity=ranked[0].similarity if ranked else None,
        )

        if not relevant:
            timing["generation_ms"] = 0.0
            timing["total_ms"] = sum(timing.values())
            return QueryResult(
                question=question,
                answer=NO_RELEVANT_ANSWER,
                sources=[],
                retrieved_chunks=[],
                timing=timing,
            )

        start = time.time()
        generation_result = self.generator.generate(question, relevant)
        timing["generation_ms"] = (time.time() - start) * 1000
        timing["total_ms"] = sum(timing.values())

        return QueryResult(
            question=question,
            answer=generation_result.answer,
            sources=generation_result.sources,
            retrieved_chunks=relevant,
            generation_result=generation_result,
            timing=timing,
        )

    # Monitoring

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the knowledge base."""
        documents = self.store.list_documents()
        return {
            "indexed_documents": len(documents),
            "total_chunks": sum(doc.chunk_count for doc in documents),
            "documents": [doc.name for doc in documents],
        }

    def status(self) -> Dict[str, Any]:
        """
        Health of the backend, the database and the model service.

        "healthy" only when every service reports ok, "degraded" otherwise.
        """
        start = time.perf_counter()

        backend = {"status": "ok", "responseTime": 0}
        database = self.store.check_health()
        llm = self.embedding_client.check_health()

        all_ok = database.ok and llm.ok
        return {
            "status": "healthy" if all_ok else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "totalResponseTime": round((time.perf_counter() - start) * 1000),
            "services": {
                "backend": backend,
                "database": database.to_dict(),
                "llm": llm.to_dict(),
            },
        }


def create_rag_system() -> RAGPipeline:
    """Create a RAG system with default settings."""
    return RAGPipeline()
