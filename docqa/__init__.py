# docqa package
from .chunking import chunk_text, chunk_document, Chunk, ParagraphChunker, DocumentLoader
from .similarity import ChunkWithEmbedding, RankedChunk, cosine_similarity, find_top_k
from .errors import (
    AppError,
    ValidationError,
    NotFoundError,
    RateLimitError,
    ExternalServiceError,
    VectorLengthMismatchError,
)
from .store import DocumentStore, DocumentRecord
from .embeddings import EmbeddingClient
from .generator import Generator
from .rag_pipeline import RAGPipeline, create_rag_system
