"""
Document Chunking Module

WHY CHUNKING IS NECESSARY:
1. Embeddings work better on focused, coherent passages
2. Retrieval is more precise with smaller, specific chunks
3. Whole documents would overwhelm the answer model's context

THE STRATEGY (paragraph first, sentences as fallback):

1. Normalize line endings and split on blank lines (paragraphs)
2. Greedily merge paragraphs until the next one would exceed max_chunk_size
3. A paragraph that is too big on its own is split into sentences,
   which are merged with the same rule
4. Every new chunk starts with the last `overlap` characters of the
   previous one
5. Chunks shorter than min_chunk_length are dropped

OVERLAP:
When "The policy is 30 days." ends one chunk and "Contact support for
help." starts the next, the second chunk loses the subject. Carrying the
tail of the previous chunk forward keeps some of that context in both
embeddings.

SIZE BOUND:
max_chunk_size is a target, not a hard cap. The overlap seed plus one
paragraph (or one sentence) may push a chunk slightly past it.
"""

import io
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import PyPDF2
from PyPDF2.errors import PdfReadError
import structlog

from config.settings import get_settings
from docqa.errors import ValidationError

logger = structlog.get_logger()

DEFAULT_MAX_CHUNK_SIZE = 500
DEFAULT_OVERLAP = 50
MIN_CHUNK_LENGTH = 20

PARAGRAPH_SEPARATOR = "\n\n"

# A newline, an optional whitespace-only line, another newline
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")

# Text up to and including terminal punctuation plus trailing whitespace,
# or a trailing run that never reaches any punctuation.
_SENTENCE = re.compile(r"[^.!?]*[.!?]+\s*|[^.!?]+$")


@dataclass
class Chunk:
    """
    A piece of a document.

    - content: trimmed chunk text
    - chunk_index: zero-based position in emission order
    - source: which document this came from (for citations)
    - total_chunks: how many chunks the document produced
    """
    content: str
    chunk_index: int
    source: str = "unknown"
    total_chunks: Optional[int] = None

    def __repr__(self):
        preview = self.content[:50] + "..." if len(self.content) > 50 else self.content
        return f"Chunk({self.source}, idx={self.chunk_index}, text='{preview}')"


def _tail(text: str, overlap: int) -> str:
    """Last `overlap` characters of text (nothing when overlap is 0)."""
    if overlap <= 0:
        return ""
    return text[-overlap:]


def _split_sentences(paragraph: str) -> List[str]:
    return _SENTENCE.findall(paragraph) or [paragraph]


def _chunk_oversized_paragraph(
    paragraph: str,
    max_chunk_size: int,
    overlap: int,
) -> List[str]:
    """Split one paragraph longer than max_chunk_size on sentence boundaries."""
    chunks = []
    buffer = ""

    for sentence in _split_sentences(paragraph):
        if len(buffer + sentence) > max_chunk_size and buffer:
            flushed = buffer.strip()
            chunks.append(flushed)
            tail = _tail(flushed, overlap)
            # keep the whitespace trimmed off the flushed chunk between tail and sentence
            gap = buffer[len(buffer.rstrip()):] if tail else ""
            buffer = tail + gap + sentence
        else:
            buffer += sentence

    if buffer.strip():
        chunks.append(buffer.strip())

    return chunks


def chunk_text(
    text: str,
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
    min_chunk_length: int = MIN_CHUNK_LENGTH,
) -> List[str]:
    """
    Split text into overlapping chunks for embedding.

    Args:
        text: The raw document text
        max_chunk_size: Target maximum characters per chunk
        overlap: Characters of the previous chunk repeated at the start of the next
        min_chunk_length: Chunks shorter than this are discarded

    Returns:
        Ordered list of trimmed, non-empty chunk strings

    Example:
        >>> chunk_text("First paragraph.\\n\\nSecond paragraph.", min_chunk_length=1)
        ['First paragraph.\\n\\nSecond paragraph.']
    """
    if not text or not text.strip():
        return []

    normalized = text.replace("\r\n", "\n").strip()

    paragraphs = [p.strip() for p in _PARAGRAPH_BREAK.split(normalized)]
    paragraphs = [p for p in paragraphs if p]
    if not paragraphs:
        return []

    chunks = []
    current = ""

    for paragraph in paragraphs:
        if len(paragraph) > max_chunk_size:
            if current.strip():
                chunks.append(current.strip())
            current = ""
            chunks.extend(
                _chunk_oversized_paragraph(paragraph, max_chunk_size, overlap)
            )
            continue

        candidate = current + PARAGRAPH_SEPARATOR + paragraph if current else paragraph

        if len(candidate) > max_chunk_size and current:
            flushed = current.strip()
            chunks.append(flushed)

            seed = _tail(flushed, overlap)
            current = seed + PARAGRAPH_SEPARATOR + paragraph if seed else paragraph
        else:
            current = candidate

    if current.strip():
        chunks.append(current.strip())

    return [chunk for chunk in chunks if len(chunk) >= min_chunk_length]


class DocumentLoader:
    """
    Extract text from uploaded files.

    Supported formats: .txt, .md, .text (UTF-8) and .pdf (PyPDF2).
    """

    TEXT_SUFFIXES = (".txt", ".md", ".text")
    TEXT_MIME_TYPES = ("text/plain", "text/markdown", "application/octet-stream")
    PDF_MIME_TYPE = "application/pdf"

    @staticmethod
    def load(file_path: str) -> Tuple[str, dict]:
        """
        Load a document from disk and return (text, metadata).
        """
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        return DocumentLoader.load_bytes(path.name, path.read_bytes())

    @staticmethod
    def load_bytes(
        filename: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> Tuple[str, dict]:
        """
        Extract text from an in-memory upload.

        The extension decides the format; the MIME type is used when the
        extension is not a known one.

        Returns:
            tuple: (document_text, metadata_dict)
        """
        suffix = Path(filename).suffix.lower()

        if suffix == ".pdf" or content_type == DocumentLoader.PDF_MIME_TYPE:
            return DocumentLoader._load_pdf(filename, data)
        if (
            suffix in DocumentLoader.TEXT_SUFFIXES
            or content_type in DocumentLoader.TEXT_MIME_TYPES
        ):
            return DocumentLoader._load_txt(filename, data)
        raise ValidationError("Only .txt, .md, and .pdf files are supported")

    @staticmethod
    def _load_txt(filename: str, data: bytes) -> Tuple[str, dict]:
        text = data.decode("utf-8", errors="replace")
        return text, {"source": filename, "format": "txt"}

    @staticmethod
    def _load_pdf(filename: str, data: bytes) -> Tuple[str, dict]:
        """Pages are joined with blank lines so each page starts a new paragraph."""
        try:
            reader = PyPDF2.PdfReader(io.BytesIO(data))
            text_parts = [page.extract_text() or "" for page in reader.pages]
        except PdfReadError as e:
            logger.warning("pdf_extraction_failed", source=filename, error=str(e))
            raise ValidationError("File is empty or contains no extractable text") from e

        return PARAGRAPH_SEPARATOR.join(text_parts), {
            "source": filename,
            "format": "pdf",
            "page_count": len(reader.pages),
        }


class ParagraphChunker:
    """
    Configured chunker producing Chunk objects.

    Defaults come from ChunkingConfig so the UI, the demo and the pipeline
    all split documents the same way.
    """

    def __init__(
        self,
        max_chunk_size: Optional[int] = None,
        overlap: Optional[int] = None,
        min_chunk_length: Optional[int] = None,
    ):
        """
        Initialize the chunker.

        Args:
            max_chunk_size: Target size for each chunk in characters
            overlap: How many characters to carry into the next chunk
            min_chunk_length: Minimum size to keep a chunk
        """
        defaults = get_settings().chunking

        self.max_chunk_size = (
            defaults.max_chunk_size if max_chunk_size is None else max_chunk_size
        )
        self.overlap = defaults.overlap if overlap is None else overlap
        self.min_chunk_length = (
            defaults.min_chunk_length if min_chunk_length is None else min_chunk_length
        )

        if self.max_chunk_size <= 0:
            raise ValueError(f"max_chunk_size must be positive, got {self.max_chunk_size}")
        if self.overlap < 0:
            raise ValueError(f"overlap must not be negative, got {self.overlap}")

    def chunk_text(self, text: str, source: str = "unknown") -> List[Chunk]:
        """
        Split text into Chunk objects.

        Args:
            text: The full document text
            source: Source identifier (filename, URL, etc.)
        """
        pieces = chunk_text(
            text,
            max_chunk_size=self.max_chunk_size,
            overlap=self.overlap,
            min_chunk_length=self.min_chunk_length,
        )

        chunks = [
            Chunk(content=piece, chunk_index=i, source=source, total_chunks=len(pieces))
            for i, piece in enumerate(pieces)
        ]

        logger.debug(
            "chunks_created",
            source=source,
            text_length=len(text),
            chunk_count=len(chunks),
            max_chunk_size=self.max_chunk_size,
            overlap=self.overlap,
        )
        return chunks


def chunk_document(
    file_path: str,
    max_chunk_size: Optional[int] = None,
    overlap: Optional[int] = None,
) -> List[Chunk]:
    """
    Convenience function to load and chunk a document.

    Example:
        chunks = chunk_document("policy.pdf", max_chunk_size=800)
        for chunk in chunks:
            print(f"Chunk {chunk.chunk_index}: {chunk.content[:100]}...")
    """
    text, metadata = DocumentLoader.load(file_path)

    chunker = ParagraphChunker(max_chunk_size=max_chunk_size, overlap=overlap)
    return chunker.chunk_text(text, source=metadata["source"])
