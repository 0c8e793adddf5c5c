"""
docqa - Demo Script

Indexes one or more documents and answers questions about them from the
console.

BEFORE RUNNING:
1. Create a .env file with your Azure credentials:
   - AZURE_OPENAI_ENDPOINT=https://<resource>.openai.azure.com/
   - AZURE_OPENAI_API_KEY=your-api-key

RUN:
    python demo.py handbook.pdf faq.md
    python demo.py handbook.pdf --question "How many PTO days do new employees get?"
"""

import argparse
import os
import sys

from config.settings import get_settings
from docqa.errors import AppError
from docqa.logging_config import configure_logging
from docqa.rag_pipeline import RAGPipeline


def print_answer(result):
    print(f"A: {result.answer}")
    if result.sources:
        names = dict.fromkeys(source["documentName"] for source in result.sources)
        print(f"\n📚 Sources: {', '.join(names)}")
    print(f"⏱️ Time: {result.timing['total_ms']:.0f}ms")
    if result.generation_result:
        print(f"📊 Tokens used: {result.generation_result.usage['total_tokens']}")
    print("-" * 60)
    print()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Ask questions about your documents")
    parser.add_argument("files", nargs="*", help="Documents to index (.txt, .md, .pdf)")
    parser.add_argument("--question", "-q", action="append", default=[],
                        help="Question to ask (repeatable); interactive mode if omitted")
    args = parser.parse_args(argv)

    configure_logging(get_settings().log_level)

    print("=" * 60)
    print("Document Q&A Demo")
    print("=" * 60)
    print()

    rag = RAGPipeline()

    for path in args.files:
        try:
            with open(path, "rb") as f:
                record = rag.upload_document(os.path.basename(path), f.read())
            print(f"✓ Indexed {record.name}: {record.chunk_count} chunks")
        except (OSError, AppError) as e:
            print(f"✗ Could not index {path}: {e}")
    print()

    stats = rag.get_stats()
    print(f"✓ Documents indexed: {stats['indexed_documents']}")
    print(f"✓ Total chunks: {stats['total_chunks']}")
    print("-" * 60)
    print()

    for question in args.question:
        print(f"Q: {question}")
        try:
            print_answer(rag.ask(question))
        except AppError as e:
            print(f"✗ {e}")
    if args.question:
        return 0

    print("Interactive Mode - Ask your own questions!")
    print("Type 'quit' to exit")
    print()

    while True:
        question = input("Your question: ").strip()

        if question.lower() in ["quit", "exit", "q"]:
            print("Goodbye!")
            return 0

        if not question:
            continue

        try:
            print_answer(rag.ask(question))
        except AppError as e:
            print(f"✗ {e}")


if __name__ == "__main__":
    sys.exit(main())
