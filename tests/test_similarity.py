"""
Unit tests for cosine similarity and top-k ranking.
"""

import math

import pytest

from docqa.errors import VectorLengthMismatchError
from docqa.similarity import (
    ChunkWithEmbedding,
    RankedChunk,
    cosine_similarity,
    filter_relevant,
    find_top_k,
)


def make_chunk(chunk_id, embedding, document_id="doc-1", document_name="test.txt"):
    return ChunkWithEmbedding(
        id=chunk_id,
        document_id=document_id,
        document_name=document_name,
        content=f"Content for {chunk_id}",
        chunk_index=0,
        embedding=embedding,
    )


@pytest.fixture
def candidates():
    return [
        make_chunk("a", [1, 0, 0]),      # same direction as the query
        make_chunk("b", [0, 1, 0]),      # orthogonal
        make_chunk("c", [0.9, 0.1, 0]),  # very similar
        make_chunk("d", [-1, 0, 0]),     # opposite
        make_chunk("e", [0.5, 0.5, 0]),  # moderate
    ]


class TestCosineSimilarity:

    def test_identical_vectors(self):
        assert cosine_similarity([1, 2, 3], [1, 2, 3]) == pytest.approx(1.0)

    def test_scaled_vectors(self):
        assert cosine_similarity([1, 2, 3], [10, 20, 30]) == pytest.approx(1.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1, 0, 0], [-1, 0, 0]) == pytest.approx(-1.0)
        assert cosine_similarity([0.3, -2.0, 5.5], [-0.3, 2.0, -5.5]) == pytest.approx(-1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1, 0, 0], [0, 1, 0]) == pytest.approx(0.0)

    def test_zero_vector(self):
        assert cosine_similarity([0, 0, 0], [1, 2, 3]) == 0
        assert cosine_similarity([1, 2, 3], [0, 0, 0]) == 0
        assert cosine_similarity([0, 0, 0], [0, 0, 0]) == 0

    def test_known_value(self):
        # 32 / (sqrt(14) * sqrt(77))
        expected = 32 / (math.sqrt(14) * math.sqrt(77))
        result = cosine_similarity([1, 2, 3], [4, 5, 6])

        assert result == pytest.approx(expected)
        assert result == pytest.approx(0.9746, abs=1e-4)

    def test_returns_python_float(self):
        assert isinstance(cosine_similarity([1, 2], [3, 4]), float)

    def test_length_mismatch(self):
        with pytest.raises(VectorLengthMismatchError, match="Vector length mismatch: 2 vs 3"):
            cosine_similarity([1, 2], [1, 2, 3])

    def test_length_mismatch_is_value_error(self):
        with pytest.raises(ValueError):
            cosine_similarity([1, 2, 3], [1])


class TestFindTopK:

    def test_sorted_descending(self, candidates):
        top = find_top_k([1, 0, 0], candidates, 3)

        assert [r.id for r in top] == ["a", "c", "e"]
        for previous, following in zip(top, top[1:]):
            assert following.similarity <= previous.similarity

    def test_limits_results_to_k(self, candidates):
        assert len(find_top_k([1, 0, 0], candidates, 2)) == 2

    def test_default_k_is_five(self, candidates):
        many = candidates + [make_chunk(f"x{i}", [0, 0, 1]) for i in range(5)]
        assert len(find_top_k([1, 0, 0], many)) == 5

    def test_k_larger_than_candidates(self, candidates):
        top = find_top_k([1, 0, 0], candidates, 100)

        assert len(top) == len(candidates)
        assert top[-1].id == "d"
        assert top[-1].similarity == pytest.approx(-1.0)

    def test_zero_or_negative_k(self, candidates):
        assert find_top_k([1, 0, 0], candidates, 0) == []
        assert find_top_k([1, 0, 0], candidates, -3) == []

    def test_no_candidates(self):
        assert find_top_k([1, 0, 0], [], 5) == []

    def test_similarity_included(self, candidates):
        top = find_top_k([1, 0, 0], candidates, 1)
        assert top[0].similarity == pytest.approx(1.0)

    def test_results_carry_chunk_fields_without_embedding(self):
        chunk = ChunkWithEmbedding(
            id="chunk-7",
            document_id="doc-9",
            document_name="handbook.pdf",
            content="Refunds take five days.",
            chunk_index=3,
            embedding=[0.2, 0.4],
        )

        (ranked,) = find_top_k([0.2, 0.4], [chunk], 1)

        assert isinstance(ranked, RankedChunk)
        assert not hasattr(ranked, "embedding")
        assert ranked.id == "chunk-7"
        assert ranked.document_id == "doc-9"
        assert ranked.document_name == "handbook.pdf"
        assert ranked.content == "Refunds take five days."
        assert ranked.chunk_index == 3

    def test_ties_keep_input_order(self):
        tied = [make_chunk(name, [1, 1]) for name in ["first", "second", "third"]]
        top = find_top_k([1, 1], [make_chunk("close", [2, 2.5])] + tied, 4)

        assert [r.id for r in top] == ["first", "second", "third", "close"]

    def test_ties_are_deterministic(self):
        tied = [make_chunk(f"t{i}", [0, 3]) for i in range(6)]

        first = [r.id for r in find_top_k([0, 1], tied, 6)]
        second = [r.id for r in find_top_k([0, 1], tied, 6)]

        assert first == second == [f"t{i}" for i in range(6)]

    def test_single_malformed_candidate_fails_whole_call(self, candidates):
        bad = candidates + [make_chunk("bad", [1, 0])]

        with pytest.raises(VectorLengthMismatchError):
            find_top_k([1, 0, 0], bad, 3)

    def test_accepts_any_sequence_of_floats(self):
        chunk = make_chunk("t", (0.5, 0.5))
        assert find_top_k((1.0, 1.0), [chunk], 1)[0].similarity == pytest.approx(1.0)


class TestFilterRelevant:

    def test_threshold_is_exclusive(self):
        ranked = [
            RankedChunk("a", "d", "n", "x", 0, 0.9),
            RankedChunk("b", "d", "n", "x", 1, 0.3),
            RankedChunk("c", "d", "n", "x", 2, 0.1),
        ]

        assert [r.id for r in filter_relevant(ranked, 0.3)] == ["a"]

    def test_to_dict_rounds_similarity(self):
        ranked = RankedChunk("a", "doc-1", "faq.md", "text", 0, 0.87654)

        assert ranked.to_dict() == {
            "documentName": "faq.md",
            "documentId": "doc-1",
            "chunkText": "text",
            "similarity": 0.88,
        }
