"""Tests for cosine similarity."""

import math

import pytest

from bank_grounding.core.errors import DimensionMismatch
from bank_grounding.retrieval.similarity import cosine_similarity


def test_identical_vectors_score_one() -> None:
    assert cosine_similarity([0.3, -1.2, 4.0], [0.3, -1.2, 4.0]) == pytest.approx(1.0)


def test_opposite_vectors_score_minus_one() -> None:
    assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)


def test_orthogonal_vectors_score_zero() -> None:
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)


def test_zero_vector_scores_zero() -> None:
    assert cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0
    assert cosine_similarity([1.0, 2.0, 3.0], [0.0, 0.0, 0.0]) == 0.0


def test_symmetric_and_scale_invariant() -> None:
    a = [0.2, 0.9, -0.4]
    b = [1.5, -0.3, 0.8]
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))
    assert cosine_similarity([value * 7 for value in a], b) == pytest.approx(cosine_similarity(a, b))


def test_diagonal_against_axis() -> None:
    assert cosine_similarity([1.0, 0.0], [0.7, 0.7]) == pytest.approx(1 / math.sqrt(2))


def test_length_mismatch_raises() -> None:
    with pytest.raises(DimensionMismatch) as excinfo:
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])
    assert excinfo.value.expected == 2
    assert excinfo.value.actual == 3


@pytest.mark.parametrize(
    ("a", "b"),
    [
        ([math.nan, 1.0], [1.0, 0.0]),
        ([math.inf, 0.0], [0.0, 1.0]),
        ([1.0, 0.0], [-math.inf, 1.0]),
    ],
)
def test_non_finite_components_raise(a, b) -> None:
    with pytest.raises(ValueError, match="finite"):
        cosine_similarity(a, b)


def test_overflowing_magnitude_raises() -> None:
    with pytest.raises(ValueError):
        cosine_similarity([1e200, 1e200], [1e200, 1e200])
