"""
Unit tests for vector math helpers.

Tests for:
- Cosine similarity properties (symmetry, self-similarity, zero vectors)
- Dimension mismatch rejection
- L2 normalisation
"""

import math

import pytest

from ragchat.src.core.exceptions import VectorDimensionError
from ragchat.src.utils.vector_math import cosine_similarity, l2_norm, l2_normalize


class TestCosineSimilarity:
    """Tests for the cosine_similarity function."""

    def test_identical_vectors(self):
        """Test similarity of a vector with itself is 1.0."""
        vec = [1.0, 2.0, 3.0, 4.0]
        assert abs(cosine_similarity(vec, vec) - 1.0) < 1e-9

    def test_symmetric(self):
        """Test cosine(a, b) == cosine(b, a)."""
        a = [0.3, -1.2, 4.0]
        b = [2.5, 0.1, -0.7]
        assert abs(cosine_similarity(a, b) - cosine_similarity(b, a)) < 1e-12

    def test_equal_norm_vectors(self):
        """Test symmetry and self-similarity for vectors of equal norm."""
        a = l2_normalize([1.0, 2.0, 2.0])
        b = l2_normalize([2.0, 1.0, -2.0])
        assert abs(cosine_similarity(a, b) - cosine_similarity(b, a)) < 1e-12
        assert abs(cosine_similarity(a, a) - 1.0) < 1e-9
        assert abs(cosine_similarity(b, b) - 1.0) < 1e-9

    def test_orthogonal_vectors(self):
        """Test similarity of orthogonal vectors is 0.0."""
        assert abs(cosine_similarity([1.0, 0.0], [0.0, 1.0])) < 1e-12

    def test_opposite_vectors(self):
        """Test similarity of opposite vectors is -1.0."""
        assert abs(cosine_similarity([1.0, 0.0, 0.0], [-1.0, 0.0, 0.0]) + 1.0) < 1e-12

    def test_magnitude_independent(self):
        """Test scaling a vector does not change similarity."""
        a = [1.0, 2.0, 3.0]
        b = [4.0, 5.0, 6.0]
        scaled = [v * 10 for v in a]
        assert abs(cosine_similarity(a, b) - cosine_similarity(scaled, b)) < 1e-12

    def test_zero_vector_is_zero(self):
        """Test a zero-norm vector scores 0 against anything, without dividing by zero."""
        assert cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0
        assert cosine_similarity([1.0, 2.0, 3.0], [0.0, 0.0, 0.0]) == 0.0
        assert cosine_similarity([0.0, 0.0], [0.0, 0.0]) == 0.0

    def test_dimension_mismatch_raises(self):
        """Test vectors of different lengths are rejected."""
        with pytest.raises(VectorDimensionError) as exc_info:
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])
        assert exc_info.value.left == 2
        assert exc_info.value.right == 3

    def test_dimension_error_is_value_error(self):
        """Test callers catching ValueError also catch dimension errors."""
        with pytest.raises(ValueError):
            cosine_similarity([1.0], [1.0, 1.0])


class TestNormalize:
    """Tests for l2_norm and l2_normalize."""

    def test_norm(self):
        assert l2_norm([3.0, 4.0]) == 5.0

    def test_normalize_unit_length(self):
        vec = l2_normalize([3.0, 4.0])
        assert vec == [0.6, 0.8]
        assert math.isclose(l2_norm(vec), 1.0)

    def test_normalize_zero_vector(self):
        """Test normalising a zero vector returns zeros, not NaN."""
        assert l2_normalize([0.0, 0.0, 0.0]) == [0.0, 0.0, 0.0]
