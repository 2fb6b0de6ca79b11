import pytest

from src.session_attendance.session_attendance.core.exceptions import NotEnrolledError, ValidationError
from src.session_attendance.session_attendance.verification.similarity import SimilarityMatcher
from tests.fakes import unit, vector_with_score


def test_identical_vectors_score_one_and_match():
    matcher = SimilarityMatcher(threshold=0.65, dimension=4)
    v = [0.3, -0.1, 0.8, 0.2]

    result = matcher.match(v, v)

    assert result.is_match
    assert result.score == pytest.approx(1.0)
    assert result.threshold == 0.65


def test_opposite_vectors_score_minus_one():
    matcher = SimilarityMatcher(dimension=4)
    v = [0.3, -0.1, 0.8, 0.2]

    result = matcher.match(v, [-x for x in v])

    assert not result.is_match
    assert result.score == pytest.approx(-1.0)


def test_score_is_symmetric():
    matcher = SimilarityMatcher(dimension=4)
    a = [1.0, 2.0, 3.0, 4.0]
    b = [4.0, 1.0, 0.5, 2.0]

    assert matcher.score(a, b) == pytest.approx(matcher.score(b, a))


def test_threshold_is_inclusive():
    matcher = SimilarityMatcher(threshold=1.0, dimension=4)

    assert matcher.match(unit(4), unit(4)).is_match


def test_scores_either_side_of_threshold():
    matcher = SimilarityMatcher(threshold=0.65, dimension=4)

    assert matcher.match(vector_with_score(0.66, 4), unit(4)).is_match
    assert not matcher.match(vector_with_score(0.64, 4), unit(4)).is_match


def test_zero_vector_fails_closed():
    matcher = SimilarityMatcher(dimension=4)

    result = matcher.match([0.0, 0.0, 0.0, 0.0], unit(4))

    assert not result.is_match
    assert result.score == 0.0


def test_missing_reference_is_not_enrolled():
    matcher = SimilarityMatcher(dimension=4)

    with pytest.raises(NotEnrolledError):
        matcher.match(unit(4), None)


def test_wrong_dimension_rejected_before_reference_lookup():
    matcher = SimilarityMatcher(dimension=4)

    with pytest.raises(ValidationError):
        matcher.match([1.0, 0.0, 0.0], None)


@pytest.mark.parametrize(
    "bad",
    [
        "abc",
        [1.0, float("nan"), 0.0, 0.0],
        [[1.0, 0.0], [0.0, 1.0]],
        None,
        5,
        ["0.5", "0.5", "0.5", "0.5"],
        [True, False, True, False],
        {"a": 1.0},
    ],
)
def test_degenerate_input_rejected(bad):
    matcher = SimilarityMatcher(dimension=4)

    with pytest.raises(ValidationError):
        matcher.match(bad, unit(4))


def test_integer_components_are_accepted():
    matcher = SimilarityMatcher(dimension=4)

    assert matcher.match([1, 0, 0, 0], unit(4)).is_match
