"""
Property-based tests using Hypothesis for stackprobe.

These tests verify invariants of the scoring, similarity and validation
functions over a wide variety of inputs.
"""

import string

from hypothesis import assume, given, settings, strategies as st

from stackprobe.matcher import MAX_CONFIDENCE, compute_confidence
from stackprobe.references import parse_repository_reference, validate_repository_reference
from stackprobe.schemas import DetectionMethod, RawDetection
from stackprobe.similarity import levenshtein_distance, similarity
from stackprobe.summary import summarize_detections


# --- Custom Strategies ---

names = st.text(alphabet=string.ascii_letters + string.digits + ".-_ ", max_size=20)

confidences = st.floats(min_value=0.01, max_value=1.0, allow_nan=False, allow_infinity=False)


@st.composite
def raw_detection(draw: st.DrawFn) -> RawDetection:
    """Generate valid raw detections."""
    return RawDetection(
        detected_name=draw(st.text(min_size=1, max_size=20)),
        category=draw(st.sampled_from(["Frontend/Design", "Backend/Database", "DevOps/Deployment"])),
        confidence_score=draw(confidences),
        detection_method=draw(st.sampled_from(list(DetectionMethod))),
        matched_file_paths=["package.json"],
        estimated_monthly_cost=draw(st.floats(min_value=0, max_value=1000, allow_nan=False)),
    )


# --- Edit Distance ---

class TestLevenshteinProperties:
    """Metric properties of the edit distance."""

    @given(names)
    def test_identity(self, a):
        assert levenshtein_distance(a, a) == 0

    @given(names, names)
    def test_symmetry(self, a, b):
        assert levenshtein_distance(a, b) == levenshtein_distance(b, a)

    @given(names, names)
    def test_bounds(self, a, b):
        distance = levenshtein_distance(a, b)
        assert abs(len(a) - len(b)) <= distance <= max(len(a), len(b))

    @given(names, names, names)
    @settings(max_examples=50)
    def test_triangle_inequality(self, a, b, c):
        assert levenshtein_distance(a, c) <= levenshtein_distance(a, b) + levenshtein_distance(b, c)

    @given(names)
    def test_case_insensitive(self, a):
        assert levenshtein_distance(a.upper(), a.lower()) == 0

    def test_known_values(self):
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("Redis", "redis") == 0


class TestSimilarityProperties:
    """Properties of the normalized similarity."""

    @given(names)
    def test_self_similarity(self, a):
        assert similarity(a, a) == 1.0

    @given(names, names)
    def test_symmetry(self, a, b):
        assert similarity(a, b) == similarity(b, a)

    @given(names, names)
    def test_range(self, a, b):
        assert 0.0 <= similarity(a, b) <= 1.0

    @given(names, names)
    def test_one_only_when_equal_ignoring_case(self, a, b):
        assume(a.lower() != b.lower())
        assert similarity(a, b) < 1.0


# --- Confidence ---

class TestConfidenceProperties:
    """Bounds and monotonicity of confidence scoring."""

    @given(confidences, st.booleans(), st.integers(min_value=1, max_value=50))
    def test_bounded(self, base, has_version, count):
        score = compute_confidence(base, has_version, count)
        assert base <= score <= MAX_CONFIDENCE

    @given(confidences, st.integers(min_value=1, max_value=50))
    def test_version_never_lowers(self, base, count):
        assert compute_confidence(base, True, count) >= compute_confidence(base, False, count)

    @given(confidences, st.booleans())
    def test_multi_file_never_lowers(self, base, has_version):
        assert compute_confidence(base, has_version, 2) >= compute_confidence(base, has_version, 1)


# --- Summary ---

class TestSummaryProperties:
    """Invariants of detection summaries."""

    @given(st.lists(raw_detection(), max_size=15))
    def test_totals(self, detections):
        summary = summarize_detections(detections)
        assert summary.total_tools == len(detections)
        assert 0.0 <= summary.average_confidence <= 1.0
        assert len(summary.distinct_categories) == len(set(summary.distinct_categories))
        assert set(summary.distinct_categories) == {d.category for d in detections}

    @given(st.lists(raw_detection(), min_size=1, max_size=15))
    def test_average_within_extremes(self, detections):
        summary = summarize_detections(detections)
        scores = [d.confidence_score for d in detections]
        assert min(scores) - 1e-9 <= summary.average_confidence <= max(scores) + 1e-9


# --- Reference Validation ---

class TestReferenceProperties:
    """Validation never raises and accepted references are clean."""

    @given(st.text(max_size=200))
    def test_never_raises(self, url):
        reference, reason = validate_repository_reference(url)
        assert (reference is None) != (reason is None)

    @given(
        st.text(alphabet=string.ascii_lowercase + string.digits + "-_", min_size=1, max_size=20),
        st.text(alphabet=string.ascii_lowercase + string.digits + "-_", min_size=1, max_size=20),
    )
    def test_clean_names_accepted(self, owner, repo):
        assume(not owner.startswith("-") and not repo.startswith("-"))
        assume("localhost" not in owner and "localhost" not in repo)
        reference = parse_repository_reference(f"https://github.com/{owner}/{repo}")
        assert reference is not None
        assert (reference.owner, reference.repo) == (owner, repo)

    @given(st.text(min_size=1, max_size=50))
    def test_accepted_segments_have_no_traversal(self, segment):
        reference = parse_repository_reference(f"https://github.com/{segment}/repo")
        if reference is not None:
            assert ".." not in reference.owner
            assert "/" not in reference.owner
