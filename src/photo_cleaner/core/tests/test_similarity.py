"""Tests for similar item clustering."""

import pytest

from ..exceptions import ScanCancelledError
from ..similarity import SimilarityClusterer, select_best_item
from .fakes import make_item

BASE_FP = 0xABC0_0000_0000_0000


def flip(fingerprint: int, *bits: int) -> int:
    """Flip the given low-order bits of a fingerprint."""
    for bit in bits:
        fingerprint ^= 1 << bit
    return fingerprint


class TestSelectBestItem:
    """Test cases for select_best_item."""

    def test_largest_area_wins(self) -> None:
        small = make_item("small", minutes=5, width=100, height=100)
        large = make_item("large", minutes=0, width=200, height=100)

        assert select_best_item([small, large]).id == "large"

    def test_newer_wins_on_equal_area(self) -> None:
        old = make_item("old", minutes=0, width=100, height=200)
        new = make_item("new", minutes=3, width=200, height=100)

        assert select_best_item([old, new]).id == "new"

    def test_empty_group(self) -> None:
        with pytest.raises(ValueError):
            select_best_item([])


class TestSimilarityClusterer:
    """Test cases for SimilarityClusterer class."""

    def setup_method(self) -> None:
        """Set up test fixtures."""
        self.clusterer = SimilarityClusterer(threshold=8, prefix_bits=12)

    def test_near_identical_items_cluster(self) -> None:
        entries = [
            (make_item("a", minutes=0), BASE_FP),
            (make_item("b", minutes=1), flip(BASE_FP, 0, 1, 2)),
            (make_item("c", minutes=2), flip(BASE_FP, 10, 11)),
        ]

        clusters = self.clusterer.cluster(entries)

        assert len(clusters) == 1
        assert [item.id for item in clusters[0].items] == ["a", "b", "c"]
        assert clusters[0].representative.id == "a"

    def test_threshold_is_inclusive(self) -> None:
        at_threshold = flip(BASE_FP, *range(8))
        past_threshold = flip(BASE_FP, *range(9))

        assert self.clusterer.cluster(
            [(make_item("a"), BASE_FP), (make_item("b", minutes=1), at_threshold)]
        )
        assert not self.clusterer.cluster(
            [(make_item("a"), BASE_FP), (make_item("b", minutes=1), past_threshold)]
        )

    def test_singletons_are_dropped(self) -> None:
        entries = [
            (make_item("a"), BASE_FP),
            (make_item("b", minutes=1), flip(BASE_FP, *range(20))),
        ]

        assert self.clusterer.cluster(entries) == []
        assert self.clusterer.stats["singletons_dropped"] == 2

    def test_different_prefixes_never_compared(self) -> None:
        # One bit apart, but in the prefix
        other_prefix = BASE_FP ^ (1 << 63)
        entries = [(make_item("a"), BASE_FP), (make_item("b", minutes=1), other_prefix)]

        assert self.clusterer.cluster(entries) == []
        assert self.clusterer.stats["comparisons"] == 0

    def test_membership_is_anchored_on_representative(self) -> None:
        """Items close to a member but not to the representative start their own cluster."""
        rep = BASE_FP
        member = flip(rep, *range(6))  # 6 from rep
        far = flip(rep, *range(9))  # 9 from rep, 3 from member
        entries = [
            (make_item("rep", minutes=0), rep),
            (make_item("member", minutes=1), member),
            (make_item("far", minutes=2), far),
        ]

        clusters = self.clusterer.cluster(entries)

        assert len(clusters) == 1
        assert [item.id for item in clusters[0].items] == ["rep", "member"]

    def test_item_joins_first_matching_cluster(self) -> None:
        first_rep = BASE_FP
        second_rep = flip(BASE_FP, *range(10))
        between = flip(BASE_FP, *range(5))  # 5 from both representatives
        entries = [
            (make_item("r1", minutes=0), first_rep),
            (make_item("r2", minutes=1), second_rep),
            (make_item("x", minutes=2), between),
            (make_item("y", minutes=3), second_rep),
        ]

        clusters = self.clusterer.cluster(entries)
        by_id = {cluster.cluster_id: [item.id for item in cluster.items] for cluster in clusters}

        assert by_id == {"similar-r1": ["r1", "x"], "similar-r2": ["r2", "y"]}

    def test_items_processed_in_creation_order(self) -> None:
        # Fetched newest first; the oldest still becomes the representative
        entries = [
            (make_item("new", minutes=20), BASE_FP),
            (make_item("old", minutes=0), flip(BASE_FP, 1)),
        ]

        cluster = self.clusterer.cluster(entries)[0]

        assert cluster.representative.id == "old"
        assert cluster.cluster_id == "similar-old"

    def test_best_item_recorded(self) -> None:
        entries = [
            (make_item("a", minutes=0, width=100, height=100), BASE_FP),
            (make_item("b", minutes=1, width=400, height=300), flip(BASE_FP, 1)),
            (make_item("c", minutes=2, width=100, height=100), flip(BASE_FP, 2)),
        ]

        cluster = self.clusterer.cluster(entries)[0]

        assert cluster.best_id == "b"
        assert cluster.delete_candidate_ids == ["c", "a"]

    def test_clusters_sorted_newest_first(self) -> None:
        other = 0x1230_0000_0000_0000
        entries = [
            (make_item("early-1", minutes=0), BASE_FP),
            (make_item("early-2", minutes=1), BASE_FP),
            (make_item("late-1", minutes=60), other),
            (make_item("late-2", minutes=61), other),
        ]

        clusters = self.clusterer.cluster(entries)

        assert [c.cluster_id for c in clusters] == ["similar-late-1", "similar-early-1"]

    def test_check_cancel_aborts(self) -> None:
        def cancel() -> None:
            raise ScanCancelledError()

        entries = [(make_item("a"), BASE_FP), (make_item("b", minutes=1), BASE_FP)]

        with pytest.raises(ScanCancelledError):
            self.clusterer.cluster(entries, check_cancel=cancel)

    def test_stats_reset_between_runs(self) -> None:
        entries = [(make_item("a"), BASE_FP), (make_item("b", minutes=1), BASE_FP)]

        self.clusterer.cluster(entries)
        self.clusterer.cluster(entries)

        assert self.clusterer.stats["buckets_analyzed"] == 1
        assert self.clusterer.stats["comparisons"] == 1
