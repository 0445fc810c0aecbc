"""
Unit tests for Pareto ranking and ABC classification.
"""

import pytest

from conftest import make_event
from pareto_analysis import ParetoRanker
from reliability_types import EventCategory, FailureReason


class TestParetoRanker:
    """Tests for grouping, ordering and cumulative shares."""

    def test_sorted_descending_with_cumulative_percent(self):
        result = ParetoRanker().rank([("B", 20.0), ("A", 70.0), ("D", 4.0), ("C", 6.0)])

        assert result.ok
        assert [row.key for row in result.rows] == ["A", "B", "C", "D"]
        cumulative = [row.cumulative_percent for row in result.rows]
        assert cumulative == sorted(cumulative)
        assert cumulative[-1] == pytest.approx(100.0)
        assert result.total == pytest.approx(100.0)

    def test_pairs_with_same_key_are_summed(self):
        result = ParetoRanker().rank([("P-1", 3.0), ("P-2", 4.0), ("P-1", 2.0)])
        assert [(row.key, row.value) for row in result.rows] == [("P-1", 5.0), ("P-2", 4.0)]

    def test_ties_keep_first_seen_order(self):
        """Equal totals are returned in the order their keys first appeared."""
        result = ParetoRanker().rank([("Z", 5.0), ("M", 5.0), ("A", 5.0), ("big", 10.0)])
        assert [row.key for row in result.rows] == ["big", "Z", "M", "A"]

    def test_abc_classes(self):
        """A row takes the class in which its contribution starts."""
        result = ParetoRanker().rank([("A", 70.0), ("B", 20.0), ("C", 6.0), ("D", 4.0)])
        assert [row.abc_class for row in result.rows] == ["A", "A", "B", "C"]
        assert result.vital_few == ["A", "B"]

    def test_share_percent(self):
        result = ParetoRanker().rank([("A", 3.0), ("B", 1.0)])
        assert [row.share_percent for row in result.rows] == pytest.approx([75.0, 25.0])

    def test_top_n_keeps_full_set_percentages(self):
        result = ParetoRanker().rank([("A", 50.0), ("B", 30.0), ("C", 20.0)], top_n=2)
        assert len(result.rows) == 2
        assert result.rows[-1].cumulative_percent == pytest.approx(80.0)
        assert result.total == pytest.approx(100.0)

    def test_invalid_top_n(self):
        assert ParetoRanker().rank([("A", 1.0)], top_n=0).reason is FailureReason.INVALID_INPUT

    def test_all_zero_is_insufficient(self):
        result = ParetoRanker().rank([("A", 0.0), ("B", 0.0)])
        assert not result.ok
        assert result.reason is FailureReason.DATA_INSUFFICIENT

    def test_empty_is_insufficient(self):
        assert ParetoRanker().rank([]).reason is FailureReason.DATA_INSUFFICIENT

    def test_negative_magnitude_rejected(self):
        assert ParetoRanker().rank([("A", 5.0), ("B", -1.0)]).reason is FailureReason.INVALID_INPUT

    def test_to_dataframe(self):
        df = ParetoRanker().rank([("A", 3.0), ("B", 1.0)]).to_dataframe()
        assert list(df.columns) == ["key", "value", "share_percent", "cumulative_percent", "abc_class"]
        assert df["key"].tolist() == ["A", "B"]

    def test_to_dict_status(self):
        data = ParetoRanker().rank([("A", 3.0)], basis="duration").to_dict()
        assert data["status"] == "Analysis complete"
        assert data["basis"] == "duration"
        assert data["rows"][0]["abc_class"] == "A"


class TestRankEvents:
    """Tests for ranking failure events directly."""

    @pytest.fixture
    def events(self):
        return [
            make_event("a1", "P-101", 0, 120, failure_mode="Seal Leak"),
            make_event("a2", "P-101", 10, 60, failure_mode="Bearing Failure"),
            make_event("b1", "C-201", 20, 30, failure_mode="Seal Leak"),
            make_event("b2", "C-201", 30, 30, failure_mode="Seal Leak"),
            make_event("b3", "C-201", 40, 30, failure_mode="Motor Trip"),
            make_event("p1", "C-201", 50, 600, category=EventCategory.PLANNED),
        ]

    def test_by_asset_duration_in_hours(self, events):
        result = ParetoRanker().rank_events(events)
        assert [(row.key, row.value) for row in result.rows] == [("P-101", 3.0), ("C-201", 1.5)]

    def test_by_asset_count(self, events):
        result = ParetoRanker().rank_events(events, basis="count")
        assert [(row.key, row.value) for row in result.rows] == [("C-201", 3.0), ("P-101", 2.0)]

    def test_by_failure_mode(self, events):
        result = ParetoRanker().rank_events(events, group_by="failure_mode", basis="count")
        assert result.rows[0].key == "Seal Leak"
        assert result.rows[0].value == 3.0

    def test_categories_none_includes_planned(self, events):
        result = ParetoRanker().rank_events(events, categories=None)
        assert result.rows[0].key == "C-201"
        assert result.rows[0].value == pytest.approx(11.5)

    def test_unknown_grouping(self, events):
        assert ParetoRanker().rank_events(events, group_by="shift").reason is FailureReason.INVALID_INPUT

    def test_unknown_basis(self, events):
        assert ParetoRanker().rank_events(events, basis="cost").reason is FailureReason.INVALID_INPUT
