"""Unit tests for the portfolio series aligner."""

import math

from foliohub.series import (
    align_series,
    compute_baseline,
    forward_fill,
    pad_single_point,
    parse_timestamp,
    portfolio_values,
    trim_bars_for_range,
    union_timestamps,
)

T1 = "2025-02-14 09:30:00"
T2 = "2025-02-14 09:35:00"
T3 = "2025-02-14 09:40:00"
T4 = "2025-02-14 09:45:00"


def holding(symbol, shares):
    return {"symbol": symbol, "shares": shares}


class TestUnionTimestamps:
    """Test the unified time axis."""

    def test_identical_timestamp_sets_give_that_set(self):
        """Test symbols sharing timestamps produce exactly those, ascending."""
        bars = {
            "A": [(T1, 1.0), (T2, 2.0), (T3, 3.0)],
            "B": [(T1, 5.0), (T2, 6.0), (T3, 7.0)],
        }
        assert union_timestamps(bars) == [T1, T2, T3]

    def test_union_length_matches_distinct_timestamps(self):
        """Test axis length equals the number of distinct timestamps."""
        bars = {
            "A": [(T1, 1.0), (T3, 3.0)],
            "B": [(T2, 5.0), (T3, 6.0)],
            "C": [],
        }
        axis = union_timestamps(bars)
        assert axis == [T1, T2, T3]
        assert len(axis) == len({t for series in bars.values() for t, _ in series})

    def test_unsorted_input_is_sorted(self):
        """Test axis is ascending even when bars arrive out of order."""
        bars = {"A": [(T3, 3.0), (T1, 1.0)], "B": [(T2, 2.0)]}
        assert union_timestamps(bars) == [T1, T2, T3]

    def test_empty_input(self):
        """Test no symbols gives an empty axis."""
        assert union_timestamps({}) == []
        assert union_timestamps({"A": []}) == []


class TestForwardFill:
    """Test carry-forward alignment."""

    def test_carries_last_price_across_gaps(self):
        """Test a missing bar repeats the last known price."""
        aligned = forward_fill([(T1, 10.0), (T3, 12.0)], [T1, T2, T3, T4])
        assert aligned == [10.0, 10.0, 12.0, 12.0]

    def test_prefix_before_first_bar_is_nan(self):
        """Test points before a symbol's first bar are NaN."""
        aligned = forward_fill([(T3, 12.0)], [T1, T2, T3])
        assert math.isnan(aligned[0])
        assert math.isnan(aligned[1])
        assert aligned[2] == 12.0

    def test_carry_forward_uses_most_recent_sample(self):
        """Test the carried value is the closest earlier sample."""
        axis = [T1, T2, T3, T4]
        bars = [(T1, 1.0), (T2, 2.0)]
        aligned = forward_fill(bars, axis)
        assert aligned[2] == aligned[1] == 2.0
        assert aligned[3] == 2.0

    def test_length_matches_axis(self):
        """Test aligned array always has one entry per axis point."""
        axis = [T1, T2, T3, T4]
        assert len(forward_fill([(T2, 5.0)], axis)) == len(axis)


class TestAlignSeries:
    """Test full alignment and portfolio summation."""

    def test_reference_example(self):
        """Test 2 A + 1 B with B carried forward gives [40, 42]."""
        holdings = [holding("A", 2), holding("B", 1)]
        bars = {"A": [(T1, 10.0), (T2, 11.0)], "B": [(T1, 20.0)]}

        result = align_series(holdings, bars)

        assert result["times"] == [T1, T2]
        assert result["by_symbol_aligned"]["A"] == [10.0, 11.0]
        assert result["by_symbol_aligned"]["B"] == [20.0, 20.0]
        assert result["values"] == [40.0, 42.0]

    def test_symbols_without_samples_are_excluded(self):
        """Test a symbol with no bars never contributes or appears."""
        holdings = [holding("A", 1), holding("DEAD", 1000)]
        bars = {"A": [(T1, 10.0), (T2, 11.0)], "DEAD": []}

        result = align_series(holdings, bars)

        assert "DEAD" not in result["by_symbol_aligned"]
        assert result["values"] == [10.0, 11.0]

    def test_late_starting_symbol_skipped_until_first_bar(self):
        """Test NaN prefix points contribute nothing to the total."""
        holdings = [holding("A", 1), holding("B", 2)]
        bars = {"A": [(T1, 10.0), (T2, 10.0), (T3, 10.0)], "B": [(T2, 5.0)]}

        result = align_series(holdings, bars)

        assert result["values"] == [10.0, 20.0, 20.0]

    def test_holding_without_series_is_ignored(self):
        """Test a holding whose symbol was never fetched is skipped."""
        result = align_series(
            [holding("A", 1), holding("ZZZ", 5)], {"A": [(T1, 3.0)]}
        )
        assert result["values"] == [3.0]

    def test_duplicate_holdings_each_contribute(self):
        """Test two holdings of one symbol both count."""
        result = align_series(
            [holding("A", 1), holding("A", 2)], {"A": [(T1, 10.0)]}
        )
        assert result["values"] == [30.0]

    def test_empty_input(self):
        """Test no bars at all gives empty output."""
        result = align_series([holding("A", 1)], {"A": []})
        assert result == {"times": [], "values": [], "by_symbol_aligned": {}}

    def test_deterministic(self):
        """Test identical inputs give identical outputs."""
        holdings = [holding("A", 2), holding("B", 1)]
        bars = {"A": [(T1, 10.0), (T3, 11.0)], "B": [(T2, 20.0)]}
        first = align_series(holdings, bars)
        second = align_series(holdings, bars)
        assert first["times"] == second["times"]
        assert first["values"] == second["values"]


class TestPortfolioValues:
    """Test the per-point summation on its own."""

    def test_skips_nan_prices(self):
        """Test NaN aligned prices are skipped, finite ones summed."""
        aligned = {"A": [math.nan, 2.0], "B": [3.0, 3.0]}
        values = portfolio_values([holding("A", 10), holding("B", 1)], aligned, 2)
        assert values == [3.0, 23.0]


class TestPadSinglePoint:
    """Test lone-point padding for chart consumers."""

    def test_single_point_becomes_two_five_minutes_apart(self):
        """Test one point yields two equal points 5 minutes apart."""
        times, values = pad_single_point(["2025-02-14 15:55:00"], [123.0])
        assert times == ["2025-02-14 15:55:00", "2025-02-14 16:00:00"]
        assert values == [123.0, 123.0]

    def test_single_point_from_align_series(self):
        """Test a single sample in total pads to exactly two points."""
        result = align_series([holding("A", 3)], {"A": [(T1, 10.0)], "B": []})
        times, values = pad_single_point(result["times"], result["values"])
        assert len(times) == 2
        assert values == [30.0, 30.0]
        assert parse_timestamp(times[1]) - parse_timestamp(times[0]) == (
            parse_timestamp(T2) - parse_timestamp(T1)
        )

    def test_pad_crosses_midnight(self):
        """Test padding rolls the date over."""
        times, _ = pad_single_point(["2025-02-14 23:58:00"], [1.0])
        assert times[1] == "2025-02-15 00:03:00"

    def test_other_lengths_unchanged(self):
        """Test empty and multi-point series are returned as-is."""
        assert pad_single_point([], []) == ([], [])
        assert pad_single_point([T1, T2], [1.0, 2.0]) == ([T1, T2], [1.0, 2.0])

    def test_unparsable_timestamp_repeated(self):
        """Test an unparsable lone timestamp is duplicated."""
        times, values = pad_single_point(["not-a-time"], [5.0])
        assert times == ["not-a-time", "not-a-time"]
        assert values == [5.0, 5.0]


class TestTrimBarsForRange:
    """Test chart range windows."""

    def test_1d_keeps_latest_day(self):
        """Test 1D keeps only bars from the last calendar day present."""
        bars = [
            ("2025-02-13 15:55:00", 1.0),
            ("2025-02-14 09:30:00", 2.0),
            ("2025-02-14 09:35:00", 3.0),
        ]
        assert trim_bars_for_range(bars, "1D") == bars[1:]

    def test_1w_keeps_seven_days(self):
        """Test 1W drops bars older than 7 days before the last bar."""
        bars = [
            ("2025-02-06 10:00:00", 1.0),
            ("2025-02-07 10:00:00", 2.0),
            ("2025-02-14 10:00:00", 3.0),
        ]
        assert trim_bars_for_range(bars, "1W") == bars[1:]

    def test_1m_keeps_thirty_two_days(self):
        """Test 1M drops bars older than 32 days before the last bar."""
        bars = [
            ("2025-01-12 10:00:00", 1.0),
            ("2025-01-13 10:00:00", 2.0),
            ("2025-02-14 10:00:00", 3.0),
        ]
        assert trim_bars_for_range(bars, "1M") == bars[1:]

    def test_unknown_range_treated_as_1d(self):
        """Test an unknown hint behaves like 1D."""
        bars = [("2025-02-13 10:00:00", 1.0), ("2025-02-14 10:00:00", 2.0)]
        assert trim_bars_for_range(bars, "5Y") == bars[1:]

    def test_unparsable_last_timestamp_returns_bars(self):
        """Test multi-day ranges leave bars untouched if the end cannot be parsed."""
        bars = [("2025-02-13 10:00:00", 1.0), ("garbage", 2.0)]
        assert trim_bars_for_range(bars, "1W") == bars

    def test_empty(self):
        """Test empty input stays empty."""
        assert trim_bars_for_range([], "1W") == []


class TestComputeBaseline:
    """Test previous-close baseline."""

    def test_sums_shares_times_previous_close(self):
        """Test baseline uses previous close per holding."""
        quotes = {
            "A": {"price": 11.0, "previous_close": 10.0, "change_pct": None},
            "B": {"price": 21.0, "previous_close": 20.0, "change_pct": None},
        }
        baseline, per_symbol = compute_baseline(
            [holding("A", 2), holding("B", 1)], quotes
        )
        assert baseline == 40.0
        assert per_symbol == {"A": 10.0, "B": 20.0}

    def test_falls_back_to_price_then_zero(self):
        """Test missing previous close uses price; missing quote counts 0."""
        quotes = {"A": {"price": 7.0, "previous_close": None, "change_pct": None}}
        baseline, per_symbol = compute_baseline(
            [holding("A", 2), holding("C", 100)], quotes
        )
        assert baseline == 14.0
        assert per_symbol == {"A": 7.0}
        assert "C" not in per_symbol


class TestParseTimestamp:
    """Test timestamp parsing."""

    def test_fmp_format(self):
        assert parse_timestamp("2025-02-14 09:35:00").minute == 35

    def test_offset_converted_to_naive_utc(self):
        """Test offsets are normalized to naive UTC."""
        parsed = parse_timestamp("2025-02-14T10:00:00+01:00")
        assert parsed.tzinfo is None
        assert parsed.hour == 9

    def test_invalid(self):
        assert parse_timestamp("nope") is None
        assert parse_timestamp(None) is None
