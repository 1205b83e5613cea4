"""
Catalog aggregation and run summary tests.
"""

from datetime import timedelta

import pytest

from ptk.aggregator import Aggregator
from ptk.classifier import Classifier
from ptk.correlator import Correlator
from ptk.models import Direction, format_duration

R = Direction.FROM_DEVICE


def _run(ops, **kw):
    corr = Correlator(**kw).correlate(ops)
    pairs = Classifier().classify(corr.pairs)
    return pairs, corr


class TestFormatDuration:
    @pytest.mark.parametrize(
        "delta,text",
        [
            (timedelta(microseconds=250), "250µs"),
            (timedelta(milliseconds=1), "1.0ms"),
            (timedelta(microseconds=12345), "12.3ms"),
            (timedelta(seconds=2, milliseconds=500), "2.50s"),
            (timedelta(microseconds=999), "999µs"),
            (timedelta(microseconds=999960), "1.00s"),
            (timedelta(microseconds=999949), "999.9ms"),
            (None, "unknown"),
        ],
    )
    def test_units(self, delta, text):
        assert format_duration(delta) == text


class TestAggregate:
    """Deduplication by canonical hex key."""

    def test_repeated_command_folds(self, make_op):
        ops = [
            make_op(b"\x02", timestamp="10:00:00.000000"),
            make_op(b"\x06", R, timestamp="10:00:00.001000"),
            make_op(b"\x02", timestamp="10:00:01.000000", line=3),
            make_op(b"\x15", R, timestamp="10:00:01.003000"),
        ]
        pairs, _ = _run(ops)
        profiles = Aggregator().aggregate(pairs)
        assert len(profiles) == 1
        p = profiles[0]
        assert p.hex_key == "02"
        assert p.occurrences == 2
        assert p.response_variants == ["06", "15"]
        assert p.success_rate == pytest.approx(50.0)
        assert p.timing_average == "2.0ms"
        assert p.timing_average_us == pytest.approx(2000.0)
        assert p.timestamp_first == "10:00:00.000000"
        assert p.timestamp_last == "10:00:01.000000"
        assert p.line_numbers == [1, 3]

    def test_duplicate_response_not_repeated(self, make_op):
        ops = [make_op(b"\x02"), make_op(b"\x06", R), make_op(b"\x02"), make_op(b"\x06", R)]
        pairs, _ = _run(ops)
        assert Aggregator().aggregate(pairs)[0].response_variants == ["06"]

    def test_unknown_timing_excluded_from_average(self, make_op):
        ops = [
            make_op(b"\x02", timestamp="10:00:00.000000"),
            make_op(b"\x06", R, timestamp="10:00:00.000400"),
            make_op(b"\x02", timestamp=""),
            make_op(b"\x06", R, timestamp="10:00:00.100000"),
        ]
        pairs, _ = _run(ops)
        assert Aggregator().aggregate(pairs)[0].timing_average == "400µs"

    def test_no_valid_timing(self, make_op):
        ops = [make_op(b"\x02", timestamp=""), make_op(b"\x06", R, timestamp="")]
        pairs, _ = _run(ops)
        p = Aggregator().aggregate(pairs)[0]
        assert p.timing_average == "unknown"
        assert p.timing_average_us is None

    def test_no_responses_gives_no_success_rate(self, make_op):
        pairs, _ = _run([make_op(b"\x52"), make_op(b"\x52")])
        p = Aggregator().aggregate(pairs)[0]
        assert p.success_rate is None
        assert p.success_rate_text == "n/a"
        assert p.response_variants == []

    def test_sorted_by_occurrences_then_first_seen(self, make_op):
        ops = [make_op(b"\x01"), make_op(b"\x02"), make_op(b"\x03"), make_op(b"\x02"), make_op(b"\x03")]
        pairs, _ = _run(ops)
        keys = [p.hex_key for p in Aggregator().aggregate(pairs)]
        assert keys == ["02", "03", "01"]

    def test_occurrences_conserved(self, make_op):
        payloads = [b"\x01", b"\x02", b"\x01", b"R\x00", b"\x01", b"\x02"]
        ops = []
        for pl in payloads:
            ops += [make_op(pl), make_op(b"\x06", R)]
        pairs, _ = _run(ops)
        profiles = Aggregator().aggregate(pairs)
        assert sum(p.occurrences for p in profiles) == len(pairs)

    def test_first_pair_details_kept(self, make_op):
        ops = [make_op(b"\x02AB"), make_op(b"\x06", R)]
        pairs, _ = _run(ops)
        p = Aggregator().aggregate(pairs)[0]
        assert p.command_label == "STX (Start of Text)"
        assert p.response_pattern == "ACK (Acknowledge)"
        assert p.response_hex == "06"
        assert p.is_handshake


class TestSummarize:
    """Run-level statistics."""

    def test_counts(self, make_op):
        ops = [
            make_op(b"\x15", R, timestamp="09:59:59.000000"),
            make_op(b"\x02", timestamp="10:00:00.000000"),
            make_op(b"\x06", R, timestamp="10:00:00.002000"),
            make_op(b"\x52\x00", timestamp="10:00:01.000000"),
            make_op(b"\x02", timestamp="10:00:02.000000"),
            make_op(b"\x15", R, timestamp="10:00:02.004000"),
        ]
        pairs, corr = _run(ops)
        s = Aggregator().summarize(pairs, ops, len(corr.orphan_responses))
        assert s.total_operations == 6
        assert s.commands == 3
        assert s.responses == 3
        assert s.pairs == 3
        assert s.handshakes == 2
        assert s.unanswered_commands == 1
        assert s.orphan_responses == 1
        assert s.nak_count == 2
        assert s.distinct_commands == 2
        assert s.categories == {"Control Command": 3}
        assert s.command_labels["STX (Start of Text)"] == 2
        assert s.channels == {"3": "Read/Write"}
        assert s.first_timestamp == "09:59:59.000000"
        assert s.last_timestamp == "10:00:02.004000"
        assert s.average_response_time == "3.0ms"

    def test_channel_usage(self, make_op):
        ops = [make_op(b"\x02", channel="4"), make_op(b"\x06", R, channel="5")]
        pairs, _ = _run(ops)
        s = Aggregator().summarize(pairs, ops)
        assert s.channels == {"4": "Write (to device)", "5": "Read (from device)"}
        assert s.to_dict()["channels"] == s.channels
