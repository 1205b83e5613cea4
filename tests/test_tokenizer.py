"""
Format detection and tokenizer tests.
"""

import pytest

from ptk.formats import TraceFormat, detect_format, dump_hex
from ptk.models import Direction
from ptk.tokenizer import TraceTokenizer


class TestDetectFormat:
    """Content-based grammar detection."""

    def test_syscall(self, syscall_lines):
        assert detect_format(syscall_lines) is TraceFormat.SYSCALL

    def test_hexdump(self, hexdump_lines):
        assert detect_format(hexdump_lines) is TraceFormat.HEXDUMP

    def test_tagged(self, tagged_lines):
        assert detect_format(tagged_lines) is TraceFormat.TAGGED

    def test_leading_noise_is_ignored(self, syscall_lines):
        lines = ["", "strace: Process 4242 attached", "open(\"/dev/ttyUSB0\")"] + syscall_lines
        assert detect_format(lines) is TraceFormat.SYSCALL

    def test_unrecognized_defaults_to_syscall(self):
        assert detect_format(["hello", "world"]) is TraceFormat.SYSCALL
        assert detect_format([]) is TraceFormat.SYSCALL

    def test_parse_name(self):
        assert TraceFormat.parse("HexDump") is TraceFormat.HEXDUMP
        with pytest.raises(ValueError):
            TraceFormat.parse("pcap")


class TestDumpLine:
    """Hex extraction from strace dump rows."""

    def test_full_row_ignores_ascii_column(self):
        row = ' | 00000  57 00 10 00 11 22 33 44  55 66 77 88 99 aa bb cc  W....\\"3DUfw.... |'
        assert dump_hex(row) == "57001000112233445566778899aabbcc"

    def test_short_row(self):
        row = " | 00010  dd ee f0 01                                       ....             |"
        assert dump_hex(row) == "ddeef001"

    def test_not_a_dump_row(self):
        assert dump_hex("10:00:00.000000 write(3, \"A\", 1) = 1") is None


class TestSyscallGrammar:
    """Inline escaped-literal traces."""

    def test_directions_and_payloads(self, syscall_lines):
        result = TraceTokenizer().tokenize(syscall_lines)
        ops = result.operations
        assert [op.direction for op in ops] == [Direction.TO_DEVICE, Direction.FROM_DEVICE]
        assert ops[0].payload == b"\x02AB"
        assert ops[0].timestamp == "10:00:00.000000"
        assert ops[0].channel_id == "3"
        assert ops[1].source_line == 2

    def test_pid_prefix_accepted(self):
        lines = ['4242 10:00:00.000000 write(3, "R", 1) = 1']
        ops = TraceTokenizer().tokenize(lines).operations
        assert len(ops) == 1
        assert ops[0].payload == b"R"

    def test_truncated_literal_marker(self):
        lines = ['10:00:00.000000 read(3, "\\x06\\x00"..., 64) = 64']
        ops = TraceTokenizer().tokenize(lines).operations
        assert ops[0].payload == b"\x06\x00"

    def test_failed_call_skipped(self):
        lines = [
            '10:00:00.000000 write(3, "\\x02\\x41\\x42", 3) = -1 EAGAIN (Resource temporarily unavailable)',
            '10:00:00.000500 write(3, "\\x02\\x41\\x42", 3) = 3',
            '10:00:00.001000 read(3, "\\x06", 1) = 1',
        ]
        result = TraceTokenizer().tokenize(lines)
        assert [op.source_line for op in result.operations] == [2, 3]
        assert result.stats.skipped_lines == 1
        assert result.stats.matched_lines == 2

    def test_partial_write_truncated_to_return_value(self):
        lines = ['10:00:00.000000 write(3, "\\x02\\x41\\x42", 3) = 1']
        ops = TraceTokenizer().tokenize(lines).operations
        assert ops[0].payload == b"\x02"

    def test_empty_payload_dropped(self):
        lines = [
            '10:00:00.000000 read(3, "", 64) = 0',
            '10:00:00.000100 write(3, "\\x02", 1) = 1',
        ]
        result = TraceTokenizer().tokenize(lines)
        assert len(result.operations) == 1
        assert all(op.payload for op in result.operations)

    def test_unmatched_lines_skipped_and_counted(self, syscall_lines):
        lines = [syscall_lines[0], "garbage line", "", syscall_lines[1]]
        result = TraceTokenizer().tokenize(lines)
        assert len(result.operations) == 2
        assert result.operations[1].source_line == 4
        assert result.stats.total_lines == 4
        assert result.stats.matched_lines == 2
        assert result.stats.skipped_lines == 1
        assert result.stats.blank_lines == 1
        assert result.stats.coverage_text() == "2 of 4 lines matched a known grammar"


class TestHexdumpGrammar:
    """Header plus dump-row traces."""

    def test_accumulates_rows(self, hexdump_lines):
        result = TraceTokenizer().tokenize(hexdump_lines)
        ops = result.operations
        assert result.stats.grammar == "hexdump"
        assert len(ops) == 4
        assert ops[0].payload == b"PROGRAM"
        assert ops[2].length == 20
        assert ops[2].payload[-4:] == b"\xdd\xee\xf0\x01"
        assert ops[2].timestamp == "10:00:00.002000"
        assert ops[2].source_line == 5

    def test_header_without_rows_emits_nothing(self):
        lines = [
            "10:00:00.000000 write(5, \"\", 0) = 0",
            "10:00:00.000100 write(5, \"R\", 1) = 1",
            " | 00000  52                                               R                |",
        ]
        ops = TraceTokenizer(TraceFormat.HEXDUMP).tokenize(lines).operations
        assert len(ops) == 1
        assert ops[0].payload == b"R"


class TestTaggedGrammar:
    """CMD:/RSP: prefixed hex."""

    def test_leading_response_ignored(self, tagged_lines):
        ops = TraceTokenizer().tokenize(tagged_lines).operations
        assert ops[0].direction is Direction.TO_DEVICE
        assert ops[0].payload == b"\x02PR"
        assert len(ops) == 4

    def test_whitespace_insensitive(self):
        ops = TraceTokenizer().tokenize(["CMD: 0 2 4 1", "RSP:06"]).operations
        assert ops[0].payload == b"\x02\x41"
        assert ops[1].payload == b"\x06"

    def test_bad_hex_skipped(self):
        result = TraceTokenizer().tokenize(["CMD: zz", "CMD: 02", "RSP: 06"])
        assert len(result.operations) == 2
        assert result.stats.skipped_lines == 1


class TestFallbackScan:
    """Best-effort scan for unknown dialects."""

    def test_longest_hex_run_with_keywords(self):
        lines = [
            "TX -> 02414243",
            "RX <- 06",
        ]
        result = TraceTokenizer().tokenize(lines)
        assert result.stats.confidence == "low"
        assert result.stats.grammar == "fallback"
        assert [op.payload for op in result.operations] == [b"\x02ABC", b"\x06"]
        assert result.operations[1].direction is Direction.FROM_DEVICE

    def test_response_before_command_ignored(self):
        lines = ["rx 15", "tx 02", "rx 06"]
        ops = TraceTokenizer().tokenize(lines).operations
        assert [op.payload for op in ops] == [b"\x02", b"\x06"]

    def test_not_used_when_grammar_matches(self, syscall_lines):
        result = TraceTokenizer().tokenize(syscall_lines)
        assert result.stats.confidence == "high"

    def test_nothing_recognizable(self):
        result = TraceTokenizer().tokenize(["hello there", "no data"])
        assert result.operations == []
