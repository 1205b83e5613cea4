#!/usr/bin/env python3
"""
Line grammar -> Operation sequence.

One pass over the input, no lookahead beyond the hex-dump block currently
being accumulated. Lines that match nothing are counted and skipped.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from ptk.escapes import decode_escaped
from ptk.formats import (
    HEADER_RE,
    SYSCALL_RE,
    TAGGED_RE,
    TraceFormat,
    detect_format,
    dump_hex,
)
from ptk.models import Direction, Operation

log = logging.getLogger(__name__)

_HEX_RUN_RE = re.compile(r"[0-9A-Fa-f]+")
_COMMAND_HINT_RE = re.compile(r"\b(cmd|tx|write)\b", re.IGNORECASE)

FALLBACK = "fallback"


@dataclass
class ParseStats:
    total_lines: int = 0
    matched_lines: int = 0
    blank_lines: int = 0
    skipped_lines: int = 0
    grammar: str = ""
    confidence: str = "high"

    def coverage_text(self) -> str:
        return f"{self.matched_lines} of {self.total_lines} lines matched a known grammar"

    def to_dict(self) -> dict:
        return {
            "total_lines": self.total_lines,
            "matched_lines": self.matched_lines,
            "blank_lines": self.blank_lines,
            "skipped_lines": self.skipped_lines,
            "grammar": self.grammar,
            "confidence": self.confidence,
        }


@dataclass
class TokenizeResult:
    operations: List[Operation] = field(default_factory=list)
    stats: ParseStats = field(default_factory=ParseStats)


def _direction(call: str) -> Direction:
    return Direction.TO_DEVICE if call == "write" else Direction.FROM_DEVICE


def _hex_to_bytes(text: str) -> Optional[bytes]:
    compact = re.sub(r"\s+", "", text)
    if not compact or len(compact) % 2:
        return None
    try:
        return bytes.fromhex(compact)
    except ValueError:
        return None


class TraceTokenizer:
    """
    Turns trace lines into Operations.

    fmt=None auto-detects the grammar from the content. When the chosen grammar
    yields nothing at all, a longest-hex-run scan is tried and its result is
    marked low confidence.
    """

    def __init__(self, fmt: Optional[TraceFormat] = None):
        self.fmt = fmt

    def tokenize(self, lines: Iterable[str]) -> TokenizeResult:
        buf = [ln.rstrip("\r\n") for ln in lines]
        fmt = self.fmt or detect_format(buf)
        log.debug("tokenizing %d lines as %s", len(buf), fmt.value)

        if fmt is TraceFormat.HEXDUMP:
            ops, stats = self._hexdump(buf)
        elif fmt is TraceFormat.TAGGED:
            ops, stats = self._tagged(buf)
        else:
            ops, stats = self._syscall(buf)
        stats.grammar = fmt.value

        if not ops and stats.total_lines > stats.blank_lines:
            f_ops, f_stats = self._fallback(buf)
            if f_ops:
                log.warning(
                    "No %s operations found; fallback hex scan recovered %d (low confidence)",
                    fmt.value,
                    len(f_ops),
                )
                return TokenizeResult(f_ops, f_stats)

        log.info("%s: %d operations", stats.coverage_text(), len(ops))
        return TokenizeResult(ops, stats)

    # --- grammars ---

    @staticmethod
    def _new_stats(buf: List[str]) -> ParseStats:
        st = ParseStats(total_lines=len(buf))
        st.blank_lines = sum(1 for ln in buf if not ln.strip())
        return st

    def _skip(self, st: ParseStats, lineno: int, line: str) -> None:
        st.skipped_lines += 1
        log.debug("line %d skipped: %.80r", lineno, line)

    def _syscall(self, buf: List[str]) -> Tuple[List[Operation], ParseStats]:
        st = self._new_stats(buf)
        ops: List[Operation] = []
        for lineno, line in enumerate(buf, start=1):
            s = line.strip()
            if not s:
                continue
            m = SYSCALL_RE.match(s)
            if not m:
                self._skip(st, lineno, s)
                continue
            ret = int(m.group("ret"))
            if ret < 0:
                # Failed call: nothing crossed the wire.
                self._skip(st, lineno, s)
                continue
            st.matched_lines += 1
            payload = decode_escaped(m.group("data"))[:ret]
            if not payload:
                continue
            ops.append(
                Operation(
                    direction=_direction(m.group("call")),
                    timestamp=m.group("ts"),
                    channel_id=m.group("fd"),
                    payload=payload,
                    source_line=lineno,
                )
            )
        return ops, st

    def _hexdump(self, buf: List[str]) -> Tuple[List[Operation], ParseStats]:
        st = self._new_stats(buf)
        ops: List[Operation] = []
        header = None
        header_line = 0
        chunks: List[str] = []

        def flush() -> None:
            if header is None:
                return
            payload = _hex_to_bytes("".join(chunks)) or b""
            if payload:
                ops.append(
                    Operation(
                        direction=_direction(header.group("call")),
                        timestamp=header.group("ts"),
                        channel_id=header.group("fd"),
                        payload=payload,
                        source_line=header_line,
                    )
                )

        for lineno, line in enumerate(buf, start=1):
            s = line.strip()
            if not s:
                flush()
                header, chunks = None, []
                continue
            hx = dump_hex(s)
            if hx is not None and header is not None:
                chunks.append(hx)
                st.matched_lines += 1
                continue
            flush()
            header, chunks = None, []
            m = HEADER_RE.match(s)
            if m:
                header, header_line = m, lineno
                st.matched_lines += 1
            else:
                self._skip(st, lineno, s)
        flush()
        return ops, st

    def _tagged(self, buf: List[str]) -> Tuple[List[Operation], ParseStats]:
        st = self._new_stats(buf)
        ops: List[Operation] = []
        seen_command = False
        for lineno, line in enumerate(buf, start=1):
            s = line.strip()
            if not s:
                continue
            m = TAGGED_RE.match(s)
            payload = _hex_to_bytes(m.group("hex")) if m else None
            if not m or payload is None:
                self._skip(st, lineno, s)
                continue
            st.matched_lines += 1
            if m.group("tag") == "CMD":
                seen_command = True
                direction = Direction.TO_DEVICE
            elif not seen_command:
                log.debug("line %d: response before any command ignored", lineno)
                continue
            else:
                direction = Direction.FROM_DEVICE
            ops.append(
                Operation(
                    direction=direction,
                    timestamp="",
                    channel_id="",
                    payload=payload,
                    source_line=lineno,
                )
            )
        return ops, st

    def _fallback(self, buf: List[str]) -> Tuple[List[Operation], ParseStats]:
        st = self._new_stats(buf)
        st.grammar = FALLBACK
        st.confidence = "low"
        ops: List[Operation] = []
        seen_command = False
        for lineno, line in enumerate(buf, start=1):
            s = line.strip()
            if not s:
                continue
            runs = _HEX_RUN_RE.findall(s)
            best = max(runs, key=len) if runs else ""
            if len(best) < 2:
                self._skip(st, lineno, s)
                continue
            payload = _hex_to_bytes(best if len(best) % 2 == 0 else best[:-1])
            if not payload:
                self._skip(st, lineno, s)
                continue
            if _COMMAND_HINT_RE.search(s):
                seen_command = True
                direction = Direction.TO_DEVICE
            elif seen_command:
                direction = Direction.FROM_DEVICE
            else:
                self._skip(st, lineno, s)
                continue
            st.matched_lines += 1
            ops.append(
                Operation(
                    direction=direction,
                    timestamp="",
                    channel_id="",
                    payload=payload,
                    source_line=lineno,
                )
            )
        return ops, st
