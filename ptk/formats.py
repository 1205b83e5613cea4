#!/usr/bin/env python3
"""
Trace dialect detection.

Three line grammars are understood:

  SYSCALL   10:00:00.000000 write(3, "\\x02AB", 3) = 3
            (an optional leading PID column is accepted)
  HEXDUMP   12345 10:00:00.000000 write(3, ..., 3) = 3
             | 00000  02 41 42                                         .AB              |
  TAGGED    CMD: 02 41 42
            RSP: 06

Detection is content based and looks at the first operation-like line only
(plus the line after it for the dump case).
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Iterable, List, Optional


class TraceFormat(str, Enum):
    SYSCALL = "syscall"
    HEXDUMP = "hexdump"
    TAGGED = "tagged"

    @staticmethod
    def parse(name: str) -> "TraceFormat":
        key = (name or "").strip().lower()
        for fmt in TraceFormat:
            if fmt.value == key or fmt.name.lower() == key:
                return fmt
        choices = ", ".join(f.value for f in TraceFormat)
        raise ValueError(f"Unknown trace format {name!r} (choose from: {choices})")


SYSCALL_RE = re.compile(
    r'^(?:(?P<pid>\d+)\s+)?'
    r'(?P<ts>\d{2}:\d{2}:\d{2}\.\d+)\s+'
    r'(?P<call>read|write)\((?P<fd>\d+),\s*'
    r'"(?P<data>(?:[^"\\]|\\.)*)"(?:\.\.\.)?'
    r',\s*\d+\)\s*=\s*(?P<ret>-?\d+)'
)

HEADER_RE = re.compile(
    r'^(?:(?P<pid>\d+)\s+)?'
    r'(?P<ts>\d{2}:\d{2}:\d{2}\.\d+)\s+'
    r'(?P<call>read|write)\((?P<fd>\d+),'
)

# strace -x/-e write=... layout: " | %05x  %-49s  %-16s |". Hex groups are
# separated by one space (two in the middle); the ascii column starts after
# at least three spaces, so it never reads as hex.
DUMP_RE = re.compile(
    r'^\|\s*[0-9a-fA-F]+\s+'
    r'(?P<hex>[0-9a-fA-F]{2}(?: {1,2}[0-9a-fA-F]{2}){0,15})'
)

TAGGED_RE = re.compile(r'^(?P<tag>CMD|RSP):\s*(?P<hex>.*)$')


def is_dump_line(line: str) -> bool:
    return DUMP_RE.match(line.strip()) is not None


def dump_hex(line: str) -> Optional[str]:
    m = DUMP_RE.match(line.strip())
    if not m:
        return None
    return re.sub(r"\s+", "", m.group("hex"))


def _is_operation_like(line: str) -> bool:
    s = line.strip()
    return bool(TAGGED_RE.match(s) or HEADER_RE.match(s))


def detect_format(lines: Iterable[str]) -> TraceFormat:
    buf: List[str] = [ln for ln in lines]
    for i, raw in enumerate(buf):
        s = raw.strip()
        if not s or not _is_operation_like(s):
            continue
        if TAGGED_RE.match(s):
            return TraceFormat.TAGGED
        # strace -e write=FD prints the (possibly truncated) literal and then
        # the full dump, so the dump wins when both are present.
        nxt = buf[i + 1] if i + 1 < len(buf) else ""
        if is_dump_line(nxt):
            return TraceFormat.HEXDUMP
        return TraceFormat.SYSCALL
    return TraceFormat.SYSCALL
