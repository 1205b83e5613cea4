#!/usr/bin/env python3
"""
Byte decoding for the quoted literals strace prints in read()/write() lines.

decode_escaped() is lenient: every recognised escape becomes one
byte, anything it cannot interpret is copied through verbatim. It never raises,
so a damaged line costs at most the bytes around the damage.
"""

from __future__ import annotations

from typing import Dict


_SIMPLE_ESCAPES: Dict[str, int] = {
    "n": 0x0A,
    "t": 0x09,
    "r": 0x0D,
    "v": 0x0B,
    "f": 0x0C,
    "a": 0x07,
    "b": 0x08,
    "e": 0x1B,
    "\\": 0x5C,
    '"': 0x22,
    "'": 0x27,
}

_ENCODE_NAMED: Dict[int, str] = {
    0x0A: "\\n",
    0x09: "\\t",
    0x0D: "\\r",
    0x0B: "\\v",
    0x0C: "\\f",
    0x5C: "\\\\",
    0x22: '\\"',
}

_HEX_DIGITS = "0123456789abcdefABCDEF"
_OCT_DIGITS = "01234567"


def _literal_bytes(ch: str) -> bytes:
    # Traces are read with errors="surrogateescape"; this restores the
    # original file bytes, valid UTF-8 or not.
    return ch.encode("utf-8", "surrogateescape")


def decode_escaped(text: str) -> bytes:
    out = bytearray()
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]
        if ch != "\\":
            out += _literal_bytes(ch)
            i += 1
            continue

        if i + 1 >= n:
            # Trailing lone backslash.
            out.append(0x5C)
            i += 1
            continue

        nxt = text[i + 1]

        if nxt == "x":
            digits = text[i + 2 : i + 4]
            if len(digits) == 2 and all(c in _HEX_DIGITS for c in digits):
                out.append(int(digits, 16))
                i += 4
            else:
                out += b"\\x"
                i += 2
            continue

        if nxt in _OCT_DIGITS:
            j = i + 1
            while j < n and j < i + 4 and text[j] in _OCT_DIGITS:
                j += 1
            digits = text[i + 1 : j]
            if int(digits, 8) > 0xFF:
                digits = digits[:2]
                j = i + 1 + len(digits)
            out.append(int(digits, 8))
            i = j
            continue

        if nxt in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[nxt])
            i += 2
            continue

        out.append(0x5C)
        out += _literal_bytes(nxt)
        i += 2

    return bytes(out)


def encode_escaped(data: bytes) -> str:
    """Render bytes the way `strace -x` quotes them."""
    parts = []
    for b in data:
        named = _ENCODE_NAMED.get(b)
        if named is not None:
            parts.append(named)
        elif 0x20 <= b <= 0x7E:
            parts.append(chr(b))
        else:
            parts.append(f"\\x{b:02x}")
    return "".join(parts)

