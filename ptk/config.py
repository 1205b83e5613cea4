#!/usr/bin/env python3
"""
Analyzer tunables.

Defaults reproduce the observed behaviour of the reference traces. A YAML file
can override any of them, either at top level or under an `analyzer:` key:

    analyzer:
      max_responses: null        # contiguous-run pairing for dump traces
      large_payload_threshold: 16
      channel_patterns: ["4336", "4436"]
      handshake_transitions:
        - ["02", "06"]
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ptk.errors import ConfigError


def _default_transitions() -> List[Tuple[int, int]]:
    # STX->ACK, SOH->ACK, EOT->ACK, 'P'->ACK
    return [(0x02, 0x06), (0x01, 0x06), (0x04, 0x06), (0x50, 0x06)]


@dataclass(frozen=True)
class AnalyzerConfig:
    max_responses: Optional[int] = 1
    large_payload_threshold: int = 16
    channel_min_length: int = 32
    channel_patterns: Tuple[bytes, ...] = (b"\x43\x36", b"\x44\x36")
    config_patterns: Tuple[bytes, ...] = (b"\xff\xff", b"\x00\x00")
    handshake_max_length: int = 4
    handshake_transitions: Tuple[Tuple[int, int], ...] = field(
        default_factory=lambda: tuple(_default_transitions())
    )
    printable_ratio: float = 0.7
    digit_ratio: float = 0.25
    format: Optional[str] = None

    @staticmethod
    def from_dict(doc: Dict[str, Any]) -> "AnalyzerConfig":
        if not isinstance(doc, dict):
            raise ConfigError("analyzer config must be a mapping")
        if isinstance(doc.get("analyzer"), dict):
            doc = doc["analyzer"]

        known = {f.name for f in fields(AnalyzerConfig)}
        unknown = sorted(set(doc) - known)
        if unknown:
            raise ConfigError(f"Unknown analyzer config keys: {', '.join(unknown)}")

        kwargs: Dict[str, Any] = {}
        try:
            if "max_responses" in doc:
                v = doc["max_responses"]
                kwargs["max_responses"] = None if v is None else int(v)
                if kwargs["max_responses"] is not None and kwargs["max_responses"] < 1:
                    raise ConfigError("max_responses must be >= 1 or null")
            for name in ("large_payload_threshold", "channel_min_length", "handshake_max_length"):
                if name in doc:
                    kwargs[name] = int(doc[name])
            for name in ("printable_ratio", "digit_ratio"):
                if name in doc:
                    kwargs[name] = float(doc[name])
            for name in ("channel_patterns", "config_patterns"):
                if name in doc:
                    kwargs[name] = tuple(_hex_pattern(p) for p in _as_list(doc[name], name))
            if "handshake_transitions" in doc:
                pairs = []
                for item in _as_list(doc["handshake_transitions"], "handshake_transitions"):
                    if not isinstance(item, (list, tuple)) or len(item) != 2:
                        raise ConfigError(f"Invalid handshake transition: {item!r}")
                    pairs.append((_hex_byte(item[0]), _hex_byte(item[1])))
                kwargs["handshake_transitions"] = tuple(pairs)
            if "format" in doc:
                kwargs["format"] = None if doc["format"] is None else str(doc["format"])
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid analyzer config value: {e}") from e

        return AnalyzerConfig(**kwargs)


def _as_list(value: Any, name: str) -> List[Any]:
    if not isinstance(value, list):
        raise ConfigError(f"{name} must be a list")
    return value


def _hex_pattern(token: Any) -> bytes:
    text = str(token).replace(" ", "")
    if text.lower().startswith("0x"):
        text = text[2:]
    data = bytes.fromhex(text)
    if not data:
        raise ConfigError("byte patterns must not be empty")
    return data


def _hex_byte(token: Any) -> int:
    if isinstance(token, int):
        value = token
    else:
        value = int(str(token), 16)
    if not 0 <= value <= 0xFF:
        raise ConfigError(f"Byte out of range: {token!r}")
    return value


def load_config(path: Path) -> AnalyzerConfig:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e
    try:
        doc = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    return AnalyzerConfig.from_dict(doc)
