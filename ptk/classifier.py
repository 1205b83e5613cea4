#!/usr/bin/env python3
"""
Heuristic labelling of payloads and pairs.

Labels come from one ordered rule list evaluated once per payload; the first
rule whose predicate matches wins, and the last rule always matches.

The structural rules (channel / zone / contact / configuration) are a best
guess from length, repetition and padding signatures. They are not a decoder
and will misfire on payloads that merely look similar.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from ptk.config import AnalyzerConfig
from ptk.models import CommandResponsePair

log = logging.getLogger(__name__)

SOH, STX, ETX, EOT, ACK, NAK = 0x01, 0x02, 0x03, 0x04, 0x06, 0x15

CONTROL_LABELS: Dict[int, str] = {
    SOH: "SOH (Start of Header)",
    STX: "STX (Start of Text)",
    ETX: "ETX (End of Text)",
    EOT: "EOT (End of Transmission)",
    ACK: "ACK (Acknowledge)",
    NAK: "NAK (Negative Acknowledge)",
}

COMMAND_LABELS: Dict[int, str] = {
    ord("R"): "Read Request",
    ord("W"): "Write Request",
    ord("P"): "Program Command",
    0x7E: "Packet Frame (~)",
}

CATEGORY_CONTROL = "Control Command"
CATEGORY_SHORT = "Short Data"
CATEGORY_CHANNEL = "Channel Programming"
CATEGORY_ZONE = "Zone Programming"
CATEGORY_CONTACT = "Contact Programming"
CATEGORY_CONFIG = "System Configuration"
CATEGORY_BULK = "Bulk Data"

_PRINTABLE_EXTRA = {0x09, 0x0A, 0x0D}


def is_positive_ack(payload: bytes) -> bool:
    return bool(payload) and payload[0] == ACK


def is_negative_ack(payload: bytes) -> bool:
    return bool(payload) and payload[0] == NAK


def has_repeated_pair(payload: bytes) -> bool:
    """True when some 2-byte run occurs twice without overlapping itself."""
    first: Dict[bytes, int] = {}
    for i in range(len(payload) - 1):
        pair = payload[i : i + 2]
        seen = first.setdefault(pair, i)
        if i - seen >= 2:
            return True
    return False


@dataclass(frozen=True)
class ClassificationRule:
    name: str
    predicate: Callable[[bytes], bool]
    label: Callable[[bytes, str], str]


class Classifier:
    """
    Annotates CommandResponsePairs in place.

    Every payload gets some label, falling back to "Binary <role> (0xHH)", and
    classify() never raises on odd input.
    """

    def __init__(self, config: Optional[AnalyzerConfig] = None):
        self.config = config or AnalyzerConfig()
        self.rules = self._build_rules()

    # --- structural predicates ---

    def _is_large(self, payload: bytes) -> bool:
        return len(payload) > self.config.large_payload_threshold

    def looks_like_channel(self, payload: bytes) -> bool:
        if len(payload) < self.config.channel_min_length:
            return False
        return any(p in payload for p in self.config.channel_patterns)

    def looks_like_zone(self, payload: bytes) -> bool:
        return has_repeated_pair(payload)

    def looks_like_contact(self, payload: bytes) -> bool:
        if not payload:
            return False
        n = len(payload)
        printable = sum(1 for b in payload if 0x20 <= b <= 0x7E or b in _PRINTABLE_EXTRA)
        digits = sum(1 for b in payload if 0x30 <= b <= 0x39)
        return printable >= self.config.printable_ratio * n and digits >= self.config.digit_ratio * n

    def looks_like_config(self, payload: bytes) -> bool:
        return any(p in payload for p in self.config.config_patterns)

    def _build_rules(self) -> List[ClassificationRule]:
        large = self._is_large
        return [
            ClassificationRule(
                "control",
                lambda p: p[0] in CONTROL_LABELS,
                lambda p, role: CONTROL_LABELS[p[0]],
            ),
            ClassificationRule(
                "known_command",
                lambda p: p[0] in COMMAND_LABELS,
                lambda p, role: COMMAND_LABELS[p[0]],
            ),
            ClassificationRule(
                "channel",
                lambda p: large(p) and self.looks_like_channel(p),
                lambda p, role: "Channel Data Block",
            ),
            ClassificationRule(
                "zone",
                lambda p: large(p) and self.looks_like_zone(p),
                lambda p, role: "Zone Data Block",
            ),
            ClassificationRule(
                "contact",
                lambda p: large(p) and self.looks_like_contact(p),
                lambda p, role: "Contact Data Block",
            ),
            ClassificationRule(
                "config",
                lambda p: large(p) and self.looks_like_config(p),
                lambda p, role: "Configuration Block",
            ),
            ClassificationRule(
                "ascii",
                lambda p: 0x20 <= p[0] <= 0x7E,
                lambda p, role: f"ASCII {role} '{chr(p[0])}' (0x{p[0]:02X})",
            ),
            ClassificationRule(
                "binary",
                lambda p: True,
                lambda p, role: f"Binary {role} (0x{p[0]:02X})",
            ),
        ]

    # --- per payload ---

    def match_rule(self, payload: bytes) -> Optional[ClassificationRule]:
        if not payload:
            return None
        for rule in self.rules:
            if rule.predicate(payload):
                return rule
        return None

    def label(self, payload: bytes, role: str = "Command") -> str:
        rule = self.match_rule(payload)
        if rule is None:
            return f"Empty {role}"
        return rule.label(payload, role)

    def category(self, payload: bytes) -> str:
        n = len(payload)
        if n <= self.config.handshake_max_length:
            return CATEGORY_CONTROL
        if n <= self.config.large_payload_threshold:
            return CATEGORY_SHORT
        if self.looks_like_channel(payload):
            return CATEGORY_CHANNEL
        if self.looks_like_zone(payload):
            return CATEGORY_ZONE
        if self.looks_like_contact(payload):
            return CATEGORY_CONTACT
        if self.looks_like_config(payload):
            return CATEGORY_CONFIG
        return CATEGORY_BULK

    # --- per pair ---

    def is_handshake(self, command: bytes, response: bytes) -> bool:
        if not command or not response:
            return False
        limit = self.config.handshake_max_length
        if len(command) <= limit and len(response) <= limit:
            return True
        return (command[0], response[0]) in set(self.config.handshake_transitions)

    def describe(self, pair: CommandResponsePair) -> str:
        cmd = pair.command.payload
        rsp = pair.response_bytes
        cmd_label = pair.command_label or self.label(cmd, "Command")
        rsp_label = pair.response_label or (self.label(rsp, "Response") if rsp else "")

        if pair.is_handshake:
            return f"Handshake: {cmd_label} → {rsp_label}"
        if cmd[0] == ord("P"):
            return "Programming: Initiating programming mode"
        if cmd[0] == ord("R"):
            return "Read Operation: Requesting data from device"
        if pair.data_category == CATEGORY_CHANNEL:
            return f"Channel Programming: {len(cmd)}-byte channel block"
        if pair.data_category == CATEGORY_ZONE:
            return f"Zone Programming: {len(cmd)}-byte zone block"
        if pair.data_category == CATEGORY_CONTACT:
            return f"Contact Programming: {len(cmd)}-byte contact block"
        if cmd[0] in (ord("W"), 0x7E) or pair.data_category == CATEGORY_BULK:
            if is_positive_ack(rsp):
                return f"Data Block: {len(cmd)} bytes written, acknowledged"
            if is_negative_ack(rsp):
                return f"Data Block: {len(cmd)} bytes written, rejected"
            return f"Data Block: {len(cmd)} bytes written"
        if "Configuration" in rsp_label or len(rsp) > 32:
            return f"Data Transfer: {len(rsp)} bytes received"
        if not rsp:
            return f"{cmd_label} (no response)"
        return f"{cmd_label} → {rsp_label}"

    def classify_pair(self, pair: CommandResponsePair) -> CommandResponsePair:
        cmd = pair.command.payload
        rsp = pair.response_bytes
        pair.command_label = self.label(cmd, "Command")
        pair.response_label = self.label(rsp, "Response") if rsp else ""
        pair.data_category = self.category(cmd)
        pair.is_handshake = self.is_handshake(cmd, rsp)
        pair.description = self.describe(pair)
        return pair

    def classify(self, pairs: Iterable[CommandResponsePair]) -> List[CommandResponsePair]:
        out = [self.classify_pair(p) for p in pairs]
        handshakes = sum(1 for p in out if p.is_handshake)
        log.info("classified %d pairs (%d handshakes)", len(out), handshakes)
        return out
