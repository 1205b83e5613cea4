#!/usr/bin/env python3
"""
Pair sequence -> deduplicated command catalog, plus run-level statistics.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, List, Optional, Sequence

from ptk.classifier import is_negative_ack, is_positive_ack
from ptk.models import (
    CommandResponsePair,
    Direction,
    Operation,
    ProtocolCommandProfile,
    TimingState,
    format_duration,
)

log = logging.getLogger(__name__)


def _mean(deltas: List[timedelta]) -> Optional[timedelta]:
    if not deltas:
        return None
    return sum(deltas, timedelta(0)) / len(deltas)


@dataclass
class RunSummary:
    total_operations: int = 0
    commands: int = 0
    responses: int = 0
    pairs: int = 0
    handshakes: int = 0
    unanswered_commands: int = 0
    orphan_responses: int = 0
    nak_count: int = 0
    distinct_commands: int = 0
    categories: Dict[str, int] = field(default_factory=dict)
    command_labels: Dict[str, int] = field(default_factory=dict)
    channels: Dict[str, str] = field(default_factory=dict)
    first_timestamp: str = ""
    last_timestamp: str = ""
    average_response_time: str = "unknown"

    def to_dict(self) -> dict:
        return {
            "total_operations": self.total_operations,
            "commands": self.commands,
            "responses": self.responses,
            "pairs": self.pairs,
            "handshakes": self.handshakes,
            "unanswered_commands": self.unanswered_commands,
            "orphan_responses": self.orphan_responses,
            "nak_count": self.nak_count,
            "distinct_commands": self.distinct_commands,
            "categories": dict(self.categories),
            "command_labels": dict(self.command_labels),
            "channels": dict(self.channels),
            "first_timestamp": self.first_timestamp,
            "last_timestamp": self.last_timestamp,
            "average_response_time": self.average_response_time,
        }


class Aggregator:
    def aggregate(self, pairs: Sequence[CommandResponsePair]) -> List[ProtocolCommandProfile]:
        profiles: Dict[str, ProtocolCommandProfile] = {}
        deltas: Dict[str, List[timedelta]] = {}
        acks: Counter = Counter()
        totals: Counter = Counter()

        for p in pairs:
            key = p.command.hex
            prof = profiles.get(key)
            if prof is None:
                prof = ProtocolCommandProfile(
                    hex_key=key,
                    occurrences=1,
                    description=p.description,
                    data_category=p.data_category,
                    command_label=p.command_label,
                    response_pattern=p.response_label,
                    response_hex=p.response_hex,
                    is_handshake=p.is_handshake,
                    timestamp_first=p.command.timestamp,
                )
                profiles[key] = prof
                deltas[key] = []
            else:
                prof.occurrences += 1

            rsp_hex = p.response_hex
            if rsp_hex and rsp_hex not in prof.response_variants:
                prof.response_variants.append(rsp_hex)
            prof.timestamp_last = p.command.timestamp
            prof.line_numbers.append(p.command.source_line)

            if p.timing is TimingState.MEASURED and p.time_delta is not None:
                deltas[key].append(p.time_delta)
            for r in p.responses:
                totals[key] += 1
                if is_positive_ack(r.payload):
                    acks[key] += 1

        for key, prof in profiles.items():
            avg = _mean(deltas[key])
            prof.timing_average = format_duration(avg)
            prof.timing_average_us = None if avg is None else avg / timedelta(microseconds=1)
            if totals[key]:
                prof.success_rate = acks[key] / totals[key] * 100.0

        # sorted() is stable, so ties keep first-seen order.
        out = sorted(profiles.values(), key=lambda pr: -pr.occurrences)
        log.info("aggregated %d pairs into %d profiles", len(pairs), len(out))
        return out

    def summarize(
        self,
        pairs: Sequence[CommandResponsePair],
        operations: Sequence[Operation],
        orphan_responses: int = 0,
    ) -> RunSummary:
        s = RunSummary()
        s.total_operations = len(operations)
        s.pairs = len(pairs)
        s.orphan_responses = orphan_responses

        usage: Dict[str, set] = {}
        for op in operations:
            if op.channel_id:
                usage.setdefault(op.channel_id, set()).add(op.direction)
            if op.direction is Direction.TO_DEVICE:
                s.commands += 1
            else:
                s.responses += 1
                if is_negative_ack(op.payload):
                    s.nak_count += 1
        for channel, dirs in usage.items():
            if len(dirs) > 1:
                s.channels[channel] = "Read/Write"
            elif Direction.TO_DEVICE in dirs:
                s.channels[channel] = "Write (to device)"
            else:
                s.channels[channel] = "Read (from device)"

        stamped = [op.timestamp for op in operations if op.timestamp]
        if stamped:
            s.first_timestamp = stamped[0]
            s.last_timestamp = stamped[-1]

        categories: Counter = Counter()
        labels: Counter = Counter()
        measured: List[timedelta] = []
        for p in pairs:
            if p.is_handshake:
                s.handshakes += 1
            if not p.responses:
                s.unanswered_commands += 1
            categories[p.data_category] += 1
            labels[p.command_label] += 1
            if p.timing is TimingState.MEASURED and p.time_delta is not None:
                measured.append(p.time_delta)

        s.categories = dict(categories)
        s.command_labels = dict(labels)
        s.distinct_commands = len({p.command.hex for p in pairs})
        s.average_response_time = format_duration(_mean(measured))
        return s
