#!/usr/bin/env python3
"""
Operation sequence -> CommandResponsePair sequence.

A write opens a pair; the reads that immediately follow it are attached until
the next write or until max_responses is reached. max_responses=None attaches
the whole contiguous run of reads (dump traces often split one reply over
several reads).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from ptk.models import CommandResponsePair, Direction, Operation, TimingState

log = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%H:%M:%S.%f"


def parse_timestamp(ts: str) -> Optional[datetime]:
    if not ts:
        return None
    try:
        return datetime.strptime(ts, TIMESTAMP_FORMAT)
    except ValueError:
        return None


def measure_delta(command: Operation, response: Optional[Operation]) -> Tuple[Optional[timedelta], TimingState]:
    if response is None:
        return None, TimingState.NO_RESPONSE
    t0 = parse_timestamp(command.timestamp)
    t1 = parse_timestamp(response.timestamp)
    if t0 is None or t1 is None:
        return None, TimingState.UNKNOWN
    delta = t1 - t0
    if delta < timedelta(0):
        return None, TimingState.UNKNOWN
    return delta, TimingState.MEASURED


@dataclass
class CorrelationResult:
    pairs: List[CommandResponsePair] = field(default_factory=list)
    orphan_responses: List[Operation] = field(default_factory=list)


class Correlator:
    def __init__(self, max_responses: Optional[int] = 1):
        if max_responses is not None and max_responses < 1:
            raise ValueError("max_responses must be >= 1 or None")
        self.max_responses = max_responses

    def correlate(self, operations: Sequence[Operation]) -> CorrelationResult:
        out = CorrelationResult()
        current: Optional[CommandResponsePair] = None

        for op in operations:
            if op.direction is Direction.TO_DEVICE:
                current = CommandResponsePair(command=op, sequence_id=len(out.pairs) + 1)
                out.pairs.append(current)
                continue
            if current is None or (
                self.max_responses is not None and len(current.responses) >= self.max_responses
            ):
                out.orphan_responses.append(op)
                continue
            current.responses.append(op)

        for p in out.pairs:
            p.time_delta, p.timing = measure_delta(p.command, p.first_response)

        if out.orphan_responses:
            log.debug("%d responses could not be attached to a command", len(out.orphan_responses))
        log.info("correlated %d pairs from %d operations", len(out.pairs), len(operations))
        return out
