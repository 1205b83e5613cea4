#!/usr/bin/env python3
"""
One analysis run: read -> tokenize -> correlate -> classify -> aggregate.

Build a fresh TracePipeline per trace; it keeps no state between runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from ptk.aggregator import Aggregator, RunSummary
from ptk.classifier import Classifier
from ptk.config import AnalyzerConfig
from ptk.correlator import Correlator
from ptk.errors import TraceReadError
from ptk.formats import TraceFormat
from ptk.models import CommandResponsePair, Operation, ProtocolCommandProfile
from ptk.tokenizer import ParseStats, TraceTokenizer

log = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_NO_COMMUNICATIONS = "no_communications"
STATUS_NO_PAIRS = "no_pairs"


@dataclass
class PipelineResult:
    trace_format: str
    operations: List[Operation] = field(default_factory=list)
    pairs: List[CommandResponsePair] = field(default_factory=list)
    profiles: List[ProtocolCommandProfile] = field(default_factory=list)
    stats: ParseStats = field(default_factory=ParseStats)
    summary: RunSummary = field(default_factory=RunSummary)
    status: str = STATUS_OK

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK


class TracePipeline:
    def __init__(self, config: Optional[AnalyzerConfig] = None, fmt: Optional[TraceFormat] = None):
        self.config = config or AnalyzerConfig()
        if fmt is None and self.config.format:
            fmt = TraceFormat.parse(self.config.format)
        self.fmt = fmt

    def run(self, path: Path) -> PipelineResult:
        path = Path(path)
        try:
            with path.open("r", encoding="utf-8", errors="surrogateescape") as f:
                lines = f.read().splitlines()
        except OSError as e:
            raise TraceReadError(path, e.strerror or str(e)) from e
        log.info("read %d lines from %s", len(lines), path)
        return self.run_lines(lines)

    def run_lines(self, lines: Iterable[str]) -> PipelineResult:
        tok = TraceTokenizer(self.fmt).tokenize(lines)
        stats = tok.stats
        result = PipelineResult(trace_format=stats.grammar, operations=tok.operations, stats=stats)

        if not tok.operations:
            log.warning("No communications found (%s)", stats.coverage_text())
            result.status = STATUS_NO_COMMUNICATIONS
            return result

        corr = Correlator(self.config.max_responses).correlate(tok.operations)
        pairs = Classifier(self.config).classify(corr.pairs)
        aggregator = Aggregator()
        result.pairs = pairs
        result.summary = aggregator.summarize(pairs, tok.operations, len(corr.orphan_responses))

        if not pairs:
            log.warning("No command/response pairs in %d operations", len(tok.operations))
            result.status = STATUS_NO_PAIRS
            return result

        result.profiles = aggregator.aggregate(pairs)
        return result
