"""
Protocol Trace Kit (ptk) core Python package.

Turns a captured serial/USB system-call trace into a deduplicated catalog of
protocol commands and their observed responses:
- escapes: strace-style byte literal decoding
- formats / tokenizer: trace grammar detection and tokenizing
- correlator: command/response pairing and timing
- classifier: heuristic payload labels and data categories
- aggregator: per-command profiles and run summary
- pipeline: one trace run end-to-end
"""

from ptk.models import (  # noqa: F401
    CommandResponsePair,
    Direction,
    Operation,
    ProtocolCommandProfile,
    TimingState,
)
from ptk.pipeline import PipelineResult, TracePipeline  # noqa: F401

__version__ = "0.3.0"
