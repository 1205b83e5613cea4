#!/usr/bin/env python3
"""
ptk command line.

  ptk detect  --trace capture.log
  ptk analyze --trace capture.log [--export csv] [--out-dir DIR]

analyze writes, into the run directory:
  commands.<fmt>        deduplicated command catalog
  pairs.<fmt>           every command/response pair in trace order
  analysis_meta.json    parse coverage, run summary and settings used

Exit codes: 3 = no communications found, 4 = no command/response pairs.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ptk import __version__
from ptk.config import AnalyzerConfig, load_config
from ptk.errors import ConfigError, ExportError, TraceReadError
from ptk.export import (
    EXPORT_FORMATS,
    PAIR_FIELDS,
    PROFILE_FIELDS,
    pair_to_record,
    profile_to_record,
    write_records,
)
from ptk.formats import TraceFormat, detect_format
from ptk.log import setup_logger
from ptk.pipeline import STATUS_NO_COMMUNICATIONS, STATUS_NO_PAIRS, PipelineResult, TracePipeline
from ptk.tokenizer import TraceTokenizer
from ptk.workdir import default_workdir_root, out_dir_paths, run_paths

EXIT_NO_COMMUNICATIONS = 3
EXIT_NO_PAIRS = 4


def _read_lines(path: Path) -> List[str]:
    try:
        with path.open("r", encoding="utf-8", errors="surrogateescape") as f:
            return f.read().splitlines()
    except OSError as e:
        raise SystemExit(f"Cannot read trace {path}: {e.strerror or e}")


def _resolve_config(args: argparse.Namespace) -> AnalyzerConfig:
    cfg = AnalyzerConfig()
    if getattr(args, "config", None):
        try:
            cfg = load_config(Path(args.config))
        except ConfigError as e:
            raise SystemExit(str(e))
    if getattr(args, "contiguous", False):
        cfg = dataclasses.replace(cfg, max_responses=None)
    if getattr(args, "format_override", None):
        cfg = dataclasses.replace(cfg, format=args.format_override)
    return cfg


def _write_meta(meta: dict, reports_dir: Path) -> None:
    (reports_dir / "analysis_meta.json").write_text(
        json.dumps(meta, ensure_ascii=False, indent=2), encoding="utf-8"
    )


def _print_stats(result: PipelineResult) -> None:
    s = result.summary
    print(f"Grammar: {result.trace_format} (confidence: {result.stats.confidence})")
    print(f"Coverage: {result.stats.coverage_text()}")
    print(f"Operations: {s.total_operations} ({s.commands} commands, {s.responses} responses)")
    print(f"Pairs: {s.pairs}  Handshakes: {s.handshakes}  Unanswered: {s.unanswered_commands}")
    print(f"Orphan responses: {s.orphan_responses}  NAKs: {s.nak_count}")
    print(f"Distinct commands: {s.distinct_commands}  Avg response: {s.average_response_time}")
    if s.first_timestamp:
        print(f"Time span: {s.first_timestamp} .. {s.last_timestamp}")
    for channel, usage in s.channels.items():
        print(f"  fd {channel}: {usage}")
    for category, n in sorted(s.categories.items(), key=lambda kv: -kv[1]):
        print(f"  {category}: {n}")


def _print_top(result: PipelineResult, limit: int) -> None:
    if not result.profiles or limit <= 0:
        return
    print("")
    print("Top commands:")
    for p in result.profiles[:limit]:
        hx = p.hex_key if len(p.hex_key) <= 24 else p.hex_key[:24] + "..."
        print(f"  {p.occurrences:>5}x  {hx:<27}  {p.timing_average:>9}  {p.success_rate_text:>6}  {p.description}")


def cmd_detect(args: argparse.Namespace) -> None:
    trace = Path(args.trace).expanduser()
    lines = _read_lines(trace)
    fmt = detect_format(lines)
    result = TraceTokenizer(fmt).tokenize(lines)
    print(f"Trace: {trace}")
    print(f"Detected grammar: {fmt.value}")
    print(f"Tokenized as: {result.stats.grammar} (confidence: {result.stats.confidence})")
    print(f"Coverage: {result.stats.coverage_text()}")
    print(f"Operations: {len(result.operations)}")


def cmd_analyze(args: argparse.Namespace) -> int:
    trace = Path(args.trace).expanduser()
    cfg = _resolve_config(args)

    if args.out_dir:
        paths = out_dir_paths(Path(args.out_dir), run_id=args.run_id)
    else:
        workdir_root = Path(args.workdir).expanduser() if args.workdir else default_workdir_root()
        paths = run_paths(trace, run_id=args.run_id, workdir_root=workdir_root)
    paths.reports_dir.mkdir(parents=True, exist_ok=True)

    log_file = args.log_file
    if log_file is None and not args.out_dir:
        paths.logs_dir.mkdir(parents=True, exist_ok=True)
        log_file = str(paths.logs_dir / "analyze.log")
    log = setup_logger("ptk", log_file=log_file, level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        pipeline = TracePipeline(cfg)
    except ValueError as e:
        raise SystemExit(str(e))
    try:
        result = pipeline.run(trace)
    except TraceReadError as e:
        raise SystemExit(str(e))

    meta = {
        "tool": "ptk",
        "version": __version__,
        "trace": str(trace),
        "run_id": paths.run_id,
        "created_at": datetime.now().isoformat(timespec="seconds"),
        "status": result.status,
        "parse": result.stats.to_dict(),
        "coverage": result.stats.coverage_text(),
        "summary": result.summary.to_dict(),
        "settings": {
            "max_responses": cfg.max_responses,
            "format": cfg.format,
            "export": args.export,
        },
        "outputs": {},
    }

    if result.status == STATUS_NO_COMMUNICATIONS:
        _write_meta(meta, paths.reports_dir)
        print(f"No communications found in {trace} ({result.stats.coverage_text()})", file=sys.stderr)
        return EXIT_NO_COMMUNICATIONS

    try:
        pairs_out = write_records(
            [pair_to_record(p) for p in result.pairs],
            paths.reports_dir / "pairs",
            args.export,
            PAIR_FIELDS,
        )
        meta["outputs"]["pairs"] = str(pairs_out)
        if result.status != STATUS_NO_PAIRS:
            commands_out = write_records(
                [profile_to_record(p) for p in result.profiles],
                paths.reports_dir / "commands",
                args.export,
                PROFILE_FIELDS,
            )
            meta["outputs"]["commands"] = str(commands_out)
    except ExportError as e:
        raise SystemExit(str(e))

    _write_meta(meta, paths.reports_dir)
    log.info("outputs written to %s", paths.reports_dir)

    _print_stats(result)
    if result.status == STATUS_NO_PAIRS:
        print("No command/response pairs found", file=sys.stderr)
        return EXIT_NO_PAIRS

    _print_top(result, args.top)
    print("")
    print(f"OK: {paths.reports_dir}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ptk", description="Protocol Trace Kit: reconstruct command/response catalogs from serial traces")
    p.add_argument("--version", action="version", version=f"ptk {__version__}")
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("detect", help="Detect the trace grammar and report parse coverage")
    sp.add_argument("--trace", required=True, help="Path to the captured trace (strace log, dump or CMD/RSP file)")
    sp.set_defaults(func=cmd_detect)

    sp = sub.add_parser("analyze", help="Correlate, classify and catalog a trace")
    sp.add_argument("--trace", required=True, help="Path to the captured trace")
    sp.add_argument(
        "--format-override",
        choices=[f.value for f in TraceFormat],
        help="Force a grammar instead of auto-detecting",
    )
    sp.add_argument("--contiguous", action="store_true", help="Attach every contiguous read to the preceding write")
    sp.add_argument("--config", help="YAML file with analyzer settings")
    sp.add_argument("--out-dir", help="Write outputs to this directory instead of the workdir")
    sp.add_argument("--workdir", help="Workdir root for outputs (default: ~/PTK_Workspaces or env PTK_WORKDIR)")
    sp.add_argument("--run-id", help="Run id (default: auto timestamp)")
    sp.add_argument("--export", choices=EXPORT_FORMATS, default="json", help="Output format")
    sp.add_argument("--top", type=int, default=10, help="Print the N most frequent commands")
    sp.add_argument("--log-file", help="Also write the log to this file")
    sp.add_argument("-v", "--verbose", action="store_true", help="Debug logging (one line per skipped input line)")
    sp.set_defaults(func=cmd_analyze)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    os.environ.setdefault("PYTHONUTF8", "1")
    args = build_parser().parse_args(argv)
    rc = args.func(args)
    return int(rc or 0)


if __name__ == "__main__":
    raise SystemExit(main())
