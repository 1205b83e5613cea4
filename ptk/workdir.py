#!/usr/bin/env python3
"""
PTK workdir utilities.

Analysis outputs describe private hardware captures, so by default they are
written outside the code repository:

  PTK_WORKDIR = ~/PTK_Workspaces
  run dir     = PTK_WORKDIR/Protocol-Trace-Kit/<trace-stem>/runs/<run-id>

Override:
  - env: PTK_WORKDIR
  - CLI flags: --workdir / --run-id, or --out-dir for an explicit directory
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional


PROJECT_SLUG = "Protocol-Trace-Kit"


def default_workdir_root() -> Path:
    return Path(os.environ.get("PTK_WORKDIR", str(Path.home() / "PTK_Workspaces"))).expanduser()


def project_workdir_root(workdir_root: Optional[Path] = None) -> Path:
    root = (workdir_root or default_workdir_root()).expanduser().resolve()
    return root / PROJECT_SLUG


def new_run_id(now: Optional[datetime] = None) -> str:
    dt = now or datetime.now()
    return dt.strftime("%Y%m%d-%H%M%S")


def trace_slug(trace_path: Path) -> str:
    stem = Path(trace_path).stem or "trace"
    return re.sub(r"[^A-Za-z0-9._-]+", "_", stem)


@dataclass(frozen=True)
class RunPaths:
    run_id: str
    run_dir: Path
    reports_dir: Path
    logs_dir: Path


def run_paths(trace_path: Path, *, run_id: Optional[str] = None, workdir_root: Optional[Path] = None) -> RunPaths:
    rid = run_id or new_run_id()
    base = project_workdir_root(workdir_root) / trace_slug(trace_path) / "runs" / rid
    return RunPaths(
        run_id=rid,
        run_dir=base,
        reports_dir=base / "reports",
        logs_dir=base / "logs",
    )


def out_dir_paths(out_dir: Path, *, run_id: Optional[str] = None) -> RunPaths:
    base = Path(out_dir).expanduser()
    return RunPaths(
        run_id=run_id or new_run_id(),
        run_dir=base,
        reports_dir=base,
        logs_dir=base,
    )
