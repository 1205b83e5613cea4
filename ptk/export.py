#!/usr/bin/env python3
"""
Serializable records for the command catalog and pair table.

Records use camelCase keys so they can be consumed by report tooling without
a mapping layer. Nested values (lists) are JSON-encoded in CSV cells.
"""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, Dict, List

import yaml

from ptk.errors import ExportError
from ptk.models import CommandResponsePair, ProtocolCommandProfile, format_hex_bytes, printable_ascii

EXPORT_FORMATS = ["json", "yaml", "csv", "parquet"]

PROFILE_FIELDS = [
    "commandHex",
    "description",
    "responsePattern",
    "responseHex",
    "occurrences",
    "timestampFirst",
    "timestampLast",
    "lineNumbers",
    "isHandshake",
    "responseTypes",
    "dataCategory",
    "timingAverage",
    "successRate",
    "commandLabel",
]

PAIR_FIELDS = [
    "sequenceId",
    "lineNumber",
    "timestamp",
    "channel",
    "flow",
    "commandHex",
    "commandBytes",
    "commandAscii",
    "commandLabel",
    "responseHex",
    "responseAscii",
    "responseLabel",
    "responseCount",
    "timeDelta",
    "timing",
    "isHandshake",
    "dataCategory",
    "description",
]


def profile_to_record(p: ProtocolCommandProfile) -> Dict[str, Any]:
    return {
        "commandHex": p.hex_key,
        "description": p.description,
        "responsePattern": p.response_pattern,
        "responseHex": p.response_hex,
        "occurrences": p.occurrences,
        "timestampFirst": p.timestamp_first,
        "timestampLast": p.timestamp_last,
        "lineNumbers": list(p.line_numbers),
        "isHandshake": p.is_handshake,
        "responseTypes": list(p.response_variants),
        "dataCategory": p.data_category,
        "timingAverage": p.timing_average,
        "successRate": None if p.success_rate is None else round(p.success_rate, 2),
        "commandLabel": p.command_label,
    }


def pair_to_record(p: CommandResponsePair) -> Dict[str, Any]:
    return {
        "sequenceId": p.sequence_id,
        "lineNumber": p.command.source_line,
        "timestamp": p.command.timestamp,
        "channel": p.command.channel_id,
        "flow": p.command.direction.arrow,
        "commandHex": p.command.hex,
        "commandBytes": format_hex_bytes(p.command.payload),
        "commandAscii": p.command.ascii,
        "commandLabel": p.command_label,
        "responseHex": p.response_hex,
        "responseAscii": printable_ascii(p.response_bytes),
        "responseLabel": p.response_label,
        "responseCount": len(p.responses),
        "timeDelta": p.time_delta_text,
        "timing": p.timing.value,
        "isHandshake": p.is_handshake,
        "dataCategory": p.data_category,
        "description": p.description,
    }


def _cell(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return value


def flat_rows(records: List[Dict[str, Any]], field_names: List[str]) -> List[Dict[str, Any]]:
    """Tabular form of records: fixed column order, nested values as JSON text."""
    return [{k: _cell(r.get(k)) for k in field_names} for r in records]


def write_json(records: List[Dict[str, Any]], output_path: Path) -> None:
    output_path.write_text(json.dumps(records, ensure_ascii=False, indent=2), encoding="utf-8")


def write_yaml(records: List[Dict[str, Any]], output_path: Path) -> None:
    output_path.write_text(yaml.safe_dump(records, allow_unicode=True, sort_keys=False), encoding="utf-8")


def write_csv(records: List[Dict[str, Any]], output_path: Path, field_names: List[str]) -> None:
    with output_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=field_names)
        writer.writeheader()
        writer.writerows(flat_rows(records, field_names))


def write_parquet(records: List[Dict[str, Any]], output_path: Path, field_names: List[str]) -> None:
    import pandas as pd

    df = pd.DataFrame(flat_rows(records, field_names), columns=field_names)
    try:
        df.to_parquet(output_path, index=False)
    except ImportError as e:
        raise ExportError(f"Parquet export needs pyarrow: pip install 'protocol-trace-kit[parquet]' ({e})") from e


def write_records(records: List[Dict[str, Any]], output_path: Path, fmt: str, field_names: List[str]) -> Path:
    """Write records in `fmt`; returns the path actually written."""
    if fmt not in EXPORT_FORMATS:
        raise ExportError(f"Unknown export format {fmt!r}")
    output_path = output_path.with_suffix("." + fmt)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "json":
        write_json(records, output_path)
    elif fmt == "yaml":
        write_yaml(records, output_path)
    elif fmt == "csv":
        write_csv(records, output_path, field_names)
    else:
        write_parquet(records, output_path, field_names)
    return output_path
