# src/parapdf/reporting.py
from __future__ import annotations

import csv
import json
import logging
import time
from pathlib import Path
from typing import Iterable, List, Optional

from slugify import slugify

from .models import BatchResult

logger = logging.getLogger("parapdf")

RULE = "=" * 70

CSV_FIELDS = [
    "unit", "label", "start_page", "end_page", "status", "error_kind", "error",
    "attempts", "input_tokens", "output_tokens", "input_cost", "output_cost",
    "total_cost", "duration_seconds", "completed_at",
]

EXTENSIONS = {"json": "json", "csv": "csv", "txt": "txt"}


def safe_fname(name: str, fallback: str = "document") -> str:
    """
    Create a filesystem safe name from a document stem.
    """
    name = (name or "").strip()
    return slugify(name)[:100] or fallback


def output_path_for(pdf_path: Path, fmt: str, output_dir: Optional[Path] = None,
                    suffix: str = "analysis") -> Path:
    """<output_dir>/<slugified stem>_<suffix>.<ext>, next to the PDF by default."""
    if fmt not in EXTENSIONS:
        raise ValueError(f"Unknown output format, '{fmt}'. Supported formats, {list(EXTENSIONS)}")
    pdf_path = Path(pdf_path)
    folder = Path(output_dir) if output_dir else pdf_path.parent
    return folder / f"{safe_fname(pdf_path.stem)}_{suffix}.{EXTENSIONS[fmt]}"


def write_json(batch: BatchResult, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(batch.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def write_csv(batch: BatchResult, path: Path) -> Path:
    """One row per unit, in unit order."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for u in batch.units:
            writer.writerow({
                "unit": u.index + 1,
                "label": u.label,
                "start_page": u.start_page + 1,
                "end_page": u.end_page + 1,
                "status": "ok" if u.succeeded else "error",
                "error_kind": u.error_kind or "",
                "error": u.error or "",
                "attempts": u.attempts,
                "input_tokens": u.input_tokens,
                "output_tokens": u.output_tokens,
                "input_cost": f"{u.input_cost:.6f}",
                "output_cost": f"{u.output_cost:.6f}",
                "total_cost": f"{u.total_cost:.6f}",
                "duration_seconds": f"{u.duration_seconds:.3f}",
                "completed_at": u.completed_at,
            })
    return path


def render_text(batch: BatchResult) -> str:
    lines = [
        "PDF Analysis Report",
        "===================",
        "",
        f"Source PDF: {batch.source_path}",
        f"Model: {batch.model}",
        f"Total Pages: {batch.total_pages}",
        f"Units: {batch.unit_count} ({len(batch.succeeded)} ok, {len(batch.failed)} failed)",
        f"Generated: {batch.generated_at}",
        "",
        "=" * 80,
        "",
    ]
    for u in batch.units:
        if u.succeeded:
            lines.append((u.output_text or "").strip())
        else:
            lines.append(f"# {u.label.capitalize()}")
            lines.append(f"ERROR ({u.error_kind}): {u.error}")
        lines.append("")
    return "\n".join(lines)


def write_text(batch: BatchResult, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_text(batch), encoding="utf-8")
    return path


_WRITERS = {"json": write_json, "csv": write_csv, "txt": write_text}


def write_reports(batch: BatchResult, formats: Iterable[str],
                  output_dir: Optional[Path] = None) -> List[Path]:
    """Write every requested format, returning the paths written.
    A format that cannot be written is logged and skipped."""
    written: List[Path] = []
    for fmt in formats:
        path = output_path_for(Path(batch.source_path), fmt, output_dir)
        try:
            written.append(_WRITERS[fmt](batch, path))
        except OSError:
            logger.exception("Failed to write %s report to %s", fmt.upper(), path)
            continue
        logger.info("Saved %s report to %s", fmt.upper(), path)
    return written


def render_summary(batch: BatchResult) -> str:
    """Console summary of totals and failures."""
    lines = [
        RULE,
        "  FINAL ANALYSIS SUMMARY",
        RULE,
        f"Source:          {batch.source_path}",
        f"Model:           {batch.model}",
        f"Units:           {batch.unit_count} ({len(batch.succeeded)} ok, {len(batch.failed)} failed)",
        f"Input Tokens:    {batch.total_input_tokens}",
        f"Output Tokens:   {batch.total_output_tokens}",
        f"Input Cost:      ${batch.total_input_cost:.6f}",
        f"Output Cost:     ${batch.total_output_cost:.6f}",
        f"Total Cost:      ${batch.total_cost:.6f}",
        f"Processing Time: {batch.duration_seconds:.2f}s",
    ]
    if batch.failed:
        lines.append("Failures:")
        for u in batch.failed:
            lines.append(f"  - {u.label} ({u.error_kind}, {u.attempts} attempt(s)): {u.error}")
    lines.append(RULE)
    return "\n".join(lines)


def log_unit_errors(batch: BatchResult, error_log_path: Optional[Path]) -> int:
    """Append failed units to a JSONL error log. Returns the number of entries written."""
    if not error_log_path or not batch.failed:
        return 0
    try:
        error_log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(error_log_path, "a", encoding="utf-8") as f:
            for u in batch.failed:
                log_entry = {
                    "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
                    "source_path": batch.source_path,
                    "unit": u.index,
                    "label": u.label,
                    "error_kind": u.error_kind,
                    "error_reason": u.error,
                    "attempts": u.attempts,
                }
                f.write(json.dumps(log_entry, ensure_ascii=False) + "\n")
    except OSError:
        logger.exception("Failed to write error log")
        return 0
    return len(batch.failed)
