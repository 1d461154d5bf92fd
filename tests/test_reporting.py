"""Tests for reporting.py."""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path

import pytest

from parapdf.costs import aggregate
from parapdf.models import Pricing, UnitResult
from parapdf.reporting import (
    log_unit_errors,
    output_path_for,
    render_summary,
    render_text,
    safe_fname,
    write_reports,
)


@pytest.fixture
def batch():
    units = [
        UnitResult(index=0, label="page 1", start_page=0, end_page=0,
                   output_text="# Page 1\nHousing, 120 mm", input_tokens=1000, output_tokens=200, attempts=1),
        UnitResult(index=1, label="page 2", start_page=1, end_page=1,
                   error="API error (status 429) rate_limit", error_kind="transient", attempts=3),
        UnitResult(index=2, label="page 3", start_page=2, end_page=2,
                   output_text="# Page 3\nBOM", input_tokens=500, output_tokens=50, attempts=2),
    ]
    return aggregate(units, Pricing(1.0, 5.0), source_path="/data/Pump Assembly.pdf",
                     model="claude-3-5-haiku-20241022", total_pages=3, duration_seconds=4.2)


def test_safe_fname():
    assert safe_fname("Pump Assembly (rev B)") == "pump-assembly-rev-b"
    assert safe_fname("  ") == "document"


def test_output_path_next_to_pdf():
    assert output_path_for(Path("/data/Pump Assembly.pdf"), "json") == Path("/data/pump-assembly_analysis.json")


def test_output_path_unknown_format():
    with pytest.raises(ValueError):
        output_path_for(Path("a.pdf"), "xml")


def test_write_all_formats(batch, tmp_path):
    paths = write_reports(batch, ["json", "csv", "txt"], tmp_path)
    assert [p.name for p in paths] == [
        "pump-assembly_analysis.json", "pump-assembly_analysis.csv", "pump-assembly_analysis.txt",
    ]

    data = json.loads(paths[0].read_text(encoding="utf-8"))
    assert [u["index"] for u in data["units"]] == [0, 1, 2]
    assert data["units"][0]["start_page"] == 1
    assert data["total_input_tokens"] == 1500
    assert data["total_cost"] == pytest.approx(sum(u["total_cost"] for u in data["units"]))

    with open(paths[1], encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert [r["status"] for r in rows] == ["ok", "error", "ok"]
    assert rows[1]["attempts"] == "3"


def test_render_text_keeps_order_and_marks_errors(batch):
    text = render_text(batch)
    assert text.index("# Page 1") < text.index("ERROR (transient)") < text.index("# Page 3")
    assert "Total Pages: 3" in text


def test_render_summary(batch):
    summary = render_summary(batch)
    assert "FINAL ANALYSIS SUMMARY" in summary
    assert "3 (2 ok, 1 failed)" in summary
    assert f"${batch.total_cost:.6f}" in summary
    assert "page 2 (transient, 3 attempt(s))" in summary


def test_log_unit_errors(batch, tmp_path):
    log_path = tmp_path / "logs" / "errors.jsonl"
    assert log_unit_errors(batch, log_path) == 1
    assert log_unit_errors(batch, log_path) == 1
    entries = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
    assert len(entries) == 2
    assert entries[0]["label"] == "page 2"
    assert entries[0]["error_kind"] == "transient"


def test_log_unit_errors_disabled(batch):
    assert log_unit_errors(batch, None) == 0


def test_write_reports_skips_unwritable_format(batch, tmp_path, caplog):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    with caplog.at_level(logging.ERROR, logger="parapdf"):
        assert write_reports(batch, ["json", "txt"], blocker / "out") == []
    assert "Failed to write JSON report" in caplog.text
    assert "Failed to write TXT report" in caplog.text
