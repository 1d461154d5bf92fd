"""Shared fixtures and test doubles for the parapdf test suite."""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from pathlib import Path

import fitz
import pytest

from parapdf.exceptions import PermanentAnalysisError, TransientAnalysisError
from parapdf.models import Analysis, Unit


def make_units(n: int, payload_type: str = "text") -> list[Unit]:
    return [
        Unit(index=i, start_page=i, end_page=i, payload=f"text of page {i + 1}",
             payload_type=payload_type, label=f"page {i + 1}")
        for i in range(n)
    ]


class ScriptedAnalyzer:
    """Analysis function double.

    ``transient`` maps unit index -> number of leading transient failures
    (``None`` means always). ``permanent`` is a set of indices that fail
    permanently on every call. Tokens for a success are
    ``(100 * attempt + index, 10 * attempt + index)`` so a test can tell
    which attempt produced them. Tracks calls and concurrent entries.
    """

    def __init__(self, transient=None, permanent=(), crash=(), delay: float = 0.0):
        self.transient = dict(transient or {})
        self.permanent = set(permanent)
        self.crash = set(crash)
        self.delay = delay
        self.calls: dict[int, int] = defaultdict(int)
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def __call__(self, unit: Unit) -> Analysis:
        with self._lock:
            self.calls[unit.index] += 1
            attempt = self.calls[unit.index]
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if unit.index in self.crash:
                raise RuntimeError(f"bug while handling {unit.label}")
            if unit.index in self.permanent:
                raise PermanentAnalysisError(f"API error (status 400) on {unit.label}")
            fails = self.transient.get(unit.index, 0)
            if fails is None or attempt <= fails:
                raise TransientAnalysisError(f"API error (status 429) rate_limit on {unit.label}, attempt {attempt}")
            return Analysis(
                text=f"# {unit.label.capitalize()}\nanalysis attempt {attempt}",
                input_tokens=100 * attempt + unit.index,
                output_tokens=10 * attempt + unit.index,
            )
        finally:
            with self._lock:
                self.in_flight -= 1


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []
        self._lock = threading.Lock()

    def __call__(self, seconds: float) -> None:
        with self._lock:
            self.delays.append(seconds)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def sample_pdf(tmp_path: Path) -> Path:
    """A 5-page PDF whose pages read 'Sample page N'."""
    path = tmp_path / "Sample Drawing.pdf"
    doc = fitz.open()
    for i in range(5):
        page = doc.new_page()
        page.insert_text((72, 72), f"Sample page {i + 1}")
    doc.save(path)
    doc.close()
    return path
