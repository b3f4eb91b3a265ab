"""Shared pytest fixtures and test helpers for phishwatch tests."""

from __future__ import annotations

from datetime import datetime
from io import StringIO
from pathlib import Path
from typing import Optional

import pytest
from rich.console import Console

from phishwatch.decomposer import Decomposer
from phishwatch.output import PHISHWATCH_THEME, Output
from phishwatch.processor import Processor


class StubResolver:
    """Suffix resolver that knows a handful of public suffixes."""

    SUFFIXES = ("co.uk", "com", "net", "org", "info", "ru", "xyz")

    def root(self, domain: str) -> Optional[str]:
        labels = domain.split(".")
        for size in (2, 1):
            if len(labels) > size and ".".join(labels[-size:]) in self.SUFFIXES:
                return ".".join(labels[-size - 1:])
        return None


class RaisingResolver:
    def root(self, domain: str) -> Optional[str]:
        raise ValueError(f"cannot parse {domain}")


FIXED_NOW = datetime(2024, 3, 9, 14, 5, 7)


@pytest.fixture
def decomposer() -> Decomposer:
    return Decomposer(StubResolver())


@pytest.fixture
def raising_decomposer() -> Decomposer:
    return Decomposer(RaisingResolver())


@pytest.fixture
def console_buffer() -> StringIO:
    return StringIO()


@pytest.fixture
def console(console_buffer: StringIO) -> Console:
    """Colorless console writing into a buffer."""
    return Console(file=console_buffer, theme=PHISHWATCH_THEME, no_color=True, width=200)


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    return tmp_path / "alerts.log"


@pytest.fixture
def output(log_path: Path, console: Console) -> Output:
    return Output(log_path=str(log_path), console=console, clock=lambda: FIXED_NOW)


@pytest.fixture
def make_processor(decomposer: Decomposer, output: Output):
    """Build a Processor over the stub resolver with the given keywords."""

    def _make(*keywords: str, **kwargs) -> Processor:
        return Processor(keywords=keywords, decomposer=decomposer, output=output, **kwargs)

    return _make
