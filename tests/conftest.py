from __future__ import annotations

from pathlib import Path

import pytest

from JsonToCSV.core.table_builder import TableRegistry


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    return tmp_path / "out"


@pytest.fixture
def registry(output_dir: Path):
    registry = TableRegistry(str(output_dir))
    yield registry
    registry.close()


@pytest.fixture
def csv_lines(output_dir: Path):
    def _read(table_name: str) -> list[str]:
        return (output_dir / f"{table_name}.csv").read_text(encoding="utf-8").splitlines()

    return _read
