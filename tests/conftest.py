import logging
import os
from pathlib import Path
from typing import List

import pytest

from multiprog.utils.logging import reset_logging


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test outside any allocation and without MP_* tunables."""
    for name in list(os.environ):
        if name.startswith(("SLURM_", "MP_")) or name in ("SCRATCH", "OMP_NUM_THREADS"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    reset_logging()


@pytest.fixture
def command_file(tmp_path: Path):
    def _write(lines: List[str], name: str = "commands.txt") -> Path:
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write
