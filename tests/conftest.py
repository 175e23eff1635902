import json
import logging
from pathlib import Path

import pytest

import fav

DOCKER = {
    "name": "docker clean",
    "description": "prune unused docker data",
    "command": "docker system prune -af",
}
GIT = {
    "name": "git undo",
    "description": "drop the last commit but keep changes",
    "command": "git reset --soft HEAD~1",
}


class FakeRunner:
    """Stands in for fzf: records what it was fed and replies with a canned result."""

    def __init__(self, output: str = "", status: int = 0):
        self.output = output
        self.status = status
        self.calls = []

    def run(self, lines, options):
        self.calls.append((lines, list(options)))
        return self.output, self.status


@pytest.fixture
def write_store(tmp_path: Path):
    """Write a favorites file and return its path."""

    def _write(data, raw: bool = False) -> Path:
        path = tmp_path / "history_fav.json"
        text = data if raw else json.dumps(data, ensure_ascii=False)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def store(write_store) -> Path:
    return write_store({"commands": [DOCKER, GIT]})


@pytest.fixture
def config(store: Path) -> fav.Config:
    return fav.Config(store_path=store, fzf_path="/usr/bin/fzf")


@pytest.fixture(autouse=True)
def _restore_root_logger():
    # --verbose reconfigures the root logger; keep it from leaking between tests
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
