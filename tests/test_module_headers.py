"""Every application module opens with a comment naming its own path."""

from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
MODULES = sorted((ROOT / "app").rglob("*.py"))


def test_modules_found():
    assert MODULES


@pytest.mark.parametrize("path", MODULES, ids=lambda p: p.relative_to(ROOT).as_posix())
def test_first_line_is_path_comment(path):
    first_line = path.read_text(encoding="utf-8").splitlines()[0]
    assert first_line == f"# {path.relative_to(ROOT).as_posix()}"
