from pathlib import Path

import pytest

from sitegen.config import SiteConfig


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def write():
    return _write


@pytest.fixture
def make_config(tmp_path):
    """Factory for a SiteConfig rooted in tmp_path with no settle delay."""

    def factory(**overrides):
        values = {
            "site_path": tmp_path / "site",
            "public_path": tmp_path / "public",
            "settle_delay": 0,
        }
        values.update(overrides)
        (Path(values["site_path"]) / "src").mkdir(parents=True, exist_ok=True)
        return SiteConfig(**values)

    return factory
