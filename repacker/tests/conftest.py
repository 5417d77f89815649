import pytest
from pathlib import Path

from repacker.config import Config
from repacker.testing import make_cbz as _make_cbz


@pytest.fixture
def make_cbz():
    return _make_cbz


@pytest.fixture
def series_dir(tmp_path: Path) -> Path:
    src = tmp_path / "Series"
    src.mkdir()
    return src


@pytest.fixture
def out_dir(tmp_path: Path) -> Path:
    out = tmp_path / "out"
    out.mkdir()
    return out


@pytest.fixture
def make_config(series_dir: Path, out_dir: Path):
    def _make_config(**kwargs):
        return Config(source=str(series_dir), output=str(out_dir), **kwargs)

    return _make_config
