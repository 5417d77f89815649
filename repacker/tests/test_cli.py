import json
import os
from pathlib import Path

import yaml

from repacker.testing import make_cbz, run_repacker


def _make_series(src: Path):
    make_cbz(src, "Глава 1.cbz", title="Том 1. Глава 1 - Начало")
    make_cbz(src, "Глава 2.cbz", title="Том 1. Глава 2 - Продолжение")
    make_cbz(src, "Глава 3.cbz", title="Том 2. Глава 1 - Финал")


def test_cli_packs_volumes(tmp_path: Path):
    src = tmp_path / "Manga"
    src.mkdir()
    _make_series(src)
    out = tmp_path / "out"

    res = run_repacker([src, out, "--nb-worker", "3"])

    assert res.returncode == 0, f"stdout={res.stdout} stderr={res.stderr}"
    assert sorted(os.listdir(out / "Manga")) == ["Manga - Vol 1.cbz", "Manga - Vol 2.cbz"]
    assert "Generating volume Vol 1/2" in res.stderr
    assert "Done" in res.stderr


def test_cli_wrong_arity_prints_usage(tmp_path: Path):
    res = run_repacker([tmp_path])
    assert res.returncode == 0
    assert "usage:" in res.stdout.lower()

    res = run_repacker([])
    assert res.returncode == 0
    assert "usage:" in res.stdout.lower()


def test_cli_unparseable_archive_writes_nothing(tmp_path: Path):
    src = tmp_path / "Manga"
    src.mkdir()
    _make_series(src)
    make_cbz(src, "Bonus.cbz", include_comicinfo=False)
    out = tmp_path / "out"

    res = run_repacker([src, out])

    assert res.returncode == 0
    assert "Can't parse file: Bonus" in res.stderr
    assert not out.exists()


def test_cli_missing_source(tmp_path: Path):
    out = tmp_path / "out"
    res = run_repacker([tmp_path / "nope", out])
    assert res.returncode == 0
    assert "Source directory isn't found" in res.stderr
    assert not out.exists()


def test_cli_existing_destination_reported(tmp_path: Path):
    src = tmp_path / "Manga"
    src.mkdir()
    _make_series(src)
    out = tmp_path / "out"
    (out / "Manga").mkdir(parents=True)

    res = run_repacker([src, out])

    assert res.returncode == 0
    assert "Error during packing" in res.stderr
    assert "FileExistsError" in res.stderr
    assert os.listdir(out / "Manga") == []


def test_cli_dry_run(tmp_path: Path):
    src = tmp_path / "Manga"
    src.mkdir()
    _make_series(src)
    out = tmp_path / "out"

    res = run_repacker([src, out, "--dry-run"])

    assert res.returncode == 0, res.stderr
    assert "[dry-run] create" in res.stderr
    assert not out.exists()


def test_cli_dump_metadata(tmp_path: Path):
    src = tmp_path / "Manga"
    src.mkdir()
    _make_series(src)
    make_cbz(src, "Bonus.cbz", title="Omake")
    out = tmp_path / "out"
    dump = tmp_path / "meta.yaml"

    res = run_repacker([src, out, "--dump-metadata", dump])

    assert res.returncode == 0
    data = yaml.safe_load(dump.read_text(encoding="utf-8"))
    assert data["serie"] == "Manga"
    assert [v["number"] for v in data["volumes"]] == [1, 2]
    assert data["volumes"][0]["chapters"][1]["title"] == "Продолжение"
    assert data["unparsed"] == ["Bonus.cbz"]
    # parsing failed, so nothing is packed
    assert not out.exists()


def test_cli_config_file_max_volume_size(tmp_path: Path):
    src = tmp_path / "Manga"
    src.mkdir()
    for i in range(1, 5):
        make_cbz(src, f"c{i}.cbz", title=f"1 - {i}", pages={"001.bin": os.urandom(10_000)})
    original_size = sum(p.stat().st_size for p in src.iterdir())
    (src / "repacker.json").write_text(json.dumps({"max_volume_size_mib": original_size / 1.4 / 1024 / 1024}))
    out = tmp_path / "out"

    res = run_repacker([src, out, "--loglevel", "DEBUG"])

    assert res.returncode == 0, res.stderr
    assert sorted(os.listdir(out / "Manga")) == ["Manga - Vol 1.1.cbz", "Manga - Vol 1.2.cbz"]
    assert "🔧 DEBUG:" in res.stderr


def test_cli_invalid_config_file(tmp_path: Path):
    src = tmp_path / "Manga"
    src.mkdir()
    _make_series(src)
    (src / "repacker.json").write_text("{ not: valid, }")
    out = tmp_path / "out"

    res = run_repacker([src, out])

    assert res.returncode == 0
    assert "Invalid repacker.json" in res.stderr
    assert str(src / "repacker.json") in res.stderr
    assert not out.exists()
