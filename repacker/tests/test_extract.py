import zipfile
from decimal import Decimal
from pathlib import Path

from repacker.core import read_comicinfo_title
from repacker.testing import make_cbz
from repacker.worker import extract_one, parse_directory, unparsed_files


def test_read_title_case_insensitive_entry(tmp_path: Path):
    p = tmp_path / "c1.cbz"
    with zipfile.ZipFile(p, "w") as z:
        z.writestr("meta/COMICINFO.XML", "<ComicInfo><Title>1 - 2 Name</Title></ComicInfo>")
        z.writestr("001.jpg", "img")
    assert read_comicinfo_title(str(p)) == "1 - 2 Name"


def test_read_title_first_title_wins(tmp_path: Path):
    p = tmp_path / "c1.cbz"
    with zipfile.ZipFile(p, "w") as z:
        z.writestr(
            "ComicInfo.xml",
            "<ComicInfo><Series>S</Series><Title>1 - 1 First</Title><Title>9 - 9 Second</Title></ComicInfo>",
        )
    assert read_comicinfo_title(str(p)) == "1 - 1 First"


def test_read_title_missing(tmp_path: Path):
    p = make_cbz(tmp_path, "c1.cbz", title=None)
    assert read_comicinfo_title(str(p)) is None
    q = make_cbz(tmp_path, "c2.cbz", include_comicinfo=False)
    assert read_comicinfo_title(str(q)) is None


def test_extract_one_success(tmp_path: Path):
    p = make_cbz(tmp_path, "Chapter 10.5.cbz", title="Том 2. Глава 10.5 - Экстра")
    name, info = extract_one(str(p))
    assert name == "Chapter 10.5.cbz"
    assert info.volume == 2
    assert info.number == Decimal("10.5")
    assert info.title == "Экстра"


def test_extract_one_failures_never_raise(tmp_path: Path):
    bad_zip = tmp_path / "bad.cbz"
    bad_zip.write_bytes(b"not a zip")
    bad_xml = tmp_path / "badxml.cbz"
    with zipfile.ZipFile(bad_xml, "w") as z:
        z.writestr("ComicInfo.xml", "<ComicInfo><Title>1 - 1</Title>")
    no_info = make_cbz(tmp_path, "noinfo.cbz", include_comicinfo=False)
    no_title = make_cbz(tmp_path, "notitle.cbz", title=None)
    weird = make_cbz(tmp_path, "weird.cbz", title="Chapter One")

    for p in (bad_zip, bad_xml, no_info, no_title, weird):
        name, info = extract_one(str(p))
        assert name == p.name
        assert info is None


def test_parse_directory_one_entry_per_archive(tmp_path: Path):
    src = tmp_path / "src"
    src.mkdir()
    for i in range(1, 13):
        make_cbz(src, f"c{i:02d}.cbz", title=f"1 - {i} Chapter {i}")
    make_cbz(src, "broken.cbz", include_comicinfo=False)
    (src / "notes.txt").write_text("ignored")

    serial = parse_directory(str(src), nb_worker=1)
    threaded = parse_directory(str(src), nb_worker=4)

    assert len(serial) == 13
    assert serial == threaded
    assert serial["c07.cbz"].number == Decimal("7")
    assert unparsed_files(threaded) == ["broken.cbz"]


def test_parse_directory_empty(tmp_path: Path):
    assert parse_directory(str(tmp_path), nb_worker=4) == {}
