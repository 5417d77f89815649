"""Small helpers exported for tests.

These convenience functions are intended for use by the test suite only.
"""
import os
import subprocess
import sys
import zipfile
from pathlib import Path
from typing import Dict, Optional
from xml.sax.saxutils import escape


def comicinfo_xml(title: Optional[str]) -> str:
    """Return a minimal ComicInfo.xml document, without `Title` when None."""
    title_elem = f"  <Title>{escape(title)}</Title>\n" if title is not None else ""
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<ComicInfo xmlns:xsd="http://www.w3.org/2001/XMLSchema" '
        'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">\n'
        f"{title_elem}"
        "</ComicInfo>\n"
    )


def make_cbz(
    path: Path,
    name: str,
    title: Optional[str] = None,
    include_comicinfo: bool = True,
    pages: Optional[Dict[str, bytes]] = None,
):
    """Write a chapter archive `path/name` holding `pages` and a ComicInfo.xml."""
    if pages is None:
        pages = {"001.jpg": b"img"}
    p = path / name
    with zipfile.ZipFile(p, "w") as z:
        if include_comicinfo:
            z.writestr("ComicInfo.xml", comicinfo_xml(title))
        for page, data in pages.items():
            z.writestr(page, data)
    return p


def run_repacker(args):
    script = Path(__file__).resolve().parent / "main.py"
    cmd = [sys.executable, str(script)] + [str(a) for a in args]
    env = dict(os.environ, PYTHONIOENCODING="utf-8")
    return subprocess.run(cmd, capture_output=True, text=True, encoding="utf-8", env=env)
