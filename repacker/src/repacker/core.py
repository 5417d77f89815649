"""Core utilities: title parsing, grouping, naming and split arithmetic."""

from __future__ import annotations

import os
import re
import xml.etree.ElementTree as ET
import zipfile
from decimal import Decimal
from typing import Dict, List, Optional

from .types_ import ChapterMetadata, ParseResults, TitleFormat, VolumeGroup

COMICINFO_NAME = "comicinfo.xml"

# 84 MiB, the size a single volume archive should stay under
MAX_VOLUME_SIZE = 84 * 1024 * 1024
# only split when the volume is this much bigger than MAX_VOLUME_SIZE
SPLIT_MARGIN = 1.33

TOM_PREFIX = "том"
DASH_SEPARATOR = " - "

_NUMBER_RE = re.compile(r"([0-9]+(?:\.[0-9]+)?)")
_VOLUME_TOKEN_RE = re.compile(r"[0-9]+")
_DASH_RE = re.compile(
    r"(?P<volume>[0-9]+)\s*-\s*(?P<number>[0-9]+(?:\.[0-9]+)?)(?:\s+(?P<title>.+))?"
)


def find_cbz_files(root: str) -> List[str]:
    """Return the sorted paths of `.cbz` files found directly in `root`.

    Raises:
        OSError: If scanning the directory fails.
    """
    files: List[str] = []
    for entry in os.listdir(root):
        if entry.lower().endswith(".cbz") and os.path.isfile(os.path.join(root, entry)):
            files.append(os.path.join(root, entry))
    return sorted(files)


def _local_name(tag: str) -> str:
    # '{namespace}Title' -> 'Title'
    return tag.rsplit("}", 1)[-1]


def read_comicinfo_title(cbz_path: str) -> Optional[str]:
    """Return the text of the first `Title` element of the archive's ComicInfo.xml.

    The ComicInfo entry is matched on its file name, case-insensitively, at
    any depth inside the archive.

    Returns:
        The title text (possibly empty), or None when the archive has no
        ComicInfo.xml or the document has no `Title` element.

    Raises:
        zipfile.BadZipFile: the archive cannot be read.
        xml.etree.ElementTree.ParseError: ComicInfo.xml is not well-formed.
    """
    with zipfile.ZipFile(cbz_path, "r") as z:
        info = next(
            (
                i
                for i in z.infolist()
                if i.filename.rsplit("/", 1)[-1].lower() == COMICINFO_NAME
            ),
            None,
        )
        if info is None:
            return None
        data = z.read(info)

    root = ET.fromstring(data)
    for elem in root.iter():
        if isinstance(elem.tag, str) and _local_name(elem.tag) == "Title":
            return "".join(elem.itertext())
    return None


def classify_title(title: str) -> TitleFormat:
    """Decide which title convention applies.

    >>> classify_title('Том 3. Глава 12 - Буря')
    <TitleFormat.TOM: 'tom'>
    >>> classify_title('3 - 12 Storm')
    <TitleFormat.DASH: 'dash'>
    >>> classify_title('Chapter 12')
    <TitleFormat.UNRECOGNIZED: 'unrecognized'>
    """
    if title.casefold().startswith(TOM_PREFIX):
        return TitleFormat.TOM
    if DASH_SEPARATOR in title:
        return TitleFormat.DASH
    return TitleFormat.UNRECOGNIZED


def parse_tom_title(title: str) -> Optional[ChapterMetadata]:
    """Parse a title such as "Том 1. Глава 10.5 - Name".

    Tokens are `[prefix, volume, marker, number, ...]`; the chapter title is
    whatever follows the first " - ".

    >>> parse_tom_title('Том 1. Глава 10.5 - Начало')
    ChapterMetadata(volume=1, number=Decimal('10.5'), title='Начало')
    >>> parse_tom_title('Том  2.   Глава   7')
    ChapterMetadata(volume=2, number=Decimal('7'), title='')
    >>> parse_tom_title('Том 1. Глава') is None
    True
    >>> parse_tom_title('Том I. Глава 3') is None
    True
    """
    parts = title.split()
    if len(parts) < 4:
        return None

    volume_token = parts[1].rstrip(".")
    if not _VOLUME_TOKEN_RE.fullmatch(volume_token):
        return None

    m = _NUMBER_RE.search(parts[3])
    if not m:
        return None

    start = title.find(DASH_SEPARATOR)
    chapter_title = title[start + len(DASH_SEPARATOR):] if start > 0 else ""
    return ChapterMetadata(int(volume_token), Decimal(m.group(1)), chapter_title)


def parse_dash_title(title: str) -> Optional[ChapterMetadata]:
    """Parse a title such as "1 - 10.5 Chapter Name".

    >>> parse_dash_title('1 - 10.5 A Title - With Dash ')
    ChapterMetadata(volume=1, number=Decimal('10.5'), title='A Title - With Dash')
    >>> parse_dash_title('12-3')
    ChapterMetadata(volume=12, number=Decimal('3'), title='')
    >>> parse_dash_title('Vol - One') is None
    True
    """
    m = _DASH_RE.search(title)
    if not m:
        return None
    chapter_title = (m.group("title") or "").strip()
    return ChapterMetadata(int(m.group("volume")), Decimal(m.group("number")), chapter_title)


_PARSERS = {
    TitleFormat.TOM: parse_tom_title,
    TitleFormat.DASH: parse_dash_title,
}


def parse_title(title: str) -> Optional[ChapterMetadata]:
    """Parse a ComicInfo title with the matcher of its convention.

    >>> parse_title('Том 2. Глава 1 - Финал').volume
    2
    >>> parse_title('Oneshot') is None
    True
    """
    parser = _PARSERS.get(classify_title(title))
    if parser is None:
        return None
    return parser(title)


def group_by_volume(results: ParseResults) -> Dict[int, VolumeGroup]:
    """Group parsed archives by volume, chapters sorted by number then file name.

    Raises ValueError if any archive is unparsed.

    >>> from decimal import Decimal
    >>> groups = group_by_volume({
    ...     'b.cbz': ChapterMetadata(1, Decimal('2'), ''),
    ...     'a.cbz': ChapterMetadata(1, Decimal('1.5'), ''),
    ...     'c.cbz': ChapterMetadata(2, Decimal('1'), ''),
    ... })
    >>> [name for name, _ in groups[1]]
    ['a.cbz', 'b.cbz']
    >>> sorted(groups)
    [1, 2]
    """
    missing = sorted(name for name, info in results.items() if info is None)
    if missing:
        raise ValueError(f"unparsed archives: {missing}")

    groups: Dict[int, VolumeGroup] = {}
    for name, info in results.items():
        groups.setdefault(info.volume, []).append((name, info))
    for chapters in groups.values():
        chapters.sort(key=lambda pair: (pair[1].number, pair[0]))
    return groups


def digit_width(value: int) -> int:
    """Number of decimal digits of a non-negative integer.

    >>> digit_width(140), digit_width(9), digit_width(0)
    (3, 1, 1)
    """
    return len(str(value))


def format_chapter_number(number: Decimal, padding: int) -> str:
    """Zero-pad the integer part of a chapter number; keep the fraction as is.

    >>> from decimal import Decimal
    >>> [format_chapter_number(Decimal(n), 2) for n in ('1', '1.5', '2', '10', '10.5')]
    ['01', '01.5', '02', '10', '10.5']
    >>> format_chapter_number(Decimal('5.50'), 3)
    '005.5'
    >>> format_chapter_number(Decimal('100'), 1)
    '100'
    """
    text = format(number.normalize(), "f")
    whole, _, fraction = text.partition(".")
    whole = whole.zfill(padding)
    return f"{whole}.{fraction}" if fraction else whole


def format_volume_name(volume: int, padding: int) -> str:
    """Return the canonical volume label.

    >>> [format_volume_name(v, digit_width(140)) for v in (1, 23, 140)]
    ['Vol 001', 'Vol 023', 'Vol 140']
    """
    return f"Vol {volume:0{padding}d}"


def volume_archive_name(manga_name: str, volume: int, padding: int, sub_volume: int = 0) -> str:
    """Return the destination archive file name for a (sub-)volume.

    >>> volume_archive_name('Berserk', 3, 2)
    'Berserk - Vol 03.cbz'
    >>> volume_archive_name('Berserk', 3, 2, sub_volume=2)
    'Berserk - Vol 03.2.cbz'
    """
    suffix = f".{sub_volume}" if sub_volume else ""
    return f"{manga_name} - {format_volume_name(volume, padding)}{suffix}.cbz"


def should_split(original_size: int, max_volume_size: int = MAX_VOLUME_SIZE, margin: float = SPLIT_MARGIN) -> bool:
    """Whether a volume of `original_size` bytes is split into sub-volumes.

    >>> should_split(int(MAX_VOLUME_SIZE * 1.4))
    True
    >>> should_split(int(MAX_VOLUME_SIZE * 1.1))
    False
    >>> should_split(10 ** 12, max_volume_size=0)
    False
    """
    return max_volume_size > 0 and original_size > max_volume_size * margin


def recommended_volume_size(
    original_size: int,
    max_volume_size: int = MAX_VOLUME_SIZE,
    payload_size: Optional[int] = None,
) -> float:
    """Target size of each sub-volume once splitting is active.

    The volume is cut into `round(original_size / max_volume_size)` parts,
    never fewer than two. The target is expressed in `payload_size` units
    (the compressed bytes copied) when given, else in `original_size` units.

    >>> recommended_volume_size(140, 100)
    70.0
    >>> recommended_volume_size(360, 100)
    90.0
    >>> recommended_volume_size(140, 100, payload_size=120)
    60.0
    """
    parts = max(2, round(original_size / max_volume_size))
    total = original_size if payload_size is None else payload_size
    return total / parts
