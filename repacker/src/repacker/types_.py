from __future__ import annotations

import enum
from decimal import Decimal
from typing import Dict, List, NamedTuple, Optional, Tuple, TypeAlias


class ChapterMetadata(NamedTuple):
    """Volume/chapter/title triple parsed from a ComicInfo `Title`.

    `number` is a Decimal so fractional chapters (e.g. 10.5) keep their
    exact textual value; `title` may be empty.
    """

    volume: int
    number: Decimal
    title: str


class TitleFormat(enum.Enum):
    """Known conventions for the ComicInfo title string."""

    TOM = "tom"
    DASH = "dash"
    UNRECOGNIZED = "unrecognized"


# archive file name -> parsed metadata, None marks an unparsed archive
ParseResults: TypeAlias = Dict[str, Optional[ChapterMetadata]]

# chapters of one volume as (archive file name, metadata) pairs
VolumeGroup: TypeAlias = List[Tuple[str, ChapterMetadata]]


class PackedVolume(NamedTuple):
    """Result of packing one volume: its number and the archives written."""

    volume: int
    archives: List[str]
