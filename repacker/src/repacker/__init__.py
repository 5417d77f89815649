"""Repacker package: regroup per-chapter `.cbz` archives into per-volume archives.

Public API:
- parse_directory(path, nb_worker=1) -> {archive name: ChapterMetadata | None}
- reorganize(results, cfg) -> [PackedVolume, ...]

Volume and chapter numbers come from the `Title` of each archive's
`ComicInfo.xml` ("Том 1. Глава 2 - Name" or "1 - 2 Name").
"""
from .config import Config
from .types_ import ChapterMetadata, PackedVolume
from .worker import parse_directory, reorganize

__all__ = ["ChapterMetadata", "Config", "PackedVolume", "parse_directory", "reorganize"]
