"""Worker primitives: per-archive metadata extraction and per-volume packing."""

from __future__ import annotations

import concurrent.futures
import logging
import os
import shutil
import zipfile
from typing import List, Optional, Tuple

from .core import (
    digit_width,
    find_cbz_files,
    format_chapter_number,
    format_volume_name,
    group_by_volume,
    parse_title,
    read_comicinfo_title,
    recommended_volume_size,
    should_split,
    volume_archive_name,
)
from .types_ import ChapterMetadata, PackedVolume, ParseResults, VolumeGroup

logger = logging.getLogger(__name__)


def extract_one(cbz_path: str) -> Tuple[str, Optional[ChapterMetadata]]:
    """Read and parse the ComicInfo title of a single archive.

    Never raises: an unreadable archive, a missing or malformed
    `ComicInfo.xml`, a missing `Title` or an unrecognized title all yield
    None for that archive.

    Returns:
        Tuple[str, Optional[ChapterMetadata]]: (archive file name, metadata).
    """
    name = os.path.basename(cbz_path)
    try:
        title = read_comicinfo_title(cbz_path)
    except Exception as e:
        logger.debug(f"[extract] {name}: cannot read ComicInfo.xml: {e}")
        return name, None

    if title is None:
        logger.debug(f"[extract] {name}: no ComicInfo title")
        return name, None

    info = parse_title(title)
    if info is None:
        logger.debug(f"[extract] {name}: unrecognized title {title!r}")
    else:
        logger.debug(f"[extract] {name}: {info}")
    return name, info


def parse_directory(path: str, nb_worker: int = 1) -> ParseResults:
    """Parse the ComicInfo metadata of every `.cbz` archive in `path`.

    Archives are read on a thread pool when `nb_worker > 1`. Each archive is
    handled on its own, so processing N archives yields exactly N entries.
    """
    cbz_files = find_cbz_files(path)
    logger.debug(f"[extract] found {len(cbz_files)} .cbz files in {path}")

    results: ParseResults = {}
    if nb_worker > 1 and len(cbz_files) > 1:
        logger.debug(f"[extract] Using ThreadPoolExecutor with {nb_worker} workers")
        with concurrent.futures.ThreadPoolExecutor(max_workers=nb_worker) as ex:
            futures = [ex.submit(extract_one, f) for f in cbz_files]
            for fut in concurrent.futures.as_completed(futures):
                name, info = fut.result()
                results[name] = info
    else:
        for f in cbz_files:
            name, info = extract_one(f)
            results[name] = info
    return results


def unparsed_files(results: ParseResults) -> List[str]:
    """Return the sorted names of the archives that failed to parse."""
    return sorted(name for name, info in results.items() if info is None)


def _copy_chapter(src_file: str, folder: str, archive: Optional[zipfile.ZipFile]) -> int:
    """Copy every file entry of `src_file` under `folder/` in `archive`.

    Entries are stream-copied with their original compression method. With
    `archive=None` nothing is written (dry-run) but sizes are still counted.

    Returns:
        int: sum of the compressed sizes of the source entries.
    """
    copied = 0
    seen = set()
    with zipfile.ZipFile(src_file, "r") as src:
        for info in src.infolist():
            base = info.filename.rsplit("/", 1)[-1]
            if info.is_dir() or not base:
                continue
            if base in seen:
                logger.warning(f"duplicate entry name {base!r} in {src_file}, {folder}/{base} written twice")
            seen.add(base)
            if archive is not None:
                target = zipfile.ZipInfo(f"{folder}/{base}", date_time=info.date_time)
                target.compress_type = info.compress_type
                target.external_attr = info.external_attr
                large = info.file_size > zipfile.ZIP64_LIMIT
                with src.open(info) as fin, archive.open(target, "w", force_zip64=large) as fout:
                    shutil.copyfileobj(fin, fout)
            copied += info.compress_size
    return copied


def _payload_size(src_file: str) -> int:
    """Sum of the compressed sizes of the file entries of `src_file`."""
    with zipfile.ZipFile(src_file, "r") as src:
        return sum(i.compress_size for i in src.infolist() if not i.is_dir())


def pack_volume(
    volume: int,
    chapters: VolumeGroup,
    target_dir: str,
    volume_padding: int,
    cfg,
) -> PackedVolume:
    """Stream the chapters of one volume into one or more `.cbz` archives.

    Steps:
    1. sum the on-disk size of the source archives;
    2. when that size exceeds `cfg.max_volume_size * cfg.split_margin`,
       number the archives from 1 and start a new one as soon as the bytes
       written reach the recommended sub-volume size (counted in compressed
       entry bytes, the unit accumulated while copying);
    3. copy each chapter's files under a zero-padded chapter folder.

    Chapters are processed in the given order; only one destination archive
    is open at a time and it is closed on every exit path.

    Args:
        volume: volume number.
        chapters: (archive file name, metadata) pairs sorted by chapter.
        target_dir: directory receiving the archives.
        volume_padding: width used to zero-pad the volume number.
        cfg: `Config` providing `source`, `max_volume_size`, `split_margin`
             and `dry_run`.

    Returns:
        PackedVolume: the volume number and the archive paths (planned paths
        in dry-run).

    Raises:
        OSError, zipfile.BadZipFile: when a source archive cannot be read or
        a destination cannot be written. Archives already written for this
        volume are left on disk.
    """
    original_size = sum(os.path.getsize(os.path.join(cfg.source, name)) for name, _ in chapters)
    split = should_split(original_size, cfg.max_volume_size, cfg.split_margin)
    target_size = None
    if split:
        # same unit as volume_size: compressed entry bytes
        payload = sum(_payload_size(os.path.join(cfg.source, name)) for name, _ in chapters)
        target_size = recommended_volume_size(original_size, cfg.max_volume_size, payload_size=payload)

    max_chapter = max(info.number for _, info in chapters)
    chapter_padding = digit_width(int(max_chapter))

    logger.debug(
        f"[pack] volume {volume}: {len(chapters)} chapters, {original_size} bytes, "
        f"split={split} target={target_size}"
    )

    written: List[str] = []
    archive: Optional[zipfile.ZipFile] = None
    dest_path: Optional[str] = None
    volume_size = 0
    sub_volume = 1 if split else 0

    try:
        for name, info in chapters:
            if sub_volume > 0 and dest_path is not None and volume_size >= target_size:
                if archive is not None:
                    archive.close()
                    archive = None
                dest_path = None
                volume_size = 0
                sub_volume += 1

            if dest_path is None:
                dest_path = os.path.join(
                    target_dir,
                    volume_archive_name(cfg.manga_name, volume, volume_padding, sub_volume),
                )
                written.append(dest_path)
                if cfg.dry_run:
                    logger.info(f"[dry-run] create {dest_path}")
                else:
                    logger.debug(f"[pack] creating {dest_path}")
                    archive = zipfile.ZipFile(dest_path, "w")

            folder = format_chapter_number(info.number, chapter_padding)
            logger.debug(f"[pack] chapter {info.number} ({name}) -> {folder}/")
            volume_size += _copy_chapter(os.path.join(cfg.source, name), folder, archive)
    finally:
        if archive is not None:
            archive.close()

    return PackedVolume(volume, written)


def reorganize(results: ParseResults, cfg) -> List[PackedVolume]:
    """Pack every parsed chapter archive into per-volume archives.

    Creates `<cfg.output>/<manga name>/` and fills it with one or more
    `<manga name> - Vol NN[.S].cbz` archives per volume, volumes in ascending
    order. `results` must not hold unparsed archives.

    Raises:
        FileNotFoundError: the source directory does not exist.
        FileExistsError: the destination directory already exists.
        ValueError: `results` contains unparsed archives.
    """
    if not os.path.isdir(cfg.source):
        raise FileNotFoundError(f"Source directory isn't found: {cfg.source}")

    volumes = group_by_volume(results)
    if not volumes:
        logger.warning(f"nothing to pack in {cfg.source}")
        return []

    target_dir = os.path.join(cfg.output, cfg.manga_name)
    if os.path.exists(target_dir):
        raise FileExistsError(f"Output directory already exists: {target_dir}")
    if cfg.dry_run:
        logger.info(f"[dry-run] mkdir {target_dir}")
    else:
        os.makedirs(target_dir)

    max_volume = max(volumes)
    padding = digit_width(max_volume)

    packed: List[PackedVolume] = []
    for volume in sorted(volumes):
        label = format_volume_name(volume, padding)
        logger.info(f"Generating volume {label}/{max_volume}...")
        packed.append(pack_volume(volume, volumes[volume], target_dir, padding, cfg))
    return packed
