"""CLI layer: argument parsing, config building, and top-level orchestration."""
from __future__ import annotations

import argparse
import logging
import os
from typing import Optional

from .config import CONFIG_FILENAME, DEFAULT_NB_WORKER, Config, load_config_from_path, mib_to_bytes
from .core import MAX_VOLUME_SIZE, SPLIT_MARGIN
from .report import dump_metadata
from .worker import parse_directory, reorganize, unparsed_files

logger = logging.getLogger(__name__)


class ColorFormatter(logging.Formatter):
    """Compact `<emoji> LEVEL: message` formatter, optionally colored."""

    COLORS = {
        'DEBUG': '\x1b[34m',    # blue
        'INFO': '\x1b[32m',     # green
        'WARNING': '\x1b[33m',  # yellow
        'ERROR': '\x1b[31m',    # red
        'CRITICAL': '\x1b[31;1m',
    }
    EMOJI = {
        'DEBUG': '🔧',
        'INFO': '✅',
        'WARNING': '⚠️',
        'ERROR': '❌',
        'CRITICAL': '💥',
    }
    RESET = '\x1b[0m'

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        emoji = self.EMOJI.get(level, '')
        if self.use_color:
            prefix = f"{self.COLORS.get(level, '')}{emoji} {level}:{self.RESET}"
        else:
            prefix = f"{emoji} {level}:"
        formatted = f"{prefix} {record.getMessage()}"
        if record.exc_info:
            formatted = f"{formatted}\n{self.formatException(record.exc_info)}"
        return formatted


def setup_logging(verbose: bool = False, loglevel: Optional[str] = None, force_color: Optional[bool] = None):
    """Configure the root logger with `ColorFormatter` on stderr.

    - verbose -> DEBUG level, otherwise INFO
    - loglevel: explicit string level to override verbose (e.g. DEBUG|INFO|WARNING|ERROR)
    - force_color: True/False to override automatic TTY detection
    """
    root = logging.getLogger()
    root.handlers.clear()

    if loglevel:
        lvl = loglevel.upper()
        if lvl == 'WARN':
            lvl = 'WARNING'
        level = getattr(logging, lvl, logging.INFO)
    else:
        level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    if force_color is None:
        use_color = hasattr(handler.stream, "isatty") and handler.stream.isatty()
    else:
        use_color = force_color

    handler.setFormatter(ColorFormatter(use_color))
    root.setLevel(level)
    root.addHandler(handler)


def build_config(args: argparse.Namespace, source: str, output: str) -> Config:
    """Merge CLI flags with the optional `repacker.json` of the source directory.

    Flags given on the command line win over the file; the file wins over
    built-in defaults.

    Raises:
        ValueError: invalid `repacker.json`.
    """
    path_config = load_config_from_path(source)

    try:
        nb_worker = args.nb_worker
        if nb_worker is None:
            nb_worker = int(path_config.get('nb_worker', DEFAULT_NB_WORKER))

        if args.max_volume_size is not None:
            max_volume_size = mib_to_bytes(args.max_volume_size)
        elif 'max_volume_size_mib' in path_config:
            max_volume_size = mib_to_bytes(float(path_config['max_volume_size_mib']))
        else:
            max_volume_size = MAX_VOLUME_SIZE

        split_margin = float(path_config.get('split_margin', SPLIT_MARGIN))
    except (TypeError, ValueError) as e:
        cfg_path = os.path.join(source, CONFIG_FILENAME)
        raise ValueError(f"Invalid {CONFIG_FILENAME} ({cfg_path}): {e}")

    return Config(
        source=source,
        output=output,
        nb_worker=nb_worker,
        max_volume_size=max_volume_size,
        split_margin=split_margin,
        dry_run=args.dry_run,
        verbose=args.verbose,
        dump_path=args.dump_metadata,
    )


def run(cfg: Config) -> bool:
    """Parse every archive then pack them. Returns False when parsing failed.

    Raises whatever `reorganize` raises.
    """
    results = parse_directory(cfg.source, cfg.nb_worker)
    logger.info(f"Parsed {len(results)} archive(s)")

    if cfg.dump_path:
        dump_metadata(results, cfg.manga_name, cfg.dump_path)

    failed = unparsed_files(results)
    if failed:
        for name in failed:
            logger.error(f"Can't parse file: {os.path.splitext(name)[0]}")
        return False

    packed = reorganize(results, cfg)
    for vol in packed:
        for archive in vol.archives:
            logger.debug(f"volume {vol.volume}: {archive}")
    return True


def main(argv=None) -> int:
    """Command-line entry point for the `repacker` tool.

    Usage: `repacker SOURCE OUTPUT [options]`.

    Any outcome returns 0: a wrong number of positional arguments prints the
    usage, and failures (unparseable archives, existing destination, I/O
    errors while packing) are reported through the logger only.
    """
    p = argparse.ArgumentParser(
        prog='repacker',
        description='Repack per-chapter .cbz archives into per-volume archives using ComicInfo.xml titles',
    )
    p.add_argument('dirs', nargs='*', metavar='DIR', help='source directory, then output directory')
    p.add_argument('--nb-worker', type=int, default=None,
                   help=f'threads used to read ComicInfo.xml (default {DEFAULT_NB_WORKER})')
    p.add_argument('--max-volume-size', type=float, default=None,
                   help='volume size in MiB above which volumes get split (default 84, 0 disables)')
    p.add_argument('--dry-run', action='store_true', help='plan the archives without writing anything')
    p.add_argument('--dump-metadata', type=str, default=None, help='write the parsed metadata to this YAML file')
    p.add_argument('--verbose', action='store_true', help='verbose logging')
    p.add_argument('--loglevel', type=str, default=None,
                   choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL', 'WARN'],
                   help='explicit log level (overrides --verbose)')

    args = p.parse_args(argv)

    if len(args.dirs) != 2:
        p.print_usage()
        return 0

    setup_logging(args.verbose, loglevel=args.loglevel)

    source, output = args.dirs
    logger.info(f"Source: {source}")
    logger.info(f"Output: {output}")

    if not os.path.isdir(source):
        logger.error(f"Source directory isn't found: {source}")
        return 0

    try:
        cfg = build_config(args, source, output)
    except ValueError as e:
        logger.error(str(e))
        return 0

    try:
        if run(cfg):
            logger.info('Done')
    except Exception:
        logger.exception('Error during packing')
    return 0
