from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .core import MAX_VOLUME_SIZE, SPLIT_MARGIN

CONFIG_FILENAME = "repacker.json"
DEFAULT_NB_WORKER = os.cpu_count() or 1


def mib_to_bytes(mib: float) -> int:
    """Convert mebibytes to bytes.

    >>> mib_to_bytes(84)
    88080384
    >>> mib_to_bytes(0.5)
    524288
    """
    return int(mib * 1024 * 1024)


@dataclass
class Config:
    """Runtime configuration for a repacker invocation.

    Attributes:
        source: Directory holding the per-chapter `.cbz` archives. Its leaf
            name is the manga name used for the output directory and archives.
        output: Root directory under which `<manga name>/` is created.
        nb_worker: Threads used to read ComicInfo metadata; 1 reads serially.
        max_volume_size: Size in bytes a volume archive should stay under;
            0 disables splitting.
        split_margin: A volume is only split when bigger than
            `max_volume_size * split_margin`.
        dry_run: Plan and log the archives without writing anything.
        verbose: Legacy flag for extra logging; `--loglevel` wins.
        dump_path: Optional YAML file receiving the parsed metadata.
    """

    source: str
    output: str
    nb_worker: int = DEFAULT_NB_WORKER
    max_volume_size: int = MAX_VOLUME_SIZE
    split_margin: float = SPLIT_MARGIN
    dry_run: bool = False
    verbose: bool = False
    dump_path: Optional[str] = None

    @property
    def manga_name(self) -> str:
        return os.path.basename(os.path.normpath(self.source))


def load_config_from_path(path: str) -> Dict[str, Any]:
    """Load an optional JSON config file (`repacker.json`) from `path`.

    Supported keys (optional): `max_volume_size_mib`, `split_margin`,
    `nb_worker`.

    Raises:
        ValueError: if a `repacker.json` file is present but is not a JSON
                    object. The caller treats this as a configuration error.

    Returns an empty dict when no config file is present.
    """
    cfg_path = os.path.join(path, CONFIG_FILENAME)
    if not os.path.exists(cfg_path):
        return {}
    try:
        with open(cfg_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid {CONFIG_FILENAME} ({cfg_path}): {e.msg}")
    except OSError as e:
        raise ValueError(f"Invalid {CONFIG_FILENAME} ({cfg_path}): {e}")
    if not isinstance(data, dict):
        raise ValueError(f"Invalid {CONFIG_FILENAME} ({cfg_path}): top-level JSON must be an object")
    return data
