"""YAML dump of the parsed ComicInfo metadata."""

from __future__ import annotations

import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .types_ import ParseResults

logger = logging.getLogger(__name__)


def _yaml_number(number: Decimal) -> Union[int, float]:
    return int(number) if number == number.to_integral_value() else float(number)


def build_report(results: ParseResults, serie: str) -> Dict[str, Any]:
    """Arrange parse results as `{serie, volumes: [...], unparsed: [...]}`.

    >>> from repacker.types_ import ChapterMetadata
    >>> report = build_report({
    ...     'c2.cbz': ChapterMetadata(1, Decimal('2.5'), 'Extra'),
    ...     'bad.cbz': None,
    ... }, 'Serie')
    >>> report['volumes']
    [{'number': 1, 'chapters': [{'number': 2.5, 'title': 'Extra', 'file': 'c2.cbz'}]}]
    >>> report['unparsed']
    ['bad.cbz']
    """
    volumes: Dict[int, list] = {}
    unparsed = []
    for name, info in results.items():
        if info is None:
            unparsed.append(name)
            continue
        volumes.setdefault(info.volume, []).append((info.number, name, info.title))

    output_data: Dict[str, Any] = {"serie": serie, "volumes": []}
    for volume in sorted(volumes):
        chapters = [
            {"number": _yaml_number(number), "title": title, "file": name}
            for number, name, title in sorted(volumes[volume])
        ]
        output_data["volumes"].append({"number": volume, "chapters": chapters})
    if unparsed:
        output_data["unparsed"] = sorted(unparsed)
    return output_data


def dump_metadata(results: ParseResults, serie: str, output_path: Optional[Path] = None) -> str:
    """Dump parse results to YAML.

    Args:
        results: archive name -> metadata (None when unparsed).
        serie: series name written at the top of the document.
        output_path: Optional path to save the YAML output.

    Returns:
        str: the YAML document.
    """
    text = yaml.safe_dump(
        build_report(results, serie),
        allow_unicode=True,
        sort_keys=False,
        default_flow_style=False,
    )
    if output_path:
        Path(output_path).write_text(text, encoding="utf-8")
        logger.info(f"Metadata written to {output_path}")
    return text
