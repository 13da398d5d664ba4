"""CSV output for the exported tables."""

import csv
import logging
from pathlib import Path
from typing import Iterable, Mapping, Sequence

logger = logging.getLogger(__name__)


def write_csv(path: str | Path, columns: Sequence[str], rows: Iterable[Mapping[str, str]]) -> Path:
    """
    Write `rows` to `path` with every field quoted.

    Column order is `columns`, not the key order of the row mappings; keys
    outside `columns` are ignored and missing ones are written empty.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(fh, fieldnames=list(columns), quoting=csv.QUOTE_ALL, extrasaction="ignore", restval="")
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
            count += 1

    logger.info(f"Export: {path} ({count} rows)")
    return path
