"""Price samples read from CSV files.

Expected columns: ``timestamp`` (unix seconds) and ``price``. Extra
columns are ignored; blank lines are skipped.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class PriceSample:
    timestamp: int
    price: float


def read_price_csv(path: str | Path) -> list[PriceSample]:
    """Read every sample from ``path`` in file order.

    Raises:
        ValueError: Missing columns or a row that does not parse.
    """
    samples: list[PriceSample] = []

    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        missing = {"timestamp", "price"} - set(reader.fieldnames or [])
        if missing:
            raise ValueError(f"{path}: missing column(s) {sorted(missing)}")

        for row in reader:
            if not (row.get("timestamp") or "").strip():
                continue
            try:
                samples.append(
                    PriceSample(
                        timestamp=int(row["timestamp"]),
                        price=float(row["price"]),
                    )
                )
            except (TypeError, ValueError) as e:
                raise ValueError(f"{path}:{reader.line_num}: bad row {row}: {e}") from e

    return samples
