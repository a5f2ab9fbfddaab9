"""Dataset loading with integrity checks.

CSV files are pre-scanned with ``csv.reader`` so that ragged rows are
reported with their line number instead of being silently padded with NaN
by pandas. The regression target must be present and numeric on every row.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import List

import numpy as np
import pandas as pd

from enet_workflow.errors import DataIntegrity, UnknownColumn


def _first_undecodable_line(path: Path) -> int | None:
    with path.open("rb") as fh:
        for lineno, raw in enumerate(fh, start=1):
            try:
                raw.decode("utf-8")
            except UnicodeDecodeError:
                return lineno
    return None


def _check_csv_shape(path: Path) -> List[str]:
    """Return the header after verifying every row has the same field count."""
    try:
        return _scan_csv(path)
    except UnicodeDecodeError as exc:
        # Text is decoded in chunks, so locate the offending line from the raw bytes.
        raise DataIntegrity(
            f"CSV file is not valid UTF-8: {exc.reason}",
            row=_first_undecodable_line(path),
        ) from exc


def _scan_csv(path: Path) -> List[str]:
    with path.open("r", encoding="utf-8", newline="") as fh:
        reader = csv.reader(fh)
        try:
            header = next(reader)
        except StopIteration:
            raise DataIntegrity(f"CSV file is empty: {path}") from None
        except csv.Error as exc:
            raise DataIntegrity(f"Cannot parse CSV header: {exc}", row=1) from exc

        if not header or all(not h.strip() for h in header):
            raise DataIntegrity(f"CSV header is empty: {path}", row=1)
        seen = set()
        for name in header:
            if name in seen:
                raise DataIntegrity("Duplicate column name in header", row=1, column=name)
            seen.add(name)

        try:
            for row in reader:
                if not row:
                    continue
                if len(row) != len(header):
                    raise DataIntegrity(
                        f"Expected {len(header)} fields, found {len(row)}",
                        row=reader.line_num,
                    )
        except csv.Error as exc:
            raise DataIntegrity(f"Cannot parse CSV: {exc}", row=reader.line_num) from exc
    return header


def load_table(path: str | Path) -> pd.DataFrame:
    """Load a CSV or parquet file into a DataFrame."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        _check_csv_shape(path)
        try:
            return pd.read_csv(path)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
            raise DataIntegrity(f"Cannot parse CSV file {path}: {exc}") from exc
    if suffix == ".parquet":
        try:
            return pd.read_parquet(path)
        except (OSError, ValueError) as exc:
            raise DataIntegrity(f"Cannot read parquet file {path}: {exc}") from exc
    raise DataIntegrity(f"Unsupported file format: {path.suffix}")


def validate_target(df: pd.DataFrame, target_col: str, *, header_offset: int = 2) -> pd.DataFrame:
    """Check the target column exists and holds a finite number on every row.

    Non-numeric strings are coerced to float. ``header_offset`` converts a
    0-based row position into a file line number (header on line 1).
    """
    if target_col not in df.columns:
        raise UnknownColumn(
            f"Target column '{target_col}' not found; available: {list(df.columns)}",
            [target_col],
        )

    raw = df[target_col]
    coerced = pd.to_numeric(raw, errors="coerce")
    bad_mask = ~np.isfinite(coerced.to_numpy(dtype=float, na_value=np.nan))
    if bad_mask.any():
        pos = int(bad_mask.argmax())
        value = raw.iloc[pos]
        if pd.isna(value):
            reason = "missing"
        elif pd.isna(coerced.iloc[pos]):
            reason = f"non-numeric ({value!r})"
        else:
            reason = f"not finite ({value!r})"
        raise DataIntegrity(
            f"Target value is {reason}",
            row=pos + header_offset,
            column=target_col,
        )

    if coerced.dtype != raw.dtype:
        df = df.copy()
        df[target_col] = coerced.astype(float)
    return df


def load_dataset(path: str | Path, target_col: str) -> pd.DataFrame:
    """Load a dataset and validate its regression target."""
    df = load_table(path)
    if df.empty:
        raise DataIntegrity(f"Dataset has no rows: {path}")
    return validate_target(df, target_col)
