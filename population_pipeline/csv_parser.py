"""CSV parsing for the population dataset.

Two layers are provided:

* :func:`parse_csv_line` tokenizes one physical line, honouring double-quote
  enclosed fields and ``""`` escapes.
* :func:`extract_records` turns a whole document into
  :class:`~population_pipeline.models.PopulationRecord` objects, locating the
  required columns by header name rather than by position and dropping rows
  whose ``year`` or ``value`` cannot be read as finite numbers.

Quoted fields spanning several lines are not supported: every record must sit
on a single line.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence

import pandas as pd

from .config import REQUIRED_COLUMNS
from .errors import MissingColumnsError
from .models import PopulationRecord

# Module-level logger
logger = logging.getLogger(__name__)

_INF = float("inf")


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


def parse_csv_line(line: str, sep: str = ",") -> List[str]:
    """Split a single CSV line into its field values.

    A ``"`` toggles quoted mode; while quoted, ``sep`` is literal text and a
    doubled ``""`` produces one ``"``.  A line that ends inside quotes keeps
    the trailing characters in the last field.
    """
    values: List[str] = []
    current: List[str] = []
    inside_quotes = False
    i = 0
    n = len(line)
    while i < n:
        char = line[i]
        if char == '"':
            if inside_quotes and i + 1 < n and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                inside_quotes = not inside_quotes
        elif char == sep and not inside_quotes:
            values.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1
    values.append("".join(current))
    return values


def split_lines(text: str) -> List[str]:
    """Normalize ``\\r\\n`` / ``\\r`` endings and return the non-blank lines."""
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    return [line for line in normalized.split("\n") if line.strip() != ""]


# ---------------------------------------------------------------------------
# Header matching
# ---------------------------------------------------------------------------


def locate_columns(
    headers: Sequence[str], required: Mapping[str, str] = REQUIRED_COLUMNS
) -> Dict[str, int]:
    """Map each required field to the index of its header (case-insensitive).

    Raises
    ------
    MissingColumnsError
        If any required header is absent.  The error carries the headers
        that were actually found.
    """
    lowered = [h.strip().lower() for h in headers]
    positions: Dict[str, int] = {}
    missing: List[str] = []
    for field_name, header in required.items():
        try:
            positions[field_name] = lowered.index(header.lower())
        except ValueError:
            missing.append(header)
    if missing:
        raise MissingColumnsError(headers, missing)
    return positions


# ---------------------------------------------------------------------------
# Document extraction
# ---------------------------------------------------------------------------


def extract_records(
    text: str,
    *,
    required_columns: Optional[Mapping[str, str]] = None,
) -> List[PopulationRecord]:
    """Parse a population CSV document into typed records.

    Parameters
    ----------
    text : str
        The full CSV document, header row first.
    required_columns : Mapping[str, str], optional
        Record field -> header name.  Defaults to
        ``config.REQUIRED_COLUMNS`` (``Country Name``, ``Country Code``,
        ``Year``, ``Value``).

    Returns
    -------
    List[PopulationRecord]
        Records in document order.  Blank rows and rows whose ``year`` or
        ``value`` is missing, non-numeric or infinite are skipped.  The
        list is empty when the document holds no usable rows.

    Raises
    ------
    MissingColumnsError
        If the header row lacks a required column.
    """
    lines = split_lines(text)
    if not lines:
        return []

    headers = [h.strip() for h in parse_csv_line(lines[0])]
    positions = locate_columns(headers, required_columns or REQUIRED_COLUMNS)

    rows: List[List[str]] = []
    blank = 0
    for line in lines[1:]:
        cells = parse_csv_line(line)
        if all(c.strip() == "" for c in cells):
            blank += 1
            continue
        rows.append([cells[idx] if idx < len(cells) else "" for idx in positions.values()])

    if not rows:
        logger.debug("CSV contained no data rows (%d blank)", blank)
        return []

    frame = records_frame_from_cells(rows, list(positions.keys()))
    mask = frame["year"].notna() & frame["value"].notna()
    skipped = blank + int((~mask).sum())
    frame = frame.loc[mask]

    if skipped:
        logger.debug("Skipped %d invalid row(s) out of %d", skipped, len(lines) - 1)

    return [
        PopulationRecord(
            country_name=str(row.country_name).strip(),
            country_code=str(row.country_code).strip(),
            year=int(row.year),
            value=float(row.value),
        )
        for row in frame.itertuples(index=False)
    ]


def records_frame_from_cells(rows: List[List[str]], columns: List[str]) -> pd.DataFrame:
    """Build a frame of raw cells with ``year``/``value`` coerced to numbers.

    Non-numeric and infinite cells become ``NaN``.  ``year`` keeps only its
    integer part.
    """
    frame = pd.DataFrame(rows, columns=columns, dtype=object)
    for col in ("year", "value"):
        numeric = pd.to_numeric(frame[col].astype(str).str.strip(), errors="coerce")
        frame[col] = numeric.astype("float64").replace([_INF, -_INF], float("nan"))
    frame["year"] = frame["year"].apply(lambda y: float(int(y)) if pd.notna(y) else y)
    return frame


def records_to_frame(records: Sequence[PopulationRecord]) -> pd.DataFrame:
    """Return one row per record, indexed by position in ``records``."""
    columns = ["country_name", "country_code", "year", "value"]
    if not records:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(
        {
            "country_name": [r.country_name for r in records],
            "country_code": [r.country_code for r in records],
            "year": [r.year for r in records],
            "value": [r.value for r in records],
        },
        index=pd.RangeIndex(len(records)),
    )
