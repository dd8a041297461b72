"""View projections over a merged population table.

Every function here is pure: it takes the merged table and explicit
selection parameters, and returns either a :class:`ChartSeries` or a list of
the table's own records.  The filtering/sorting is done with pandas on a
positional frame built from the table, and the selected positions are then
mapped back to the records so no record is ever copied or altered.

Country matching is case-insensitive everywhere, and the fallback country
used when nothing is selected is a parameter (``default_country``) rather
than something each caller decides for itself.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import pandas as pd

from .config import (
    DEFAULT_COUNTRY,
    DEFAULT_TITLE,
    ROWS_PER_PAGE,
    SNAPSHOT_LIMIT,
    YEAR_MAX,
    YEAR_MIN,
)
from .csv_parser import records_to_frame
from .models import ChartSeries, PopulationRecord

logger = logging.getLogger(__name__)

YearLike = Union[int, str, None]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def empty_series(title: str = DEFAULT_TITLE) -> ChartSeries:
    return ChartSeries((), (), title)


def parse_year(year: YearLike) -> Optional[int]:
    """Return ``year`` as an int, or ``None`` when it is missing, not numeric
    or not a whole number (``"2020.0"`` is accepted, ``"2020.5"`` is not).
    """
    if year is None or isinstance(year, bool):
        return None
    if isinstance(year, int):
        return year
    try:
        number = float(str(year).strip())
    except ValueError:
        return None
    if not math.isfinite(number) or not number.is_integer():
        return None
    return int(number)


def _pick(table: Sequence[PopulationRecord], frame: pd.DataFrame) -> List[PopulationRecord]:
    return [table[i] for i in frame.index]


def _country_frame(
    table: Sequence[PopulationRecord],
    country: str,
    year_min: int,
    year_max: int,
) -> pd.DataFrame:
    """Rows of ``country`` (case-insensitive) within the year bounds, by year."""
    frame = records_to_frame(table)
    if frame.empty:
        return frame
    name_match = frame["country_name"].str.upper() == country.strip().upper()
    in_range = frame["year"].between(year_min, year_max, inclusive="both")
    return frame.loc[name_match & in_range].sort_values("year", kind="stable")


def _year_frame(table: Sequence[PopulationRecord], year: int) -> pd.DataFrame:
    """Rows of ``year``, largest ``value`` first (ties keep table order)."""
    frame = records_to_frame(table)
    if frame.empty:
        return frame
    return frame.loc[frame["year"] == year].sort_values(
        "value", ascending=False, kind="stable"
    )


# ---------------------------------------------------------------------------
# Chart series
# ---------------------------------------------------------------------------


def country_series(
    table: Sequence[PopulationRecord],
    country: Optional[str] = None,
    *,
    default_country: str = DEFAULT_COUNTRY,
    year_min: int = YEAR_MIN,
    year_max: int = YEAR_MAX,
) -> ChartSeries:
    """Population of one country over time.

    Parameters
    ----------
    table : Sequence[PopulationRecord]
        The merged table.
    country : str, optional
        Country name to show.  Falls back to ``default_country`` when empty.
    default_country : str
        Country used when none is requested.
    year_min, year_max : int
        Inclusive year bounds.

    Returns
    -------
    ChartSeries
        Years (as strings, ascending) and values, titled
        ``"<Country> Population (<min>-<max>)"``.  When no row matches, an
        empty series with the generic title.
    """
    name = country or default_country
    if not table or not name:
        return empty_series()

    rows = _pick(table, _country_frame(table, name, year_min, year_max))
    if not rows:
        logger.debug("No rows for country %r in %d-%d", name, year_min, year_max)
        return empty_series()

    return ChartSeries(
        labels=[str(r.year) for r in rows],
        values=[r.value for r in rows],
        title=f"{name} Population ({year_min}-{year_max})",
    )


def year_snapshot(
    table: Sequence[PopulationRecord],
    year: YearLike,
    *,
    limit: int = SNAPSHOT_LIMIT,
) -> ChartSeries:
    """Largest countries for one year, at most ``limit`` of them."""
    year_number = parse_year(year)
    if not table or year_number is None:
        return empty_series()

    rows = [r for r in _pick(table, _year_frame(table, year_number)) if r.country_name.strip()]
    if not rows:
        return empty_series()

    top = rows[:limit]
    return ChartSeries(
        labels=[r.country_name for r in top],
        values=[r.value for r in top],
        title=f"Population by Country ({year_number})",
    )


def paginate(series: ChartSeries, page: int, page_size: int = ROWS_PER_PAGE) -> ChartSeries:
    """Return the ``page``-th (1-based) window of ``series``.

    Pages outside the series, and pages below 1, give an empty series with
    the same title.
    """
    if page < 1 or page_size < 1:
        return ChartSeries((), (), series.title)
    start = (page - 1) * page_size
    end = start + page_size
    return ChartSeries(series.labels[start:end], series.values[start:end], series.title)


# ---------------------------------------------------------------------------
# Table rows
# ---------------------------------------------------------------------------


def table_rows(
    table: Sequence[PopulationRecord],
    mode: str,
    *,
    country: Optional[str] = None,
    year: YearLike = None,
    default_country: Optional[str] = DEFAULT_COUNTRY,
    year_min: int = YEAR_MIN,
    year_max: int = YEAR_MAX,
) -> List[PopulationRecord]:
    """Rows for the data table.

    ``mode == "country"`` with a ``country``: that country's rows, oldest
    first.  ``mode == "year"`` with a ``year``: every row of that year,
    largest first.  Anything else shows ``default_country`` (or ``country``
    when no default is configured) as in country mode.
    """
    if not table:
        return []

    year_number = parse_year(year)
    if mode == "country" and country:
        return _pick(table, _country_frame(table, country, year_min, year_max))
    if mode == "year" and year_number is not None:
        return _pick(table, _year_frame(table, year_number))

    fallback = default_country or country
    if not fallback:
        return []
    return _pick(table, _country_frame(table, fallback, year_min, year_max))


# ---------------------------------------------------------------------------
# Selector options
# ---------------------------------------------------------------------------


def year_options(
    table: Sequence[PopulationRecord],
    *,
    year_min: int = YEAR_MIN,
    year_max: int = YEAR_MAX,
) -> List[int]:
    """Distinct years within the bounds, newest first."""
    years = {r.year for r in table if year_min <= r.year <= year_max}
    return sorted(years, reverse=True)


def country_options(table: Sequence[PopulationRecord]) -> List[str]:
    """Distinct non-blank country names, alphabetically."""
    return sorted({r.country_name for r in table if r.country_name.strip()})


def first_country(table: Sequence[PopulationRecord]) -> Optional[str]:
    options = country_options(table)
    return options[0] if options else None


def find_country_geo(
    table: Sequence[PopulationRecord], country: Optional[str]
) -> Optional[PopulationRecord]:
    """First record of ``country`` that has a centroid and a shape, if any."""
    if not country:
        return None
    for record in table:
        if record.country_name == country and record.has_geo_info:
            return record
    return None


# ---------------------------------------------------------------------------
# Configured projector
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ViewProjector:
    """Bundle of view settings so a display layer configures them once."""

    default_country: str = DEFAULT_COUNTRY
    year_min: int = YEAR_MIN
    year_max: int = YEAR_MAX
    snapshot_limit: int = SNAPSHOT_LIMIT
    page_size: int = ROWS_PER_PAGE

    def country_series(
        self, table: Sequence[PopulationRecord], country: Optional[str] = None
    ) -> ChartSeries:
        return country_series(
            table,
            country,
            default_country=self.default_country,
            year_min=self.year_min,
            year_max=self.year_max,
        )

    def year_snapshot(self, table: Sequence[PopulationRecord], year: YearLike) -> ChartSeries:
        return year_snapshot(table, year, limit=self.snapshot_limit)

    def table_rows(
        self,
        table: Sequence[PopulationRecord],
        mode: str,
        *,
        country: Optional[str] = None,
        year: YearLike = None,
    ) -> List[PopulationRecord]:
        return table_rows(
            table,
            mode,
            country=country,
            year=year,
            default_country=self.default_country,
            year_min=self.year_min,
            year_max=self.year_max,
        )

    def paginate(self, series: ChartSeries, page: int) -> ChartSeries:
        return paginate(series, page, self.page_size)
