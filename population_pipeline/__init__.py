"""population_pipeline package initializer.

This package ingests a population CSV and a paginated world boundaries API,
merges them by ISO3 code and derives chart/table views from the result.
See individual module docstrings for details.
"""

from .csv_parser import extract_records, parse_csv_line
from .errors import (
    BoundaryFetchError,
    DataFormatError,
    EmptyResponseError,
    MissingColumnsError,
    PipelineError,
    PopulationFetchError,
    SourceUnavailableError,
)
from .fetch import aggregate_pages, fetch_population_csv, fetch_world_boundaries, load_population
from .merge import build_boundary_lookup, merge_datasets
from .models import ChartSeries, PopulationRecord
from .pipeline import load_merged_table, run_pipeline
from .views import (
    ViewProjector,
    country_options,
    country_series,
    find_country_geo,
    first_country,
    paginate,
    table_rows,
    year_options,
    year_snapshot,
)

__all__ = [
    "BoundaryFetchError",
    "ChartSeries",
    "DataFormatError",
    "EmptyResponseError",
    "MissingColumnsError",
    "PipelineError",
    "PopulationFetchError",
    "PopulationRecord",
    "SourceUnavailableError",
    "ViewProjector",
    "aggregate_pages",
    "build_boundary_lookup",
    "country_options",
    "country_series",
    "extract_records",
    "fetch_population_csv",
    "fetch_world_boundaries",
    "find_country_geo",
    "first_country",
    "load_merged_table",
    "load_population",
    "merge_datasets",
    "paginate",
    "parse_csv_line",
    "run_pipeline",
    "table_rows",
    "year_options",
    "year_snapshot",
]
