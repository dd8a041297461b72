"""
Configuration constants for the population ingestion pipeline.
"""

from typing import Dict, Tuple

# ======================================================
#  DATA SOURCES / CONSTANTS
# ======================================================
POPULATION_SOURCE: str = "https://datahub.io/core/population/_r/-/data/population.csv"

# OpenDataSoft world administrative boundaries (paginated with limit/offset)
BOUNDARIES_SOURCE: str = (
    "https://public.opendatasoft.com/api/explore/v2.1/catalog/datasets/"
    "world-administrative-boundaries/records/"
)

BOUNDARIES_PAGE_SIZE: int = 100

# Automatic retries for the CSV download (attempts = 1 + retries)
POPULATION_RETRIES: int = 2

REQUEST_TIMEOUT: float = 30.0

# Record field -> expected header (matched case-insensitively)
REQUIRED_COLUMNS: Dict[str, str] = {
    "country_name": "country name",
    "country_code": "country code",
    "year": "year",
    "value": "value",
}

# ======================================================
#  VIEW DEFAULTS
# ======================================================
YEAR_MIN: int = 1960
YEAR_MAX: int = 2023
YEAR_RANGE: Tuple[int, int] = (YEAR_MIN, YEAR_MAX)

DEFAULT_COUNTRY: str = "Afghanistan"

SNAPSHOT_LIMIT: int = 50
ROWS_PER_PAGE: int = 10

DEFAULT_TITLE: str = f"Population ({YEAR_MIN}-{YEAR_MAX})"
