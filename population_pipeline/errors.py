"""Exception types raised by the population pipeline.

Failures fall into two families so a display layer can tell them apart:

* :class:`SourceUnavailableError` - a source could not be reached or kept
  returning nothing usable ("retry exhausted" messaging).
* :class:`DataFormatError` - a source answered, but with data the pipeline
  cannot interpret ("data format error" messaging).

Rows that fail numeric parsing are not errors; they are dropped and counted
by :func:`population_pipeline.csv_parser.extract_records`.
"""

from __future__ import annotations

from typing import List, Sequence


class PipelineError(Exception):
    """Base class for every error raised by this package."""


# ---------------------------------------------------------------------------
# Source / transport failures
# ---------------------------------------------------------------------------


class SourceUnavailableError(PipelineError):
    """A remote source failed after any automatic retries."""


class EmptyResponseError(SourceUnavailableError):
    """The population CSV endpoint returned an empty or blank body."""

    def __init__(self, url: str = "") -> None:
        self.url = url
        super().__init__(f"Empty response from {url or 'population source'}")


class PopulationFetchError(SourceUnavailableError):
    """Downloading the population CSV failed on every attempt."""

    def __init__(self, url: str, attempts: int) -> None:
        self.url = url
        self.attempts = attempts
        super().__init__(
            f"Failed to fetch population data from {url} after {attempts} attempt(s)"
        )


class BoundaryFetchError(SourceUnavailableError):
    """At least one boundaries page request failed; nothing was aggregated."""

    def __init__(self, message: str, offset: int | None = None) -> None:
        self.offset = offset
        super().__init__(message)


# ---------------------------------------------------------------------------
# Format failures
# ---------------------------------------------------------------------------


class DataFormatError(PipelineError):
    """The source answered with data that cannot be interpreted."""


class MissingColumnsError(DataFormatError):
    """The CSV header row lacks one or more required columns."""

    def __init__(self, headers: Sequence[str], missing: Sequence[str]) -> None:
        self.headers: List[str] = list(headers)
        self.missing: List[str] = list(missing)
        super().__init__(
            f"CSV file missing required columns {self.missing}. "
            f"Found headers: {', '.join(self.headers)}"
        )
