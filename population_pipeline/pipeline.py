"""Core pipeline logic: merge world boundaries into population records.

This module orchestrates the loading and joining of two datasets:

* The population dataset, a CSV of population counts by country and year.
* The world administrative boundaries dataset, a paginated JSON API that
  provides centroids, shapes and region metadata keyed by ISO3 code.

Both sources are fetched concurrently; the merge only runs once both have
arrived.  If either fetch fails its exception propagates unchanged and no
table is produced.  The primary entry points are :func:`load_merged_table`
(async) and :func:`run_pipeline` (blocking).
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import httpx

from .config import (
    BOUNDARIES_PAGE_SIZE,
    BOUNDARIES_SOURCE,
    POPULATION_RETRIES,
    POPULATION_SOURCE,
    REQUEST_TIMEOUT,
)
from .fetch import fetch_world_boundaries, load_population
from .merge import merge_datasets
from .models import PopulationRecord

# Module-level logger
logger = logging.getLogger(__name__)


async def load_merged_table(
    client: Optional[httpx.AsyncClient] = None,
    *,
    population_url: str = POPULATION_SOURCE,
    boundaries_url: str = BOUNDARIES_SOURCE,
    page_size: int = BOUNDARIES_PAGE_SIZE,
    retries: int = POPULATION_RETRIES,
) -> List[PopulationRecord]:
    """Fetch both sources concurrently and return the merged table.

    Parameters
    ----------
    client : httpx.AsyncClient, optional
        Client shared by both fetches.  One is created (and closed) when not
        given.
    population_url : str
        Location of the population CSV.
    boundaries_url : str
        Base URL of the paginated boundaries API.
    page_size : int
        Records per boundaries page.
    retries : int
        Automatic retries for the population CSV download.

    Returns
    -------
    List[PopulationRecord]
        Population records in source order, enriched where a boundary
        record shares their country code.

    Raises
    ------
    SourceUnavailableError
        A source could not be fetched (after retries, for the CSV).
    MissingColumnsError
        The CSV header lacks a required column.
    """
    if client is None:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as owned:
            return await load_merged_table(
                owned,
                population_url=population_url,
                boundaries_url=boundaries_url,
                page_size=page_size,
                retries=retries,
            )

    logger.info("Loading population and boundaries data")
    population, boundaries = await asyncio.gather(
        load_population(client, url=population_url, retries=retries),
        fetch_world_boundaries(client, url=boundaries_url, page_size=page_size),
    )

    merged = merge_datasets(population, boundaries)
    logger.info("Merged table holds %d records", len(merged))
    return merged


def run_pipeline(
    *,
    population_url: str = POPULATION_SOURCE,
    boundaries_url: str = BOUNDARIES_SOURCE,
    page_size: int = BOUNDARIES_PAGE_SIZE,
    retries: int = POPULATION_RETRIES,
) -> List[PopulationRecord]:
    """Blocking wrapper around :func:`load_merged_table` for scripts."""
    return asyncio.run(
        load_merged_table(
            population_url=population_url,
            boundaries_url=boundaries_url,
            page_size=page_size,
            retries=retries,
        )
    )
