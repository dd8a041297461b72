"""
Handles interactions with the remote population and boundaries sources.

* The population dataset is a CSV file fetched as text, with a small number
  of automatic retries on empty bodies and transport errors.
* The world boundaries dataset is a paginated JSON API.  The first page tells
  us ``total_count``; the remaining pages are requested concurrently and
  stitched back together in offset order.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from .config import (
    BOUNDARIES_PAGE_SIZE,
    BOUNDARIES_SOURCE,
    POPULATION_RETRIES,
    POPULATION_SOURCE,
    REQUEST_TIMEOUT,
)
from .csv_parser import extract_records
from .errors import (
    BoundaryFetchError,
    DataFormatError,
    EmptyResponseError,
    PopulationFetchError,
)
from .models import PopulationRecord

logger = logging.getLogger(__name__)

PageFetcher = Callable[[int], Awaitable[Dict[str, Any]]]


# ---------------------------------------------------------------------------
# Paginated aggregation
# ---------------------------------------------------------------------------


def remaining_offsets(total_count: int, first_size: int, page_size: int) -> List[int]:
    """Offsets of the pages still needed after the first one."""
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    if first_size >= total_count:
        return []
    n_pages = math.ceil((total_count - first_size) / page_size)
    return [i * page_size for i in range(1, n_pages + 1)]


async def _fetch_checked(fetch_page: PageFetcher, offset: int) -> Dict[str, Any]:
    try:
        return await fetch_page(offset)
    except BoundaryFetchError:
        raise
    except Exception as exc:
        raise BoundaryFetchError(
            f"Failed to fetch boundaries page at offset {offset}: {exc}", offset=offset
        ) from exc


async def aggregate_pages(
    fetch_page: PageFetcher, page_size: int = BOUNDARIES_PAGE_SIZE
) -> Dict[str, Any]:
    """Collect every page of a ``{total_count, results}`` API into one payload.

    Parameters
    ----------
    fetch_page : Callable[[int], Awaitable[dict]]
        Coroutine function returning the parsed JSON page at an offset.
    page_size : int
        Records requested per page.

    Returns
    -------
    dict
        The first page's payload with ``results`` replaced by the records of
        all pages in increasing offset order.

    Raises
    ------
    BoundaryFetchError
        If any page request fails.  No partial payload is returned.
    """
    first = await _fetch_checked(fetch_page, 0)
    total_count = int(first.get("total_count") or 0)
    first_results = first.get("results") or []

    offsets = remaining_offsets(total_count, len(first_results), page_size)
    if not offsets:
        return first

    logger.info(
        "Fetching %d additional page(s) for %d records", len(offsets), total_count
    )
    # gather keeps the order of its arguments, so pages line up with offsets
    pages = await asyncio.gather(*(_fetch_checked(fetch_page, off) for off in offsets))

    combined: List[Any] = list(first_results)
    for offset, page in zip(offsets, pages):
        results = page.get("results") if isinstance(page, dict) else None
        if isinstance(results, list):
            combined.extend(results)
        else:
            logger.warning("Page at offset %d carried no results list", offset)

    return {**first, "results": combined, "total_count": total_count}


# ---------------------------------------------------------------------------
# World boundaries
# ---------------------------------------------------------------------------


async def fetch_world_boundaries(
    client: Optional[httpx.AsyncClient] = None,
    *,
    url: str = BOUNDARIES_SOURCE,
    page_size: int = BOUNDARIES_PAGE_SIZE,
) -> Dict[str, Any]:
    """Fetch all world administrative boundary records."""
    if client is None:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as owned:
            return await fetch_world_boundaries(owned, url=url, page_size=page_size)

    async def fetch_page(offset: int) -> Dict[str, Any]:
        response = await client.get(url, params={"limit": page_size, "offset": offset})
        response.raise_for_status()
        return response.json()

    payload = await aggregate_pages(fetch_page, page_size)
    logger.info("Fetched %d boundary records", len(payload.get("results") or []))
    return payload


# ---------------------------------------------------------------------------
# Population CSV
# ---------------------------------------------------------------------------


async def _get_csv_text(client: httpx.AsyncClient, url: str) -> str:
    response = await client.get(url)
    response.raise_for_status()
    text = response.text
    if not text or not text.strip():
        raise EmptyResponseError(url)
    return text


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Population fetch attempt %d failed: %s; retrying",
        retry_state.attempt_number,
        exc,
    )


async def fetch_population_csv(
    client: Optional[httpx.AsyncClient] = None,
    *,
    url: str = POPULATION_SOURCE,
    retries: int = POPULATION_RETRIES,
) -> str:
    """Download the population CSV, retrying empty bodies and HTTP failures.

    Raises
    ------
    EmptyResponseError
        If the last of ``retries + 1`` attempts returned a blank body.
    PopulationFetchError
        If the last attempt failed at the HTTP level; chained to that error.
    """
    if client is None:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as owned:
            return await fetch_population_csv(owned, url=url, retries=retries)

    attempts = max(1, retries + 1)
    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        retry=retry_if_exception_type((httpx.HTTPError, EmptyResponseError)),
        before_sleep=_log_retry,
        reraise=True,
    )
    try:
        async for attempt in retrying:
            with attempt:
                text = await _get_csv_text(client, url)
    except EmptyResponseError as exc:
        logger.error("Error fetching population data from %s: %s", url, exc)
        raise
    except httpx.HTTPError as exc:
        logger.error("Error fetching population data from %s: %s", url, exc)
        raise PopulationFetchError(url, attempts) from exc
    return text


async def load_population(
    client: Optional[httpx.AsyncClient] = None,
    *,
    url: str = POPULATION_SOURCE,
    retries: int = POPULATION_RETRIES,
) -> List[PopulationRecord]:
    """Fetch the population CSV and parse it into records."""
    text = await fetch_population_csv(client, url=url, retries=retries)
    try:
        records = extract_records(text)
    except DataFormatError:
        logger.debug("CSV content preview: %s", text[:500])
        raise
    if not records:
        logger.warning("CSV parsed but resulted in no records")
    else:
        logger.info("Parsed %d population records", len(records))
    return records
