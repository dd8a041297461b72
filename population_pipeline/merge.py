"""Join population records with world boundary records on the ISO3 code."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .models import ENRICHMENT_FIELDS, PROTECTED_FIELDS, PopulationRecord

logger = logging.getLogger(__name__)

BoundaryRecord = Mapping[str, Any]
Boundaries = Union[Sequence[BoundaryRecord], Mapping[str, Any], None]


def normalize_code(code: Any) -> str:
    """Trim and upper-case a country code; non-strings normalize to ``""``."""
    if not isinstance(code, str):
        return ""
    return code.strip().upper()


def _boundary_rows(boundaries: Boundaries) -> Iterable[BoundaryRecord]:
    # Accept the raw API payload ({"results": [...]}) as well as a plain list.
    if not boundaries:
        return []
    if isinstance(boundaries, Mapping):
        results = boundaries.get("results")
        return results if isinstance(results, list) else []
    return boundaries


def build_boundary_lookup(boundaries: Boundaries) -> Dict[str, BoundaryRecord]:
    """Index boundary records by normalized ``iso3``; the first record wins."""
    lookup: Dict[str, BoundaryRecord] = {}
    for boundary in _boundary_rows(boundaries):
        if not isinstance(boundary, Mapping):
            continue
        key = normalize_code(boundary.get("iso3"))
        if key and key not in lookup:
            lookup[key] = boundary
    return lookup


def enrich(record: PopulationRecord, boundary: BoundaryRecord) -> PopulationRecord:
    """Return a copy of ``record`` carrying the boundary's fields."""
    named: Dict[str, Any] = {}
    extras: Dict[str, Any] = dict(record.extras)
    for key, val in boundary.items():
        if key in PROTECTED_FIELDS:
            continue
        if key in ENRICHMENT_FIELDS:
            named[key] = val
        else:
            extras[key] = val
    return dataclasses.replace(record, extras=extras, **named)


def merge_datasets(
    population: Sequence[PopulationRecord],
    boundaries: Boundaries = None,
) -> List[PopulationRecord]:
    """Left-join ``population`` with ``boundaries`` on country code == iso3.

    Parameters
    ----------
    population : Sequence[PopulationRecord]
        Records to enrich.  Never modified.
    boundaries : list of mappings, API payload or None
        Boundary records, or the ``{"results": [...]}`` payload returned by
        :func:`population_pipeline.fetch.fetch_world_boundaries`.

    Returns
    -------
    List[PopulationRecord]
        One record per input record, same order.  Matched records are new
        enriched copies; unmatched ones are passed through as-is.
    """
    lookup = build_boundary_lookup(boundaries)
    if not lookup:
        return list(population)

    merged: List[PopulationRecord] = []
    matched = 0
    for record in population:
        boundary: Optional[BoundaryRecord] = lookup.get(normalize_code(record.country_code))
        if boundary is None:
            merged.append(record)
            continue
        merged.append(enrich(record, boundary))
        matched += 1

    logger.debug(
        "Merged boundaries: %d matched, %d unmatched of %d records",
        matched,
        len(merged) - matched,
        len(merged),
    )
    return merged
