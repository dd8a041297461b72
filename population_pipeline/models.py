"""Record types shared by the parser, the merger and the view projector."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Tuple

# Boundary fields promoted to named attributes on an enriched record.
ENRICHMENT_FIELDS: Tuple[str, ...] = (
    "geo_point_2d",
    "geo_shape",
    "status",
    "color_code",
    "continent",
    "region",
    "iso_3166_1_alpha_2_codes",
    "french_short",
    "iso3",
)

# Population fields a boundary record is never allowed to overwrite.
PROTECTED_FIELDS: Tuple[str, ...] = (
    "country_name",
    "country_code",
    "year",
    "value",
    "countryName",
    "countryCode",
)


@dataclass(frozen=True)
class PopulationRecord:
    """One country/year observation, optionally enriched with boundary data."""

    country_name: str
    country_code: str
    year: int
    value: float
    geo_point_2d: Optional[Dict[str, float]] = None
    geo_shape: Optional[Dict[str, Any]] = None
    status: Optional[str] = None
    color_code: Optional[str] = None
    continent: Optional[str] = None
    region: Optional[str] = None
    iso_3166_1_alpha_2_codes: Optional[str] = None
    french_short: Optional[str] = None
    iso3: Optional[str] = None
    extras: Mapping[str, Any] = field(default_factory=dict)

    @property
    def has_geo_info(self) -> bool:
        """True when the record carries a usable centroid and shape geometry."""
        point = self.geo_point_2d or {}
        shape = self.geo_shape or {}
        return bool(point.get("lon") and point.get("lat") and shape.get("geometry"))

    def to_dict(self) -> Dict[str, Any]:
        """Flatten the record: base fields, set enrichment fields, then extras."""
        out: Dict[str, Any] = {}
        for f in fields(self):
            if f.name == "extras":
                continue
            val = getattr(self, f.name)
            if f.name in ENRICHMENT_FIELDS and val is None:
                continue
            out[f.name] = val
        for key, val in self.extras.items():
            out.setdefault(key, val)
        return out


@dataclass(frozen=True)
class ChartSeries:
    """Index-aligned labels and values plus a chart title."""

    labels: Tuple[str, ...] = ()
    values: Tuple[float, ...] = ()
    title: str = ""

    def __post_init__(self) -> None:
        # accept lists from callers but store tuples
        object.__setattr__(self, "labels", tuple(self.labels))
        object.__setattr__(self, "values", tuple(self.values))
        if len(self.labels) != len(self.values):
            raise ValueError(
                f"labels and values differ in length ({len(self.labels)} != {len(self.values)})"
            )

    def __len__(self) -> int:
        return len(self.labels)

    @property
    def is_empty(self) -> bool:
        return not self.labels
