import asyncio

import httpx
import pytest

from population_pipeline import (
    BoundaryFetchError,
    MissingColumnsError,
    ViewProjector,
    load_merged_table,
)

CSV_URL = "https://example.test/population.csv"
BOUNDS_URL = "https://example.test/boundaries/"

CSV_TEXT = "\n".join(
    [
        "Country Name,Country Code,Year,Value",
        "India,IND,2019,1366417754",
        "India,IND,2020,1380004385",
        '"Korea, Rep.",KOR,2020,51780579',
        "World,WLD,2020,7820000000",
    ]
)

BOUNDARIES = [
    {
        "iso3": "IND",
        "continent": "Asia",
        "geo_point_2d": {"lon": 79.6, "lat": 22.9},
        "geo_shape": {"type": "Feature", "geometry": {"type": "MultiPolygon", "coordinates": []}},
    },
    {"iso3": "KOR", "continent": "Asia"},
]


def make_handler(csv_text=CSV_TEXT, boundaries=BOUNDARIES, fail_boundaries=False):
    def handler(request):
        if str(request.url).startswith(CSV_URL):
            return httpx.Response(200, text=csv_text)
        if fail_boundaries:
            return httpx.Response(502)
        offset = int(request.url.params["offset"])
        limit = int(request.url.params["limit"])
        return httpx.Response(
            200,
            json={"total_count": len(boundaries), "results": boundaries[offset : offset + limit]},
        )

    return handler


def load(handler, page_size=1):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await load_merged_table(
                client,
                population_url=CSV_URL,
                boundaries_url=BOUNDS_URL,
                page_size=page_size,
            )

    return asyncio.run(go())


def test_end_to_end_merge_and_views():
    table = load(make_handler())

    assert [r.country_code for r in table] == ["IND", "IND", "KOR", "WLD"]
    assert table[0].continent == "Asia"
    assert table[2].country_name == "Korea, Rep."
    assert table[3].continent is None

    views = ViewProjector(default_country="India")
    series = views.country_series(table)
    assert series.labels == ("2019", "2020")
    snapshot = views.year_snapshot(table, 2020)
    assert snapshot.labels == ("World", "India", "Korea, Rep.")


def test_boundary_failure_prevents_merge():
    with pytest.raises(BoundaryFetchError):
        load(make_handler(fail_boundaries=True))


def test_format_error_propagates():
    with pytest.raises(MissingColumnsError):
        load(make_handler(csv_text="Country,Year\nIndia,2020\n"))
