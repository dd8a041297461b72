import asyncio
import logging

import httpx
import pytest

from population_pipeline.errors import (
    BoundaryFetchError,
    EmptyResponseError,
    MissingColumnsError,
    PopulationFetchError,
    SourceUnavailableError,
)
from population_pipeline.fetch import (
    aggregate_pages,
    fetch_population_csv,
    fetch_world_boundaries,
    load_population,
    remaining_offsets,
)

CSV_URL = "https://example.test/population.csv"
BOUNDS_URL = "https://example.test/boundaries/"


def make_pages(total, page_size=100):
    """Fake paginated source: records are {"iso3": "C<n>"}, n = global index."""
    calls = []

    async def fetch_page(offset):
        calls.append(offset)
        # later pages answer first to shuffle completion order
        await asyncio.sleep(0.001 * (total - offset) / page_size)
        end = min(offset + page_size, total)
        return {
            "total_count": total,
            "results": [{"iso3": f"C{i}"} for i in range(offset, end)],
        }

    return fetch_page, calls


def run(coro):
    return asyncio.run(coro)


def client_for(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# aggregate_pages
# ---------------------------------------------------------------------------


def test_remaining_offsets():
    assert remaining_offsets(250, 100, 100) == [100, 200]
    assert remaining_offsets(100, 100, 100) == []
    assert remaining_offsets(0, 0, 100) == []
    with pytest.raises(ValueError):
        remaining_offsets(10, 0, 0)


def test_aggregates_250_records_in_three_requests():
    fetch_page, calls = make_pages(250)
    payload = run(aggregate_pages(fetch_page, 100))

    assert len(calls) == 3
    assert sorted(calls) == [0, 100, 200]
    assert payload["total_count"] == 250
    assert [r["iso3"] for r in payload["results"]] == [f"C{i}" for i in range(250)]


def test_single_page_returns_first_response():
    fetch_page, calls = make_pages(42)
    payload = run(aggregate_pages(fetch_page, 100))
    assert calls == [0]
    assert len(payload["results"]) == 42


def test_zero_total_count():
    async def fetch_page(offset):
        return {"total_count": 0, "results": []}

    assert run(aggregate_pages(fetch_page, 100)) == {"total_count": 0, "results": []}


def test_additional_requests_run_concurrently():
    in_flight = 0
    peak = 0

    async def fetch_page(offset):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return {"total_count": 500, "results": [{"iso3": str(offset)}] * 100}

    payload = run(aggregate_pages(fetch_page, 100))
    assert len(payload["results"]) == 500
    assert peak == 4


def test_page_failure_aborts_aggregation():
    async def fetch_page(offset):
        if offset == 200:
            raise RuntimeError("boom")
        return {"total_count": 300, "results": [{"iso3": "X"}] * 100}

    with pytest.raises(BoundaryFetchError) as excinfo:
        run(aggregate_pages(fetch_page, 100))
    assert excinfo.value.offset == 200
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_first_page_failure_is_wrapped():
    async def fetch_page(offset):
        raise httpx.ConnectError("down")

    with pytest.raises(BoundaryFetchError):
        run(aggregate_pages(fetch_page, 100))


# ---------------------------------------------------------------------------
# fetch_world_boundaries
# ---------------------------------------------------------------------------


def test_fetch_world_boundaries_uses_limit_and_offset():
    seen = []

    def handler(request):
        offset = int(request.url.params["offset"])
        seen.append((int(request.url.params["limit"]), offset))
        end = min(offset + 2, 5)
        return httpx.Response(
            200,
            json={"total_count": 5, "results": [{"iso3": f"K{i}"} for i in range(offset, end)]},
        )

    async def go():
        async with client_for(handler) as client:
            return await fetch_world_boundaries(client, url=BOUNDS_URL, page_size=2)

    payload = run(go())
    assert sorted(seen) == [(2, 0), (2, 2), (2, 4)]
    assert [r["iso3"] for r in payload["results"]] == ["K0", "K1", "K2", "K3", "K4"]


def test_fetch_world_boundaries_http_error():
    def handler(request):
        if request.url.params["offset"] == "0":
            return httpx.Response(200, json={"total_count": 150, "results": [{}] * 100})
        return httpx.Response(503)

    async def go():
        async with client_for(handler) as client:
            return await fetch_world_boundaries(client, url=BOUNDS_URL)

    with pytest.raises(BoundaryFetchError) as excinfo:
        run(go())
    assert isinstance(excinfo.value.__cause__, httpx.HTTPStatusError)
    assert isinstance(excinfo.value, SourceUnavailableError)


# ---------------------------------------------------------------------------
# Population CSV
# ---------------------------------------------------------------------------


def test_fetch_population_csv_retries_empty_body():
    bodies = ["", "   \n", "Country Name,Country Code,Year,Value\n"]

    def handler(request):
        return httpx.Response(200, text=bodies.pop(0))

    async def go():
        async with client_for(handler) as client:
            return await fetch_population_csv(client, url=CSV_URL)

    assert run(go()).startswith("Country Name")
    assert bodies == []


def test_empty_body_propagates_after_retries():
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(200, text="")

    async def go():
        async with client_for(handler) as client:
            return await fetch_population_csv(client, url=CSV_URL, retries=2)

    with pytest.raises(EmptyResponseError):
        run(go())
    assert len(calls) == 3


def test_http_errors_exhaust_retries():
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(500)

    async def go():
        async with client_for(handler) as client:
            return await fetch_population_csv(client, url=CSV_URL, retries=1)

    with pytest.raises(PopulationFetchError) as excinfo:
        run(go())
    assert len(calls) == 2
    assert excinfo.value.attempts == 2
    assert isinstance(excinfo.value.__cause__, httpx.HTTPStatusError)


def test_load_population_parses_records():
    def handler(request):
        return httpx.Response(
            200, text="Country Name,Country Code,Year,Value\nIndia,IND,2020,1380004385\n"
        )

    async def go():
        async with client_for(handler) as client:
            return await load_population(client, url=CSV_URL)

    (record,) = run(go())
    assert record.country_code == "IND"
    assert record.value == 1380004385.0


def test_missing_columns_are_not_retried():
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(200, text="Name,Code\nIndia,IND\n")

    async def go():
        async with client_for(handler) as client:
            return await load_population(client, url=CSV_URL)

    with pytest.raises(MissingColumnsError):
        run(go())
    assert len(calls) == 1


def test_server_error_then_success_recovers(caplog):
    responses = [httpx.Response(500), httpx.Response(200, text="Country Name,Country Code,Year,Value\n")]
    calls = []

    def handler(request):
        calls.append(1)
        return responses.pop(0)

    async def go():
        async with client_for(handler) as client:
            return await fetch_population_csv(client, url=CSV_URL, retries=2)

    caplog.set_level(logging.WARNING, logger="population_pipeline.fetch")
    assert run(go()).startswith("Country Name")
    assert len(calls) == 2
    assert "attempt 1 failed" in caplog.text


def test_no_retries_means_single_attempt():
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(503)

    async def go():
        async with client_for(handler) as client:
            return await fetch_population_csv(client, url=CSV_URL, retries=0)

    with pytest.raises(PopulationFetchError) as excinfo:
        run(go())
    assert len(calls) == 1
    assert excinfo.value.attempts == 1
