# SPDX-License-Identifier: MIT
"""Tests for source adapters and HTTP error classification."""

import httpx
import pytest

from aggregator.adapters import (
    ADAPTERS,
    DevolvedAdministrationsAdapter,
    GovUkOrganisationsAdapter,
    OnsUnitaryAuthoritiesAdapter,
    build_mapper,
)
from aggregator.adapters.csv_source import parse_csv
from aggregator.adapters.govuk import first_parent_slug
from aggregator.errors import FormatChangeError, NetworkError, RateLimitError, SourceHTTPError
from aggregator.models import DataSourceType, OrganisationType, RawRecord
from aggregator.orchestrator import Orchestrator
from aggregator.utils.http import fetch, fetch_json, parse_retry_after

from conftest import T0


def govuk_org(title, format="Ministerial department", slug=None):
    slug = slug or title.lower().replace(" ", "-")
    return {
        "title": title,
        "format": format,
        "web_url": f"https://www.gov.uk/government/organisations/{slug}",
        "details": {"content_id": f"id-{slug}", "govuk_status": "live"},
        "parent_organisations": [],
    }


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHttp:
    """Test mapping of HTTP outcomes to source errors."""

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "status,error",
        [
            (429, RateLimitError),
            (503, NetworkError),
            (500, NetworkError),
            (404, SourceHTTPError),
            (403, SourceHTTPError),
        ],
    )
    async def test_status_classification(self, status, error):
        async with mock_client(lambda request: httpx.Response(status, headers={"Retry-After": "7"})) as client:
            with pytest.raises(error) as excinfo:
                await fetch(client, "https://example.org/data", "example")

        assert excinfo.value.source_id == "example"
        if error is RateLimitError:
            assert excinfo.value.retry_after == 7.0

    @pytest.mark.anyio
    async def test_transport_error(self):
        """Connection failures are transient."""
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with mock_client(handler) as client:
            with pytest.raises(NetworkError):
                await fetch(client, "https://example.org/data")

    @pytest.mark.anyio
    async def test_invalid_json(self):
        """An unparseable body is a format change."""
        async with mock_client(lambda request: httpx.Response(200, text="<html>maintenance</html>")) as client:
            with pytest.raises(FormatChangeError):
                await fetch_json(client, "https://example.org/data.json")

    def test_parse_retry_after(self):
        assert parse_retry_after("12") == 12.0
        assert parse_retry_after("-3") == 0.0
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") is None
        assert parse_retry_after(None) is None


class TestGovUkAdapter:
    """Test the GOV.UK organisations adapter."""

    @pytest.mark.anyio
    async def test_pagination(self):
        """All pages are followed via next_page_url."""
        seen = []

        def handler(request):
            page = int(request.url.params.get("page", "1"))
            seen.append(page)
            if page == 1:
                return httpx.Response(200, json={
                    "results": [govuk_org("Department for Education"), govuk_org("HM Treasury")],
                    "next_page_url": "/api/organisations?page=2",
                })
            return httpx.Response(200, json={"results": [govuk_org("Cabinet Office")]})

        async with mock_client(handler) as client:
            adapter = GovUkOrganisationsAdapter(http_client=client)
            adapter.min_expected_records = 3
            records = await adapter.fetch()

        assert seen == [1, 2]
        assert [record.data["title"] for record in records] == [
            "Department for Education", "HM Treasury", "Cabinet Office",
        ]
        assert all(record.source_id == "gov_uk_api" for record in records)

    @pytest.mark.anyio
    async def test_page_without_results(self):
        """A page lacking a results list is a format change."""
        async with mock_client(lambda request: httpx.Response(200, json={"organisations": []})) as client:
            adapter = GovUkOrganisationsAdapter(http_client=client)
            with pytest.raises(FormatChangeError, match="results"):
                await adapter.fetch()

    @pytest.mark.anyio
    async def test_too_few_records(self):
        """A suspiciously short register is a format change."""
        response = {"results": [govuk_org("Cabinet Office")]}
        async with mock_client(lambda request: httpx.Response(200, json=response)) as client:
            adapter = GovUkOrganisationsAdapter(http_client=client)
            with pytest.raises(FormatChangeError, match="expected at least 300"):
                await adapter.fetch()

    @pytest.mark.anyio
    async def test_missing_expected_field(self):
        """Records lacking a field every record should have are a format change."""
        response = {"results": [{"name": "Cabinet Office", "format": "Ministerial department"}]}
        async with mock_client(lambda request: httpx.Response(200, json=response)) as client:
            adapter = GovUkOrganisationsAdapter(http_client=client)
            adapter.min_expected_records = 1
            with pytest.raises(FormatChangeError, match="title"):
                await adapter.fetch()

    @pytest.mark.anyio
    async def test_orchestrated_drafts(self, record_sleep):
        """GOV.UK records become registry-confidence drafts with provenance."""
        def handler(request):
            return httpx.Response(200, json={"results": [govuk_org("Department for Education")]})

        async with mock_client(handler) as client:
            adapter = GovUkOrganisationsAdapter(http_client=client)
            adapter.min_expected_records = 1
            orchestrator = Orchestrator(
                [adapter], build_mapper([adapter]), deadline_seconds=0, sleep=record_sleep, clock=lambda: T0,
            )
            result = await orchestrator.run()

        [draft] = result.drafts
        assert draft.name == "Department for Education"
        assert draft.type is OrganisationType.MINISTERIAL_DEPARTMENT
        assert draft.source.source is DataSourceType.GOV_UK_API
        assert draft.source.confidence == 1.0
        assert draft.source.source_id == "id-department-for-education"
        assert draft.source.url == "https://www.gov.uk/government/organisations/department-for-education"

    @pytest.mark.anyio
    async def test_odd_record_does_not_fail_source(self, record_sleep):
        """A record with an unexpected parent shape still maps, and its neighbours too."""
        odd = {**govuk_org("Odd Body"), "parent_organisations": ["hm-treasury", 42]}
        unreadable = {**govuk_org("Strange Body"), "parent_organisations": [42]}

        def handler(request):
            return httpx.Response(200, json={"results": [govuk_org("Cabinet Office"), odd, unreadable]})

        async with mock_client(handler) as client:
            adapter = GovUkOrganisationsAdapter(http_client=client)
            adapter.min_expected_records = 1
            orchestrator = Orchestrator(
                [adapter], build_mapper([adapter]), deadline_seconds=0, sleep=record_sleep, clock=lambda: T0,
            )
            result = await orchestrator.run()

        status = result.statuses["gov_uk_api"]
        assert status.succeeded
        assert status.dropped_records == 0
        drafts = {draft.name: draft for draft in result.drafts}
        assert set(drafts) == {"Cabinet Office", "Odd Body", "Strange Body"}
        assert drafts["Odd Body"].parent_organisation == "hm-treasury"
        assert drafts["Strange Body"].parent_organisation is None
        assert drafts["Strange Body"].additional_properties["parent_organisations"] == [42]

    def test_first_parent_slug(self):
        parents = [{"web_url": "https://www.gov.uk/government/organisations/cabinet-office/"}]
        assert first_parent_slug(parents) == "cabinet-office"
        assert first_parent_slug([]) is None
        assert first_parent_slug(None) is None

    def test_first_parent_slug_tolerates_strings(self):
        assert first_parent_slug(["hm-treasury"]) == "hm-treasury"
        assert first_parent_slug("https://www.gov.uk/government/organisations/hm-treasury") == "hm-treasury"
        assert first_parent_slug([None, 7, {"id": "cabinet-office"}]) == "cabinet-office"


class TestOnsUnitaryAdapter:
    """Test the CSV download adapter for unitary authorities."""

    CSV = (
        "\ufeffCode,Unitary Authority\n"
        "E06000001,Hartlepool\n"
        "\n"
        "E06000002,Middlesbrough\n"
    )

    @pytest.mark.anyio
    async def test_discovers_csv_link(self):
        """The CSV is found through the landing page."""
        requested = []

        def handler(request):
            requested.append(request.url.path)
            if request.url.path.endswith(".csv"):
                return httpx.Response(200, text=self.CSV)
            return httpx.Response(200, text='<a href="/files/unitary-authorities-2024.csv">Download</a>')

        async with mock_client(handler) as client:
            adapter = OnsUnitaryAuthoritiesAdapter(http_client=client)
            adapter.min_expected_records = 2
            records = await adapter.fetch()

        assert len(requested) == 2
        assert [record.data["Unitary Authority"] for record in records] == ["Hartlepool", "Middlesbrough"]

    @pytest.mark.anyio
    async def test_missing_link(self):
        """A landing page without a CSV link is a format change."""
        async with mock_client(lambda request: httpx.Response(200, text="<p>Moved</p>")) as client:
            adapter = OnsUnitaryAuthoritiesAdapter(http_client=client)
            with pytest.raises(FormatChangeError, match="no CSV link"):
                await adapter.fetch()

    @pytest.mark.anyio
    async def test_missing_name_column(self):
        """A CSV without any name column is a format change."""
        def handler(request):
            if request.url.path.endswith(".csv"):
                return httpx.Response(200, text="Code,Population\nE06000001,92000\n")
            return httpx.Response(200, text='<a href="/data.csv">CSV</a>')

        async with mock_client(handler) as client:
            adapter = OnsUnitaryAuthoritiesAdapter(http_client=client)
            with pytest.raises(FormatChangeError, match="no name column"):
                await adapter.fetch()

    def test_parse_csv(self):
        """BOM is stripped and blank rows skipped."""
        header, rows = parse_csv(self.CSV)
        assert header == ["Code", "Unitary Authority"]
        assert rows == [
            {"Code": "E06000001", "Unitary Authority": "Hartlepool"},
            {"Code": "E06000002", "Unitary Authority": "Middlesbrough"},
        ]

    def test_mapping(self):
        """Rows map to unitary authorities with their ONS code."""
        adapter = OnsUnitaryAuthoritiesAdapter()
        _, rows = parse_csv(self.CSV)
        raw = RawRecord(adapter.source_id, rows[0])
        draft = build_mapper([adapter]).map(raw, adapter.reference_for(raw, T0))

        assert draft.name == "Hartlepool"
        assert draft.type is OrganisationType.UNITARY_AUTHORITY
        assert draft.source.source_id == "E06000001"
        assert draft.location.country == "England"


class TestDevolvedAdapter:
    """Test the curated devolved administrations source."""

    @pytest.mark.anyio
    async def test_fetch_and_map(self):
        adapter = DevolvedAdministrationsAdapter()
        records = await adapter.fetch()
        mapper = build_mapper([adapter])
        drafts = [mapper.map(raw, adapter.reference_for(raw, T0)) for raw in records]

        assert len(drafts) == 6
        scottish = next(draft for draft in drafts if draft.name == "Scottish Government")
        assert scottish.type is OrganisationType.DEVOLVED_ADMINISTRATION
        assert scottish.establishment_date == "1999-07-01"
        assert "Scottish Executive" in scottish.alternative_names
        assert scottish.location.country == "Scotland"
        assert scottish.source.confidence == 1.0

    @pytest.mark.anyio
    async def test_records_are_copies(self):
        """Callers cannot mutate the curated data."""
        adapter = DevolvedAdministrationsAdapter()
        first = await adapter.fetch_records()
        first[0]["name"] = "Changed"
        second = await adapter.fetch_records()
        assert second[0]["name"] == "Scottish Government"


class TestRegistry:
    """Test the adapter registry."""

    def test_registered(self):
        assert set(ADAPTERS) == {"gov_uk_api", "ons_unitary", "devolved"}

    def test_config_metadata(self):
        """Adapters pick up host and URL from the source configuration."""
        adapter = GovUkOrganisationsAdapter()
        assert adapter.host == "www.gov.uk"
        assert adapter.url == "https://www.gov.uk/api/organisations"
