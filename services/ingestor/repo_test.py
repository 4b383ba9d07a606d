"""Tests for lead store repository."""

import pytest
from unittest.mock import AsyncMock, patch

from services.ingestor.models.candidate import DiscoveredCandidate


LEAD_ROW = {
    "id": 5,
    "external_id": "place-1",
    "name": "Apple Acres",
    "type": "farm",
    "address": "1 Main St, Vineland, ON L0R 2C0, Canada",
    "city": "Vineland",
    "postal_code": "L0R 2C0",
    "country_code": "CA",
    "region": "Niagara",
    "province": "Ontario",
    "latitude": 43.15,
    "longitude": -79.39,
    "source": "google_places",
    "source_detail": "Discovery grid cell 3 [depth=1]",
    "discovery_cell_id": 3,
    "status": "new_lead",
    "cluster_id": None,
    "follow_up_count": 0,
    "created_at": None,
    "updated_at": None,
}


@pytest.mark.no_db
class TestFindLeadByExternalId:
    """Tests for find_lead_by_external_id."""

    @pytest.mark.asyncio
    async def test_returns_lead_when_found(self):
        from services.ingestor import repo

        mock_conn = AsyncMock()
        with patch.object(repo, "get_conn") as mock_get_conn:
            mock_get_conn.return_value.__aenter__.return_value = mock_conn
            with patch.object(repo, "queries") as mock_queries:
                mock_queries.get_lead_by_external_id = AsyncMock(return_value=LEAD_ROW)

                lead = await repo.find_lead_by_external_id("place-1")

                assert lead.id == 5
                assert lead.city == "Vineland"
                mock_queries.get_lead_by_external_id.assert_called_once_with(mock_conn, external_id="place-1")

    @pytest.mark.asyncio
    async def test_returns_none_when_missing(self):
        from services.ingestor import repo

        with patch.object(repo, "get_conn") as mock_get_conn:
            mock_get_conn.return_value.__aenter__.return_value = AsyncMock()
            with patch.object(repo, "queries") as mock_queries:
                mock_queries.get_lead_by_external_id = AsyncMock(return_value=None)

                assert await repo.find_lead_by_external_id("nope") is None


@pytest.mark.no_db
class TestInsertLead:
    """Tests for insert_lead."""

    @pytest.mark.asyncio
    async def test_passes_candidate_fields(self):
        from services.ingestor import repo

        candidate = DiscoveredCandidate(
            external_id="place-1",
            name="Apple Acres",
            city="Vineland",
            source="google_places",
            discovery_cell_id=3,
        )
        mock_conn = AsyncMock()
        with patch.object(repo, "get_conn") as mock_get_conn:
            mock_get_conn.return_value.__aenter__.return_value = mock_conn
            with patch.object(repo, "queries") as mock_queries:
                mock_queries.insert_lead = AsyncMock(return_value=11)

                lead_id = await repo.insert_lead(candidate)

                assert lead_id == 11
                kwargs = mock_queries.insert_lead.call_args.kwargs
                assert kwargs["external_id"] == "place-1"
                assert kwargs["discovery_cell_id"] == 3
                assert kwargs["status"] == "new_lead"


@pytest.mark.no_db
class TestAssignLeadsToCluster:
    """Tests for assign_leads_to_cluster."""

    @pytest.mark.asyncio
    async def test_empty_list_is_noop(self):
        from services.ingestor import repo

        with patch.object(repo, "queries") as mock_queries:
            mock_queries.assign_leads_to_cluster = AsyncMock()
            await repo.assign_leads_to_cluster([], cluster_id=1)
            mock_queries.assign_leads_to_cluster.assert_not_called()

    @pytest.mark.asyncio
    async def test_uses_given_connection(self):
        from services.ingestor import repo

        conn = AsyncMock()
        with patch.object(repo, "queries") as mock_queries:
            mock_queries.assign_leads_to_cluster = AsyncMock()
            await repo.assign_leads_to_cluster([1, 2], cluster_id=9, conn=conn)
            mock_queries.assign_leads_to_cluster.assert_called_once_with(conn, lead_ids=[1, 2], cluster_id=9)
